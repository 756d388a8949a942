from __future__ import annotations
from typing import Dict, Optional

from threema_msgapi.exceptions import MsgApiError

Headers = Dict[str, str]


class TransportError(MsgApiError):
    """Connection, TLS or timeout failure before a gateway response was read."""


class ApiError(MsgApiError):
    def __init__(self, operation: str, status_code: int, headers: Optional[Headers] = None, body: str = ""):
        super().__init__(f"{operation} call failed with: {status_code} - {body or '[no body]'}")
        self.operation = operation
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.body = body


class ClientError(ApiError):
    pass


class ServerError(ApiError):
    pass


def error_for_status(operation: str, status_code: int, headers: Optional[Headers], body: str) -> ApiError:
    if 400 <= status_code <= 499:
        return ClientError(operation, status_code, headers, body)
    if 500 <= status_code <= 599:
        return ServerError(operation, status_code, headers, body)
    return ApiError(operation, status_code, headers, body)
