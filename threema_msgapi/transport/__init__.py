# threema_msgapi/transport/__init__.py
import os
from threema_msgapi.exceptions import InvalidInput
from threema_msgapi.storage import PublicKeyStore, load_storage_provider
from threema_msgapi.transport.transport_base import (
    ApiError, ClientError, ServerError, TransportError,
)
from threema_msgapi.transport.transport_http import GatewayConnector


def connector_factory(config: dict | None = None) -> GatewayConnector:
    """
    Build a GatewayConnector from ``config`` or the environment:

      MSGAPI_IDENTITY / MSGAPI_SECRET  gateway credentials (required)
      MSGAPI_URL                       API base URL
      MSGAPI_USER_AGENT                User-Agent override
      MSGAPI_TIMEOUT                   request timeout in seconds
    """
    config = config or {}
    identity = config.get("identity") or os.getenv("MSGAPI_IDENTITY")
    secret = config.get("secret") or os.getenv("MSGAPI_SECRET")
    if not identity or not secret:
        raise InvalidInput("gateway identity and secret are required (MSGAPI_IDENTITY, MSGAPI_SECRET)")

    timeout = config.get("timeout") or os.getenv("MSGAPI_TIMEOUT")
    return GatewayConnector(
        identity,
        secret,
        public_key_store=PublicKeyStore(load_storage_provider(config.get("storage"))),
        api_url=config.get("api_url") or os.getenv("MSGAPI_URL"),
        user_agent=config.get("user_agent") or os.getenv("MSGAPI_USER_AGENT"),
        timeout=float(timeout) if timeout else None,
    )


__all__ = [
    "ApiError",
    "ClientError",
    "ServerError",
    "TransportError",
    "GatewayConnector",
    "connector_factory",
]
