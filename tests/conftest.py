import json as jsonlib

import pytest

from threema_msgapi.crypto import generate_keypair
from threema_msgapi.transport.transport_http import GatewayConnector

API_URL = "https://gateway.test/"


class FakeResponse:
    def __init__(self, status_code=200, body=b"", headers=None):
        self.status_code = status_code
        self.content = body if isinstance(body, bytes) else body.encode("utf-8")
        self.headers = headers or {}

    @property
    def text(self):
        return self.content.decode("utf-8")

    def json(self):
        return jsonlib.loads(self.text)


class FakeSession:
    """Stands in for requests.Session; routes on (method, path below the API url)."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, method, path, status_code=200, body=b"", headers=None):
        self.routes[(method, path)] = FakeResponse(status_code, body, headers)

    def route_handler(self, method, path, handler):
        self.routes[(method, path)] = handler

    def request(self, method, url, params=None, data=None, json=None, headers=None, timeout=None):
        assert url.startswith(API_URL)
        path = url[len(API_URL):]
        call = {
            "method": method, "path": path, "params": params, "data": data,
            "json": json, "headers": headers, "timeout": timeout,
        }
        self.calls.append(call)
        resp = self.routes.get((method, path))
        if resp is None:
            return FakeResponse(404, b"")
        if callable(resp):
            return resp(call)
        return resp

    def calls_to(self, path):
        return [c for c in self.calls if c["path"] == path]


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def connector(session):
    return GatewayConnector("*TESTGW1", "s3cr3t", api_url=API_URL, session=session)


@pytest.fixture
def sender_keys():
    return generate_keypair()


@pytest.fixture
def recipient_keys():
    return generate_keypair()
