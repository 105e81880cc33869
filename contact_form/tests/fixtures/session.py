import json
from base64 import b64decode
from typing import Dict, Optional

import pytest
from itsdangerous import TimestampSigner
from starlette.requests import Request

from contact_form.core.config import Settings, settings
from contact_form.services.session_service import SESSION_ID_KEY, MemorySessionBackend, memory_sessions


class FakeDynamoDBTable:
    """In-memory stand-in for a boto3 DynamoDB Table resource."""

    def __init__(self):
        self.items: Dict[str, dict] = {}
        self.put_count = 0

    def get_item(self, Key):
        item = self.items.get(Key["session_id"])
        return {"Item": dict(item)} if item else {}

    def put_item(self, Item):
        self.items[Item["session_id"]] = dict(Item)
        self.put_count += 1

    def delete_item(self, Key):
        self.items.pop(Key["session_id"], None)


def make_request(cookies: Optional[Dict[str, str]] = None, session: Optional[dict] = None) -> Request:
    """Build a bare GET request, optionally with cookies and a Starlette session dict."""
    headers = []
    if cookies:
        cookie_header = "; ".join(f"{key}={value}" for key, value in cookies.items())
        headers.append((b"cookie", cookie_header.encode()))

    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": headers,
    }
    if session is not None:
        scope["session"] = session
    return Request(scope)


def read_session_id(client) -> Optional[str]:
    """Decode the signed session cookie held by a TestClient and return its session id."""
    raw = client.cookies.get(settings.SESSION_COOKIE_NAME)
    if raw is None:
        return None
    signer = TimestampSigner(str(settings.SECRET_KEY))
    payload = json.loads(b64decode(signer.unsign(raw.encode("utf-8"))))
    return payload.get(SESSION_ID_KEY)


def read_cookie_session(client) -> dict:
    """Return the server-side session data of the TestClient's visitor."""
    session_id = read_session_id(client)
    if session_id is None:
        return {}
    return memory_sessions.load(session_id) or {}


@pytest.fixture(scope="function")
def fake_table():
    """Fixture providing an empty in-memory session table."""
    return FakeDynamoDBTable()


@pytest.fixture(scope="function")
def memory_backend():
    """Fixture providing an empty process-local session backend."""
    return MemorySessionBackend()


@pytest.fixture(scope="function")
def session_settings():
    """Fixture providing a fresh Settings instance."""
    return Settings()
