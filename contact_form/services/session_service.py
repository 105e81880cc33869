"""Visitor session stores.

Two interchangeable backends share the ``BaseSessionStore`` contract:

- ``cookie``: Starlette's signed session cookie (``request.session``) carries
  only the session id; the data map lives in process memory keyed by that id.
- ``dynamodb``: data lives in a DynamoDB item keyed by session id, with an
  ``expires_at`` TTL attribute; every mutation is written immediately.

Flash messages are nested in the session payload under ``_flash``.
"""

import copy
import json
import logging
import secrets
import threading
import time
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import boto3
from botocore.exceptions import ClientError
from fastapi import Request, Response

from contact_form.core.config import Settings
from contact_form.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

FLASH_KEY = "_flash"
SESSION_ID_KEY = "_sid"


def generate_session_id() -> str:
    return secrets.token_hex(16)


class Flash:
    """Read-once messages stored inside the owning session.

    Every mutation is followed by ``owner.save()`` so nothing is lost between a
    read and the end of the request.
    """

    def __init__(self, owner: "BaseSessionStore"):
        self._owner = owner

    @property
    def _messages(self) -> Dict[str, List[str]]:
        return self._owner._data.setdefault(FLASH_KEY, {})

    @property
    def _stored(self) -> Dict[str, List[str]]:
        # read-only view, does not create the namespace
        return self._owner._data.get(FLASH_KEY) or {}

    def add(self, key: str, message: str) -> None:
        """Append a message under key."""
        self._messages.setdefault(key, []).append(message)
        self._owner.save()

    def get(self, key: str) -> List[str]:
        """Return the messages under key and remove them."""
        if key not in self._stored:
            return []
        messages = self._messages.pop(key)
        if messages:
            self._owner.save()
        return list(messages)

    def has(self, key: str) -> bool:
        return len(self._stored.get(key, [])) > 0

    def set_all(self, key: str, messages: List[str]) -> None:
        """Replace the messages under key."""
        self._messages[key] = list(messages)
        self._owner.save()

    def all(self) -> Dict[str, List[str]]:
        """Return every message and remove them all."""
        messages = dict(self._stored)
        if messages:
            self._messages.clear()
            self._owner.save()
        return messages

    def clear(self) -> None:
        self._messages.clear()
        self._owner.save()


class BaseSessionStore:
    """
    Base class for session store implementations.

    Holds the key-value API shared by all backends. Concrete stores provide
    the lifecycle (``start``, ``destroy``, ``regenerate_id``) and persistence
    (``save``) for their medium and declare the ``SESSION_HANDLER`` value they
    serve in ``handler``.
    """

    # SESSION_HANDLER value -> store class
    registry: Dict[str, Type["BaseSessionStore"]] = {}
    handler: Optional[str] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.handler:
            BaseSessionStore.registry[cls.handler] = cls

    def __init__(self, request: Request, config: Settings):
        self.request = request
        self.config = config
        self._data: Dict[str, Any] = {}
        self._started = False
        self._flash: Optional[Flash] = None
        self._options: Dict[str, Any] = {
            "name": config.SESSION_COOKIE_NAME,
            "lifetime": config.SESSION_LIFETIME,
            "path": "/",
            "domain": None,
            "secure": not config.IS_DEVELOP,
            "httponly": True,
            "samesite": "lax",
        }

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def all(self) -> Dict[str, Any]:
        return {k: v for k, v in self._data.items() if k != SESSION_ID_KEY}

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.save()

    def set_values(self, values: Dict[str, Any]) -> None:
        self._data.update(values)
        self.save()

    def has(self, key: str) -> bool:
        return self._data.get(key) is not None

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
        self.save()

    def clear(self) -> None:
        session_id = self._data.get(SESSION_ID_KEY)
        self._data.clear()
        if session_id:
            self._data[SESSION_ID_KEY] = session_id
        self.save()

    def get_flash(self) -> Flash:
        if self._flash is None:
            self._flash = Flash(self)
        return self._flash

    def is_started(self) -> bool:
        return self._started

    def get_name(self) -> str:
        return self._options["name"]

    def set_name(self, name: str) -> None:
        self._options["name"] = name

    def get_options(self) -> Dict[str, Any]:
        return dict(self._options)

    def set_options(self, options: Dict[str, Any]) -> None:
        self._options.update(options)

    def write_cookie(self, response: Response) -> None:
        """Attach whatever cookie the backend needs to the response."""
        pass

    def save(self) -> None:
        cls_name = type(self).__name__
        raise NotImplementedError(f"{cls_name}.save not implemented")

    def start(self) -> None:
        cls_name = type(self).__name__
        raise NotImplementedError(f"{cls_name}.start not implemented")

    def get_id(self) -> str:
        cls_name = type(self).__name__
        raise NotImplementedError(f"{cls_name}.get_id not implemented")

    def set_id(self, session_id: str) -> None:
        cls_name = type(self).__name__
        raise NotImplementedError(f"{cls_name}.set_id not implemented")

    def destroy(self) -> None:
        cls_name = type(self).__name__
        raise NotImplementedError(f"{cls_name}.destroy not implemented")

    def regenerate_id(self, delete_old: bool = False) -> None:
        cls_name = type(self).__name__
        raise NotImplementedError(f"{cls_name}.regenerate_id not implemented")


class MemorySessionBackend:
    """Process-local session data keyed by session id.

    Entries expire ``lifetime`` seconds after their last write. Expired
    entries are treated as absent and swept on write.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._items: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._items.get(session_id)
            if entry is None:
                return None
            expires_at, data = entry
            if expires_at < self._clock():
                del self._items[session_id]
                return None
            return copy.deepcopy(data)

    def store(self, session_id: str, data: Dict[str, Any], lifetime: int) -> None:
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._items.items() if expires_at < now]
            for key in expired:
                del self._items[key]
            self._items[session_id] = (now + lifetime, copy.deepcopy(data))

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._items.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return self.load(session_id) is not None


memory_sessions = MemorySessionBackend()


class CookieSessionStore(BaseSessionStore):
    """Session id in Starlette's signed cookie, session data in process memory.

    The cookie stays a few dozen bytes whatever the form holds, and deleting
    the old entry on ``regenerate_id(delete_old=True)`` invalidates any copy
    of the previous cookie.
    """

    handler = "cookie"

    def __init__(self, request: Request, config: Settings, backend: Optional[MemorySessionBackend] = None):
        super().__init__(request, config)
        self.backend = backend if backend is not None else memory_sessions
        self._session_id = ""
        self._persisted = False

    def start(self) -> None:
        if self._started:
            return
        if "session" not in self.request.scope:
            raise ConfigurationError("Cookie sessions require Starlette's SessionMiddleware")

        cookie_id = self.request.session.get(SESSION_ID_KEY)
        data = self.backend.load(cookie_id) if cookie_id else None
        if data is not None:
            self._session_id = cookie_id
            self._data = data
            self._persisted = True
        else:
            # never adopt an id the server did not issue
            self._session_id = generate_session_id()
            self._data = {}
        self._started = True

    def save(self) -> None:
        if not self._session_id:
            return
        if not (self._persisted or self._data):
            # nothing stored; drop a stale id so Starlette clears the cookie
            self.request.session.pop(SESSION_ID_KEY, None)
            return

        self.backend.store(self._session_id, self._data, int(self._options["lifetime"]))
        self.request.session[SESSION_ID_KEY] = self._session_id
        self._persisted = True

    def get_id(self) -> str:
        return self._session_id

    def set_id(self, session_id: str) -> None:
        self._session_id = session_id

    def destroy(self) -> None:
        if self._session_id:
            self.backend.delete(self._session_id)
        self.request.session.clear()
        self._data = {}
        self._session_id = ""
        self._persisted = False
        self._started = False

    def regenerate_id(self, delete_old: bool = False) -> None:
        old_session_id = self._session_id
        self._session_id = generate_session_id()

        if delete_old and old_session_id:
            self.backend.delete(old_session_id)

        self._persisted = False
        self.save()


@lru_cache(maxsize=None)
def get_dynamodb_table(table_name: str, region_name: Optional[str] = None):
    """Return a boto3 Table resource, created once per process."""
    dynamodb = boto3.resource("dynamodb", region_name=region_name)
    return dynamodb.Table(table_name)


class DynamoDBSessionStore(BaseSessionStore):
    """Session data kept in DynamoDB, one item per session id."""

    handler = "dynamodb"

    def __init__(self, request: Request, config: Settings, table=None):
        super().__init__(request, config)
        self.table = table if table is not None else get_dynamodb_table(
            config.SESSION_DYNAMODB_TABLE, config.AWS_REGION
        )
        self._session_id = ""
        self._persisted = False

    def start(self) -> None:
        if self._started:
            return

        cookie_id = self.request.cookies.get(self.get_name())
        if cookie_id and self._load(cookie_id):
            self._session_id = cookie_id
        else:
            # never adopt an id the server did not issue
            self._session_id = generate_session_id()
            self._data = {}
        self._started = True

    def _load(self, session_id: str) -> bool:
        try:
            result = self.table.get_item(Key={"session_id": session_id})
        except ClientError as e:
            logger.error(f"Failed to load session from DynamoDB: {str(e)}")
            raise

        item = result.get("Item")
        if not item:
            return False

        # TTL deletion is lazy, expired items can still be returned
        if int(item.get("expires_at", 0)) < int(time.time()):
            logger.info("Session item expired, starting a new session")
            return False

        self._data = json.loads(item.get("data") or "{}")
        self._persisted = True
        return True

    def save(self) -> None:
        if not self._session_id or not (self._persisted or self._data):
            return

        now = int(time.time())
        self.table.put_item(
            Item={
                "session_id": self._session_id,
                "data": json.dumps(self._data),
                "created_at": now,
                "updated_at": now,
                "expires_at": now + int(self._options["lifetime"]),
            }
        )
        self._persisted = True

    def get_id(self) -> str:
        return self._session_id

    def set_id(self, session_id: str) -> None:
        self._session_id = session_id

    def destroy(self) -> None:
        if self._session_id:
            self.table.delete_item(Key={"session_id": self._session_id})
        self._data = {}
        self._session_id = ""
        self._persisted = False
        self._started = False

    def regenerate_id(self, delete_old: bool = False) -> None:
        old_session_id = self._session_id
        self._session_id = generate_session_id()

        if delete_old and old_session_id:
            self.table.delete_item(Key={"session_id": old_session_id})

        self._persisted = False
        self.save()

    def write_cookie(self, response: Response) -> None:
        if self._persisted and self._session_id:
            response.set_cookie(
                self.get_name(),
                self._session_id,
                max_age=int(self._options["lifetime"]),
                path=self._options["path"],
                domain=self._options["domain"],
                secure=self._options["secure"],
                httponly=self._options["httponly"],
                samesite=self._options["samesite"],
            )
        elif self.request.cookies.get(self.get_name()):
            response.delete_cookie(self.get_name(), path=self._options["path"])


def get_session_store_class(config: Settings) -> Type[BaseSessionStore]:
    """Select the store configured by ``SESSION_HANDLER``.

    Raises:
        ConfigurationError: If the handler is not supported
    """
    store_class = BaseSessionStore.registry.get(config.SESSION_HANDLER)
    if store_class is None:
        supported = ", ".join(sorted(BaseSessionStore.registry))
        raise ConfigurationError(
            f"Unsupported session handler: {config.SESSION_HANDLER}. Supported: {supported}"
        )
    return store_class
