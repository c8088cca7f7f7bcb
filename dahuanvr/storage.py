"""Persistence of credentials and known recorders.

Both stores write json text into a :class:`SecureStore`, an opaque key value
store supplied by the application, such as an OS keychain wrapper.
:class:`MemorySecureStore` keeps everything in process.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace

from mashumaro.config import BaseConfig

from .credentials import Credentials
from .exceptions import DahuaException
from .json import DataClassJSONMixin
from .json import dumps as json_dumps
from .json import loads as json_loads

_LOGGER = logging.getLogger(__name__)

AUTH_EXPIRY_SECONDS = 86400
AUTH_KEY = "DahuaNVRAuth"
ENDPOINTS_KEY = "SavedNVRSystems"


class SecureStore(ABC):
    """Opaque key value store for secrets."""

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def load(self, key: str) -> str | None:
        """Return the value stored under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    def exists(self, key: str) -> bool:
        """Return True if a value is stored under ``key``."""
        return self.load(key) is not None


class MemorySecureStore(SecureStore):
    """In process secure store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, str] = {}

    def save(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        with self._lock:
            self._items[key] = value

    def load(self, key: str) -> str | None:
        """Return the value stored under ``key``."""
        with self._lock:
            return self._items.get(key)

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        with self._lock:
            self._items.pop(key, None)


class _StorageBaseMixin(DataClassJSONMixin):
    """Base class for serialization mixin."""

    class Config(BaseConfig):
        """Serialization config."""

        omit_none = True


@dataclass
class PersistedAuth(_StorageBaseMixin):
    """Credentials of the last successful login."""

    credentials: Credentials
    authenticated_at: float

    def is_expired(self, now: float | None = None) -> bool:
        """Return True once the record is older than a day."""
        now = time.time() if now is None else now
        return now - self.authenticated_at > AUTH_EXPIRY_SECONDS


class AuthStore:
    """Remember the last working credentials for a day."""

    def __init__(self, store: SecureStore, *, key: str = AUTH_KEY) -> None:
        self._store = store
        self._key = key

    def save(self, credentials: Credentials, *, now: float | None = None) -> None:
        """Persist ``credentials`` as authenticated now."""
        record = PersistedAuth(
            credentials=credentials,
            authenticated_at=time.time() if now is None else now,
        )
        self._store.save(self._key, record.to_json())

    def load(self, *, now: float | None = None) -> Credentials | None:
        """Return the persisted credentials unless missing, corrupt or expired."""
        raw = self._store.load(self._key)
        if raw is None:
            return None
        try:
            record = PersistedAuth.from_json(raw)
        except Exception as ex:
            _LOGGER.warning("Discarding unreadable persisted credentials: %s", ex)
            self.clear()
            return None
        if record.is_expired(now):
            _LOGGER.debug(
                "Persisted credentials for %s expired", record.credentials.server_url
            )
            self.clear()
            return None
        return record.credentials

    def clear(self) -> None:
        """Remove the persisted credentials."""
        self._store.delete(self._key)


@dataclass
class NvrEndpoint(_StorageBaseMixin):
    """A recorder known to the application."""

    name: str
    credentials: Credentials
    is_default: bool = False
    rpc_auth_success: bool = False
    cgi_auth_success: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_valid(self) -> bool:
        """Return True if the endpoint has everything needed to connect."""
        return bool(
            self.name
            and self.credentials.server_url
            and self.credentials.username
            and self.credentials.password
        )


class EndpointRegistry:
    """Ordered list of known recorders with exactly one default.

    The list is empty or has one default. Making an endpoint the default
    clears the flag everywhere else.
    """

    def __init__(self, store: SecureStore, *, key: str = ENDPOINTS_KEY) -> None:
        self._store = store
        self._key = key
        self._lock = threading.Lock()
        self._endpoints: list[NvrEndpoint] = self._load()

    def _load(self) -> list[NvrEndpoint]:
        raw = self._store.load(self._key)
        if raw is None:
            return []
        try:
            endpoints = [NvrEndpoint.from_dict(item) for item in json_loads(raw)]
        except Exception as ex:
            _LOGGER.warning("Discarding unreadable endpoint list: %s", ex)
            return []
        return _with_single_default(endpoints)

    def _save(self) -> None:
        self._store.save(
            self._key, json_dumps([endpoint.to_dict() for endpoint in self._endpoints])
        )

    @property
    def endpoints(self) -> list[NvrEndpoint]:
        """Return the known endpoints."""
        with self._lock:
            return list(self._endpoints)

    @property
    def default(self) -> NvrEndpoint | None:
        """Return the default endpoint."""
        return next((e for e in self.endpoints if e.is_default), None)

    def get(self, endpoint_id: str) -> NvrEndpoint | None:
        """Return the endpoint with ``endpoint_id``."""
        return next((e for e in self.endpoints if e.id == endpoint_id), None)

    def add(self, endpoint: NvrEndpoint) -> NvrEndpoint:
        """Add ``endpoint``, the first endpoint always becomes the default."""
        if not endpoint.is_valid:
            raise DahuaException(f"Endpoint {endpoint.name!r} is incomplete")
        with self._lock:
            if endpoint.is_default or not self._endpoints:
                self._endpoints = [
                    replace(e, is_default=False) for e in self._endpoints
                ]
                endpoint = replace(endpoint, is_default=True)
            self._endpoints.append(endpoint)
            self._save()
        return endpoint

    def remove(self, endpoint_id: str) -> None:
        """Remove an endpoint, promoting the first remaining one if needed."""
        with self._lock:
            self._endpoints = _with_single_default(
                [e for e in self._endpoints if e.id != endpoint_id]
            )
            self._save()

    def set_default(self, endpoint_id: str) -> NvrEndpoint:
        """Make ``endpoint_id`` the default."""
        with self._lock:
            if not any(e.id == endpoint_id for e in self._endpoints):
                raise DahuaException(f"Unknown endpoint {endpoint_id}")
            self._endpoints = [
                replace(e, is_default=e.id == endpoint_id) for e in self._endpoints
            ]
            self._save()
            return next(e for e in self._endpoints if e.is_default)

    def update_status(
        self, endpoint_id: str, *, rpc_success: bool, cgi_success: bool
    ) -> None:
        """Record the outcome of the last connection attempt."""
        with self._lock:
            self._endpoints = [
                replace(e, rpc_auth_success=rpc_success, cgi_auth_success=cgi_success)
                if e.id == endpoint_id
                else e
                for e in self._endpoints
            ]
            self._save()

    def find_by_url(self, server_url: str) -> NvrEndpoint | None:
        """Return the endpoint for ``server_url``."""
        return next(
            (e for e in self.endpoints if e.credentials.server_url == server_url),
            None,
        )


def _with_single_default(endpoints: list[NvrEndpoint]) -> list[NvrEndpoint]:
    if not endpoints:
        return endpoints
    default_id = next((e.id for e in endpoints if e.is_default), endpoints[0].id)
    return [replace(e, is_default=e.id == default_id) for e in endpoints]
