"""Two stage challenge login for the recorder JSON-RPC channel.

Stage one asks for a challenge with an empty password and receives a session
id together with ``{random, realm, encryption}``. Stage two answers with a
digest of the password bound to that challenge. On success the session is
kept alive with periodic ``global.keepAlive`` calls.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum, auto

from mashumaro import DataClassDictMixin, field_options
from mashumaro.exceptions import InvalidFieldValue, MissingField

from ..credentials import Credentials
from ..exceptions import (
    AuthenticationFailedError,
    DahuaException,
    InvalidAuthParametersError,
    NoAuthParametersError,
    SessionMissingError,
)
from ..taskregistry import TaskRegistry
from ..transports.rpctransport import RpcTransport

_LOGGER = logging.getLogger(__name__)

CLIENT_TYPE = "Web3.0"
LOGIN_TYPE = "Direct"
DEFAULT_KEEP_ALIVE_INTERVAL = 60
KEEP_ALIVE_TIMEOUT = 300
KEEP_ALIVE_TASK = "keepalive"


class LoginState(Enum):
    """Enum for the rpc login state."""

    LOGGED_OUT = auto()  # No session
    CHALLENGE_RECEIVED = auto()  # Stage one done, digest expected
    AUTHENTICATED = auto()  # Session established


class DigestType(Enum):
    """Password digest types announced in the login challenge."""

    Default = "Default"
    Basic = "Basic"


def _md5_hash(payload: bytes) -> str:
    return hashlib.md5(payload).hexdigest().upper()  # noqa: S324


@dataclass
class AuthChallenge(DataClassDictMixin):
    """Challenge returned by the first login stage."""

    random: str
    realm: str
    encryption: str
    authorization: str | None = None


@dataclass
class LoginResult(DataClassDictMixin):
    """Params of a successful second login stage."""

    keep_alive_interval: int = field(
        default=DEFAULT_KEEP_ALIVE_INTERVAL,
        metadata=field_options(alias="keepAliveInterval"),
    )


def login_digest(
    credentials: Credentials, challenge: AuthChallenge, *, strict: bool = False
) -> str:
    """Return the password field for the second login stage."""
    username, password = credentials.username, credentials.password
    if challenge.encryption == DigestType.Basic.value:
        return base64.b64encode(f"{username}:{password}".encode()).decode()
    if challenge.encryption == DigestType.Default.value:
        realm_hash = _md5_hash(f"{username}:{challenge.realm}:{password}".encode())
        return _md5_hash(f"{username}:{challenge.random}:{realm_hash}".encode())
    if strict:
        raise InvalidAuthParametersError(
            f"Unsupported login encryption {challenge.encryption!r}"
        )
    _LOGGER.warning(
        "Unknown login encryption %s, sending the password unhashed",
        challenge.encryption,
    )
    return password


class RpcLogin:
    """Login state machine for one rpc transport."""

    def __init__(
        self,
        transport: RpcTransport,
        *,
        tasks: TaskRegistry | None = None,
        strict: bool = False,
        keep_alive_interval: int | None = None,
        client_ip: str | None = None,
    ) -> None:
        self._transport = transport
        self._tasks = tasks or TaskRegistry("rpclogin")
        self._strict = strict
        self._keep_alive_override = keep_alive_interval
        self._client_ip = client_ip
        self._keep_alive_interval = DEFAULT_KEEP_ALIVE_INTERVAL
        self._state = LoginState.LOGGED_OUT
        self._login_lock = asyncio.Lock()

    @property
    def state(self) -> LoginState:
        """Return the login state."""
        return self._state

    @property
    def keep_alive_interval(self) -> int:
        """Return the keep alive interval in seconds."""
        return self._keep_alive_interval

    @property
    def is_keep_alive_running(self) -> bool:
        """Return True if the keep alive task is running."""
        return self._tasks.is_running(KEEP_ALIVE_TASK)

    @property
    def has_active_session(self) -> bool:
        """Return True if logged in with a live keep alive."""
        return self._transport.has_active_session and self.is_keep_alive_running

    async def login(self, credentials: Credentials) -> None:
        """Run both login stages and start the keep alive."""
        async with self._login_lock:
            await self._tasks.stop(KEEP_ALIVE_TASK)
            self._transport.clear_session()
            self._state = LoginState.LOGGED_OUT
            try:
                challenge = await self._request_challenge(credentials)
                self._state = LoginState.CHALLENGE_RECEIVED
                await self._answer_challenge(credentials, challenge)
            except BaseException:
                self._transport.clear_session()
                self._state = LoginState.LOGGED_OUT
                raise
            self._state = LoginState.AUTHENTICATED
            _LOGGER.debug(
                "Logged in to %s, keep alive every %s seconds",
                self._transport.app_url,
                self._keep_alive_interval,
            )
            self._tasks.start(KEEP_ALIVE_TASK, self._keep_alive_loop())

    async def _request_challenge(self, credentials: Credentials) -> AuthChallenge:
        params = {
            "clientType": CLIENT_TYPE,
            "loginType": LOGIN_TYPE,
            "userName": credentials.username,
            "password": "",
        }
        if self._client_ip:
            params["ipAddr"] = self._client_ip
        response = await self._transport.call(
            "global.login", params, use_login_endpoint=True, include_session=False
        )
        if response.get("session") is None:
            raise SessionMissingError("Session id missing from the login challenge")

        challenge = response.get("params")
        if (
            not isinstance(challenge, dict)
            or not challenge.get("random")
            or not challenge.get("realm")
        ):
            raise NoAuthParametersError("No auth parameters in the login challenge")
        try:
            parsed = AuthChallenge.from_dict(challenge)
        except (MissingField, InvalidFieldValue) as ex:
            raise InvalidAuthParametersError(
                f"Invalid auth parameters format: {ex}"
            ) from ex
        if not all(
            isinstance(value, str)
            for value in (parsed.random, parsed.realm, parsed.encryption)
        ):
            raise InvalidAuthParametersError(
                f"Invalid auth parameters format: {challenge}"
            )
        _LOGGER.debug(
            "Received login challenge realm=%s encryption=%s",
            parsed.realm,
            parsed.encryption,
        )
        return parsed

    async def _answer_challenge(
        self, credentials: Credentials, challenge: AuthChallenge
    ) -> None:
        params = {
            "userName": credentials.username,
            "password": login_digest(credentials, challenge, strict=self._strict),
            "clientType": CLIENT_TYPE,
            "loginType": LOGIN_TYPE,
            "authorityType": challenge.encryption,
            "passwordType": challenge.encryption,
        }
        if self._client_ip:
            params["ipAddr"] = self._client_ip
        response = await self._transport.call_direct(
            "global.login", params, use_login_endpoint=True, include_session=True
        )
        if response.get("result") is not True:
            error = response.get("error")
            raise AuthenticationFailedError(
                f"Authentication failed, server returned {error or response}"
            )
        try:
            result = LoginResult.from_dict(response.get("params") or {})
        except (MissingField, InvalidFieldValue) as ex:
            _LOGGER.debug("Unexpected login result params: %s", ex)
            result = LoginResult()
        self._keep_alive_interval = (
            self._keep_alive_override
            or result.keep_alive_interval
            or DEFAULT_KEEP_ALIVE_INTERVAL
        )

    async def send_keep_alive(self) -> bool:
        """Send one keep alive, returning False if it failed."""
        try:
            await self._transport.call(
                "global.keepAlive",
                {"timeout": KEEP_ALIVE_TIMEOUT, "active": True},
            )
        except DahuaException as ex:
            _LOGGER.debug("Keep alive to %s failed: %s", self._transport.app_url, ex)
            return False
        _LOGGER.debug("Keep alive sent to %s", self._transport.app_url)
        return True

    async def _keep_alive_loop(self) -> None:
        while True:
            await asyncio.sleep(self._keep_alive_interval)
            await self.send_keep_alive()

    async def logout(self) -> None:
        """Stop the keep alive, log out best effort and clear the session."""
        await self._tasks.stop(KEEP_ALIVE_TASK)
        if self._transport.has_active_session:
            try:
                await self._transport.call("global.logout")
            except DahuaException as ex:
                _LOGGER.debug("Logout from %s failed: %s", self._transport.app_url, ex)
        self._transport.clear_session()
        self._state = LoginState.LOGGED_OUT
