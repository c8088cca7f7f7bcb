"""Implementation of the recorder JSON-RPC transport.

Requests are json objects of ``{method, params, id}`` before a session exists
and ``{method, params, session, id}`` afterwards, posted to ``/RPC2_Login``
during login, ``/RPC2`` for general calls and ``/OutsideCmd`` for the few
calls answered before authentication.

Confidential calls wrap a hybrid encrypted envelope in ``system.multiSec``,
see :mod:`dahuanvr.transports.encryption`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..exceptions import (
    LOGIN_CHALLENGE_CODES,
    InvalidPublicKeyError,
    InvalidServerResponseError,
    NoActiveSessionError,
    RpcError,
)
from . import encryption
from .basetransport import BaseTransport

if TYPE_CHECKING:
    from ..cryptoconfig import CryptoParameterRegistry
    from ..deviceconfig import DeviceConfig
    from ..httpclient import HttpClient

_LOGGER = logging.getLogger(__name__)


class RpcEndpoint(Enum):
    """Paths of the rpc endpoints."""

    LOGIN = "/RPC2_Login"
    GENERAL = "/RPC2"
    OUTSIDE = "/OutsideCmd"


MULTI_SEC_METHOD = "system.multiSec"


class RpcTransport(BaseTransport):
    """Implementation of the recorder JSON-RPC protocol."""

    def __init__(
        self,
        *,
        config: DeviceConfig,
        crypto: CryptoParameterRegistry,
        http_client: HttpClient | None = None,
    ) -> None:
        super().__init__(config=config, http_client=http_client)
        self._crypto = crypto
        self._session_id: str | None = None
        self._request_id = 0

    @property
    def crypto(self) -> CryptoParameterRegistry:
        """Return the crypto parameter registry used for encrypted calls."""
        return self._crypto

    @property
    def session_id(self) -> str | None:
        """Return the current session id."""
        return self._session_id

    @property
    def has_active_session(self) -> bool:
        """Return True if a session id is held."""
        return self._session_id is not None

    @property
    def request_id(self) -> int:
        """Return the id of the last request sent."""
        return self._request_id

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _build_request(
        self,
        method: str,
        params: dict | list | None,
        *,
        include_session: bool,
        object_id: int | None = None,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {"method": method}
        if params is not None:
            request["params"] = params
        if object_id is not None:
            request["object"] = object_id
        if include_session and self._session_id is not None:
            request["session"] = self._session_id
        request["id"] = self._next_request_id()
        return request

    async def _post(self, endpoint: RpcEndpoint, request: dict) -> dict:
        url = self._app_url.with_path(endpoint.value)
        _LOGGER.debug("%s >> %s %s", self._host, endpoint.value, request["method"])
        status_code, response = await self._http_client.post(url, json=request)
        if not isinstance(response, dict):
            raise InvalidServerResponseError(
                f"{self._host} responded to {request['method']} with status "
                f"{status_code} and a body that is not a json object"
            )
        _LOGGER.debug("%s << %s", self._host, response)
        # The session is adopted even from error responses
        if (session := response.get("session")) is not None:
            self._session_id = str(session)
        return response

    async def call(
        self,
        method: str,
        params: dict | list | None = None,
        *,
        use_login_endpoint: bool = False,
        include_session: bool = True,
        object_id: int | None = None,
    ) -> dict:
        """Send an rpc request and return the response envelope.

        Stage one of the login, ``use_login_endpoint`` without
        ``include_session``, returns challenge errors instead of raising so the
        caller can read the challenge params.
        """
        stage_one = use_login_endpoint and not include_session
        endpoint = RpcEndpoint.LOGIN if use_login_endpoint else RpcEndpoint.GENERAL
        request = self._build_request(
            method, params, include_session=not stage_one, object_id=object_id
        )
        response = await self._post(endpoint, request)

        if (error := response.get("error")) is not None:
            code, message = _parse_error(error)
            if stage_one and code in LOGIN_CHALLENGE_CODES:
                return response
            raise RpcError(
                f"{method} failed on {self._host}: {message}",
                code=code,
                message=message,
            )
        return response

    async def call_direct(
        self,
        method: str,
        params: dict | list | None = None,
        *,
        use_login_endpoint: bool = False,
        include_session: bool = True,
        object_id: int | None = None,
    ) -> dict:
        """Send an rpc request and return the raw response without error checks."""
        stage_one = use_login_endpoint and not include_session
        endpoint = RpcEndpoint.LOGIN if use_login_endpoint else RpcEndpoint.GENERAL
        request = self._build_request(
            method, params, include_session=not stage_one, object_id=object_id
        )
        return await self._post(endpoint, request)

    async def call_outside(self, method: str, params: dict | None = None) -> dict:
        """Send a pre authentication request to the outside command endpoint."""
        request = self._build_request(method, params, include_session=False)
        return await self._post(RpcEndpoint.OUTSIDE, request)

    def _encrypt(self, payload: Any) -> encryption.EncryptionResult:
        if not self.has_active_session:
            raise NoActiveSessionError(
                f"No active rpc session on {self._host} for an encrypted request"
            )
        parameters = self._crypto.parameters
        if not parameters.has_public_key:
            raise InvalidPublicKeyError(
                f"No public key known for {self._host}, fetch the encrypt info first"
            )
        assert parameters.modulus is not None
        assert parameters.exponent is not None
        return encryption.encrypt(
            payload,
            parameters.ciphers,
            parameters.modulus,
            parameters.exponent,
        )

    async def send_encrypted(
        self,
        payload: Any,
        *,
        method: str = MULTI_SEC_METHOD,
    ) -> Any:
        """Encrypt ``payload``, send it with ``method`` and decrypt the response."""
        result = self._encrypt(payload)
        response = await self.call_direct(method, result.envelope.to_params())
        if (error := response.get("error")) is not None:
            code, message = _parse_error(error)
            raise RpcError(
                f"{method} failed on {self._host}: {message}",
                code=code,
                message=message,
            )
        params = response.get("params")
        if not isinstance(params, dict) or not isinstance(
            content := params.get("content"), str
        ):
            raise InvalidServerResponseError(
                f"{method} response from {self._host} carries no encrypted content"
            )
        return encryption.decrypt(content, result.key, result.profile)

    async def send_encrypted_command(self, method: str, payload: Any) -> dict:
        """Send an encrypted ``sec*`` command whose response is not encrypted."""
        result = self._encrypt(payload)
        response = await self.call(method, result.envelope.to_params())
        if response.get("result") is not True:
            raise RpcError(
                f"{method} was rejected by {self._host}",
                code=None,
                message="result is not true",
            )
        return response

    def clear_session(self) -> None:
        """Forget the session and restart request ids."""
        self._session_id = None
        self._request_id = 0

    async def reset(self) -> None:
        """Reset internal session state."""
        self.clear_session()

    async def close(self) -> None:
        """Close the http client and reset internal state."""
        self.clear_session()
        await self._http_client.close()


def _parse_error(error: Any) -> tuple[int | None, str]:
    if isinstance(error, dict):
        code = error.get("code")
        return (
            code if isinstance(code, int) else None,
            str(error.get("message") or ""),
        )
    return None, str(error)
