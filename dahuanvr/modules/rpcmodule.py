"""Base implementation for rpc method groups."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import (
    InvalidServerResponseError,
    NoActiveSessionError,
    RpcError,
)

if TYPE_CHECKING:
    from ..transports.rpctransport import RpcTransport

_LOGGER = logging.getLogger(__name__)


class RpcModule:
    """Base class for a group of rpc methods sharing a prefix."""

    #: Prefix of the wrapped rpc methods, e.g. ``magicBox``
    PREFIX: str

    def __init__(self, transport: RpcTransport) -> None:
        self._transport = transport

    @property
    def transport(self) -> RpcTransport:
        """Return the rpc transport."""
        return self._transport

    def _method(self, name: str) -> str:
        # Fully qualified names reach methods outside the prefix
        return name if "." in name else f"{self.PREFIX}.{name}"

    def _require_session(self) -> str:
        if (session_id := self._transport.session_id) is None:
            raise NoActiveSessionError(
                f"No active rpc session for {self.__class__.__name__}"
            )
        return session_id

    async def _prepare_encryption(self) -> None:
        """Fetch the recorder crypto parameters if they are not known yet."""
        parameters = self._transport.crypto.parameters
        if parameters.has_public_key and parameters.ciphers:
            return
        from .security import Security

        await Security(self._transport).get_encrypt_info()

    async def _query(self, name: str, params: dict | None = None) -> dict[str, Any]:
        """Call ``name`` and return the params of the response."""
        self._require_session()
        method = self._method(name)
        response = await self._transport.call(method, params)
        if response.get("result") is False:
            raise RpcError(
                f"{method} returned result false", code=None, message="result false"
            )
        payload = response.get("params")
        if not isinstance(payload, dict):
            raise InvalidServerResponseError(f"{method} response carries no params")
        return payload

    async def _command(self, name: str, params: dict | None = None) -> None:
        """Call ``name`` and require a true result."""
        self._require_session()
        method = self._method(name)
        response = await self._transport.call(method, params)
        if response.get("result") is not True:
            raise RpcError(
                f"{method} was rejected", code=None, message="result is not true"
            )
        _LOGGER.debug("%s succeeded", method)
