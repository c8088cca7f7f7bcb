"""Authenticate the CGI and RPC channels of a recorder side by side."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..credentials import Credentials
from ..transports.digesttransport import DigestTransport
from .rpclogin import RpcLogin

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DualAuthResult:
    """Outcome of one dual protocol connection attempt."""

    cgi_success: bool
    rpc_success: bool
    cgi_error: BaseException | None = None
    rpc_error: BaseException | None = None

    @property
    def usable(self) -> bool:
        """Return True if the session can be used, which needs the rpc channel."""
        return self.rpc_success

    @property
    def both_successful(self) -> bool:
        """Return True if both channels authenticated."""
        return self.cgi_success and self.rpc_success

    @property
    def status(self) -> str:
        """Return a short human readable status."""
        cgi = "ok" if self.cgi_success else "failed"
        rpc = "ok" if self.rpc_success else "failed"
        return f"CGI: {cgi}, RPC: {rpc}"


class DualProtocol:
    """Runs the digest and rpc logins concurrently, isolating their failures."""

    def __init__(self, cgi: DigestTransport, rpc: RpcLogin) -> None:
        self._cgi = cgi
        self._rpc = rpc

    @property
    def cgi(self) -> DigestTransport:
        """Return the CGI transport."""
        return self._cgi

    @property
    def rpc(self) -> RpcLogin:
        """Return the rpc login."""
        return self._rpc

    @property
    def has_cgi_session(self) -> bool:
        """Return True if the CGI channel authenticated."""
        return self._cgi.is_authenticated

    @property
    def has_rpc_session(self) -> bool:
        """Return True if the rpc channel is logged in."""
        return self._rpc.has_active_session

    async def authenticate(self, credentials: Credentials) -> DualAuthResult:
        """Authenticate both channels and report each outcome."""
        cgi_result, rpc_result = await asyncio.gather(
            self._cgi.authenticate(),
            self._rpc.login(credentials),
            return_exceptions=True,
        )
        for result in (cgi_result, rpc_result):
            if isinstance(result, asyncio.CancelledError):
                raise result
        cgi_error = cgi_result if isinstance(cgi_result, BaseException) else None
        rpc_error = rpc_result if isinstance(rpc_result, BaseException) else None
        if cgi_error:
            _LOGGER.debug("CGI authentication failed: %s", cgi_error)
        if rpc_error:
            _LOGGER.debug("RPC authentication failed: %s", rpc_error)
        result = DualAuthResult(
            cgi_success=cgi_error is None,
            rpc_success=rpc_error is None,
            cgi_error=cgi_error,
            rpc_error=rpc_error,
        )
        _LOGGER.debug("Dual authentication completed, %s", result.status)
        return result

    async def disconnect(self) -> None:
        """Tear down both channels, ignoring individual failures."""
        results = await asyncio.gather(
            self._cgi.reset(),
            self._rpc.logout(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                _LOGGER.debug("Error while disconnecting: %s", result)
