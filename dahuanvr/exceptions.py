"""python-dahuanvr exceptions."""

from __future__ import annotations

from asyncio import TimeoutError as _asyncioTimeoutError
from enum import IntEnum
from functools import cache
from typing import Any


class DahuaException(Exception):
    """Base exception for library errors."""


class TimeoutError(DahuaException, _asyncioTimeoutError):
    """Timeout exception for device errors."""

    def __repr__(self) -> str:
        return DahuaException.__repr__(self)

    def __str__(self) -> str:
        return DahuaException.__str__(self)


class _ConnectionError(DahuaException):
    """Connection exception for device errors."""


class RpcErrorCode(IntEnum):
    """Enum for error codes returned in the ``error`` member of RPC responses."""

    def __str__(self) -> str:
        return f"{self.name}({self.value})"

    @staticmethod
    @cache
    def from_int(value: int) -> RpcErrorCode:
        """Convert an integer to a RpcErrorCode."""
        return RpcErrorCode(value)

    UNAUTHORIZED = 401
    LOGIN_CHALLENGE = 268632079

    UNKNOWN = -1


#: Error codes signalling that stage one of the login returned a challenge.
LOGIN_CHALLENGE_CODES = {
    RpcErrorCode.LOGIN_CHALLENGE,
    RpcErrorCode.UNAUTHORIZED,
}


# Protocol errors


class ProtocolError(DahuaException):
    """Base exception for malformed or rejected protocol exchanges."""


class InvalidServerResponseError(ProtocolError):
    """The server returned a response that could not be interpreted."""


class RpcError(ProtocolError):
    """The server answered an RPC call with an ``error`` member."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.code: int | None = kwargs.get("code")
        self.message: str = kwargs.get("message") or ""
        super().__init__(*args)

    @property
    def error_code(self) -> RpcErrorCode | None:
        """Return the known error code, if the code is a known one."""
        if self.code is None:
            return None
        try:
            return RpcErrorCode.from_int(self.code)
        except ValueError:
            return RpcErrorCode.UNKNOWN

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code}, message={self.message!r})"

    def __str__(self) -> str:
        err_code = f" (code={self.code})" if self.code is not None else ""
        return super().__str__() + err_code


class RequestFailedError(ProtocolError):
    """An HTTP request finished with an unexpected status code."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.status: int | None = kwargs.get("status")
        super().__init__(*args)


class InvalidDigestHeaderError(ProtocolError):
    """The WWW-Authenticate header could not be parsed as a digest challenge."""


# Authentication errors


class AuthenticationError(DahuaException):
    """Base exception for device authentication errors."""


class SessionMissingError(AuthenticationError):
    """The login challenge response did not carry a session id."""


class NoAuthParametersError(AuthenticationError):
    """The login challenge response did not carry the digest parameters."""


class InvalidAuthParametersError(AuthenticationError):
    """The login challenge parameters were present but unusable."""


class AuthenticationFailedError(AuthenticationError):
    """The server rejected the supplied credentials."""


class MissingAuthHeaderError(AuthenticationError):
    """A 401 response arrived without a WWW-Authenticate header."""


class NoActiveSessionError(AuthenticationError):
    """An operation requiring a logged in session was attempted without one."""


# Crypto errors


class CryptoError(DahuaException):
    """Base exception for hybrid encryption failures."""


class NoCipherMatchError(CryptoError):
    """No client encryption profile is supported by the server."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.client_profiles: list[str] = list(kwargs.get("client_profiles") or [])
        self.server_ciphers: list[str] = list(kwargs.get("server_ciphers") or [])
        super().__init__(*args)


class InvalidKeySizeError(CryptoError):
    """A symmetric key has the wrong length for the selected profile."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.expected: int | None = kwargs.get("expected")
        self.actual: int | None = kwargs.get("actual")
        super().__init__(*args)


class InvalidPublicKeyError(CryptoError):
    """The server public key is missing or malformed."""


class EncryptionFailedError(CryptoError):
    """Encrypting a payload failed."""


class DecryptionFailedError(CryptoError):
    """Decrypting a payload failed."""


class InvalidBase64Error(CryptoError):
    """The encrypted content is not valid base64."""
