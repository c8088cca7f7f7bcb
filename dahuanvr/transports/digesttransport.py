"""Implementation of the legacy CGI channel with RFC 2617 digest authentication.

Every authenticated request probes the resource without credentials first so
that a fresh nonce is used each time and the nonce count stays ``00000001``.
"""

from __future__ import annotations

import hashlib
import logging
import re
import secrets
import string
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from yarl import URL

from ..credentials import Credentials
from ..exceptions import (
    AuthenticationError,
    InvalidDigestHeaderError,
    MissingAuthHeaderError,
    RequestFailedError,
)
from .basetransport import BaseTransport

if TYPE_CHECKING:
    from ..deviceconfig import DeviceConfig
    from ..httpclient import HttpClient

_LOGGER = logging.getLogger(__name__)

PROBE_PATH = "/cgi-bin/magicBox.cgi?action=getLanguageCaps"
USER_AGENT = "DahuaNVR/1.0"
NONCE_COUNT = "00000001"
CNONCE_LENGTH = 8

_PARAM_RE = re.compile(r'(\w+)=(?:"([^"]*)"|([^,\s]+))')
_CNONCE_ALPHABET = string.ascii_lowercase + string.digits


def _md5_hash(payload: bytes) -> str:
    return hashlib.md5(payload).hexdigest()  # noqa: S324


@dataclass(frozen=True)
class DigestChallenge:
    """Parsed ``WWW-Authenticate: Digest`` challenge."""

    realm: str
    nonce: str
    qop: str | None = None
    opaque: str | None = None
    algorithm: str | None = None

    @staticmethod
    def from_header(header: str) -> DigestChallenge:
        """Parse the value of a WWW-Authenticate header."""
        value = header.strip()
        if value[:6].lower() == "digest":
            value = value[6:]
        params: dict[str, str] = {}
        for match in _PARAM_RE.finditer(value):
            name, quoted, bare = match.groups()
            params[name.lower()] = quoted if quoted is not None else bare
        if not params.get("realm") or not params.get("nonce"):
            raise InvalidDigestHeaderError(
                f"Digest challenge without realm or nonce: {header!r}"
            )
        return DigestChallenge(
            realm=params["realm"],
            nonce=params["nonce"],
            qop=_select_qop(params.get("qop")),
            opaque=params.get("opaque"),
            algorithm=params.get("algorithm"),
        )


def _select_qop(qop: str | None) -> str | None:
    if not qop:
        return None
    options = [option.strip() for option in qop.split(",") if option.strip()]
    if "auth" in options:
        return "auth"
    return options[0] if options else None


def generate_cnonce() -> str:
    """Return a random client nonce."""
    return "".join(secrets.choice(_CNONCE_ALPHABET) for _ in range(CNONCE_LENGTH))


def digest_response(
    challenge: DigestChallenge,
    credentials: Credentials,
    method: str,
    uri: str,
    *,
    cnonce: str,
    nc: str = NONCE_COUNT,
) -> str:
    """Return the lowercase hex digest response for ``challenge``."""
    ha1 = _md5_hash(
        f"{credentials.username}:{challenge.realm}:{credentials.password}".encode()
    )
    ha2 = _md5_hash(f"{method}:{uri}".encode())
    if challenge.qop:
        return _md5_hash(
            f"{ha1}:{challenge.nonce}:{nc}:{cnonce}:{challenge.qop}:{ha2}".encode()
        )
    return _md5_hash(f"{ha1}:{challenge.nonce}:{ha2}".encode())


def build_authorization(
    challenge: DigestChallenge,
    credentials: Credentials,
    method: str,
    uri: str,
    *,
    cnonce: str | None = None,
) -> str:
    """Return the value of the Authorization header answering ``challenge``."""
    cnonce = cnonce or generate_cnonce()
    response = digest_response(challenge, credentials, method, uri, cnonce=cnonce)
    header = (
        f'Digest username="{credentials.username}", realm="{challenge.realm}", '
        f'nonce="{challenge.nonce}", uri="{uri}", response="{response}"'
    )
    if challenge.qop:
        header += f', qop={challenge.qop}, nc={NONCE_COUNT}, cnonce="{cnonce}"'
    if challenge.opaque:
        header += f', opaque="{challenge.opaque}"'
    if challenge.algorithm:
        header += f", algorithm={challenge.algorithm}"
    return header


class DigestTransport(BaseTransport):
    """Implementation of the digest authenticated CGI channel."""

    COMMON_HEADERS = {"User-Agent": USER_AGENT}

    def __init__(
        self,
        *,
        config: DeviceConfig,
        http_client: HttpClient | None = None,
    ) -> None:
        super().__init__(config=config, http_client=http_client)
        self._authenticated = False

    @property
    def is_authenticated(self) -> bool:
        """Return True if the last authenticated request succeeded."""
        return self._authenticated

    async def probe(self, path: str = PROBE_PATH) -> DigestChallenge | None:
        """Request ``path`` without credentials and return the challenge.

        Returns None when the recorder serves the resource without one.
        """
        status, _, headers = await self._http_client.get(
            self._app_url.join(_relative(path)), headers=self.COMMON_HEADERS
        )
        if status == 200:
            return None
        if status != 401:
            raise RequestFailedError(
                f"Unexpected status {status} probing {path} on {self._host}",
                status=status,
            )
        return self._parse_challenge(headers)

    def respond(
        self, challenge: DigestChallenge, method: str, uri: str
    ) -> str:
        """Return the Authorization header for ``method`` and ``uri``."""
        if (credentials := self._config.credentials) is None:
            raise AuthenticationError(f"No credentials configured for {self._host}")
        return build_authorization(challenge, credentials, method, uri)

    async def get(self, path: str) -> str:
        """Perform an authenticated CGI GET of ``path`` and return the body."""
        url = self._app_url.join(_relative(path))
        status, body, headers = await self._http_client.get(
            url, headers=self.COMMON_HEADERS
        )
        if status == 200:
            self._authenticated = True
            return body
        if status != 401:
            raise RequestFailedError(
                f"Unexpected status {status} requesting {path} on {self._host}",
                status=status,
            )
        challenge = self._parse_challenge(headers)
        uri = url.raw_path_qs
        authorization = self.respond(challenge, "GET", uri)
        status, body, _ = await self._http_client.get(
            url, headers={**self.COMMON_HEADERS, "Authorization": authorization}
        )
        if status != 200:
            self._authenticated = False
            raise RequestFailedError(
                f"Digest authenticated request to {path} on {self._host} "
                f"failed with status {status}",
                status=status,
            )
        self._authenticated = True
        return body

    async def authenticate(self) -> bool:
        """Authenticate against the probe endpoint."""
        await self.get(PROBE_PATH)
        _LOGGER.debug("Digest authentication to %s succeeded", self._host)
        return True

    def _parse_challenge(self, headers: Mapping[str, str]) -> DigestChallenge:
        header = headers.get("WWW-Authenticate")
        if not header:
            raise MissingAuthHeaderError(
                f"{self._host} returned 401 without a WWW-Authenticate header"
            )
        return DigestChallenge.from_header(header)

    async def reset(self) -> None:
        """Reset internal state."""
        self._authenticated = False

    async def close(self) -> None:
        """Close the http client and reset internal state."""
        await self.reset()
        await self._http_client.close()


def _relative(path: str) -> URL:
    return URL(path.lstrip("/"))
