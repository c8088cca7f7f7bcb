"""Hybrid RSA/AES encryption used for confidential RPC payloads.

A fresh symmetric key encrypts the json payload and the recorder's RSA public
key encrypts only that symmetric key. The result travels as an envelope of
``{cipher, salt, content}`` where ``salt`` is the hex encoded RSA block and
``content`` the base64 encoded AES ciphertext. Each key serves exactly one
request and its response.
"""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cryptography.hazmat.primitives.asymmetric import padding as asymmetric_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..exceptions import (
    DecryptionFailedError,
    EncryptionFailedError,
    InvalidBase64Error,
    InvalidKeySizeError,
    InvalidPublicKeyError,
    NoCipherMatchError,
)
from ..json import dumps as json_dumps
from ..json import loads as json_loads

_LOGGER = logging.getLogger(__name__)

BLOCK_SIZE = 16


class CipherMode(Enum):
    """Block cipher modes understood by the recorder."""

    CBC = "CBC"
    ECB = "ECB"


class EncryptionProfile(Enum):
    """Symmetric profiles offered to the recorder, in order of preference."""

    RPAC = ("RPAC-256", 32, CipherMode.CBC)
    AES = ("AES-128", 16, CipherMode.ECB)

    @property
    def cipher_name(self) -> str:
        """Return the name used on the wire."""
        return self.value[0]

    @property
    def key_length(self) -> int:
        """Return the symmetric key length in bytes."""
        return self.value[1]

    @property
    def mode(self) -> CipherMode:
        """Return the block cipher mode."""
        return self.value[2]


CLIENT_PROFILES: tuple[EncryptionProfile, ...] = (
    EncryptionProfile.RPAC,
    EncryptionProfile.AES,
)


@dataclass(frozen=True)
class EncryptedEnvelope:
    """Encrypted request as sent in the params of a secure call."""

    cipher: str
    salt: str
    content: str

    def to_params(self) -> dict[str, str]:
        """Return the envelope as rpc params."""
        return {"salt": self.salt, "cipher": self.cipher, "content": self.content}


@dataclass(frozen=True)
class EncryptionResult:
    """Envelope plus the call scoped key needed to read the response."""

    envelope: EncryptedEnvelope
    key: bytes
    profile: EncryptionProfile


class SymmetricSession:
    """Class for a single use symmetric encryption session."""

    def __init__(self, key: bytes, profile: EncryptionProfile) -> None:
        if len(key) != profile.key_length:
            raise InvalidKeySizeError(
                f"Key for {profile.cipher_name} must be {profile.key_length} bytes",
                expected=profile.key_length,
                actual=len(key),
            )
        if profile.mode is CipherMode.CBC:
            mode: modes.Mode = modes.CBC(bytes(BLOCK_SIZE))
        elif profile.mode is CipherMode.ECB:
            mode = modes.ECB()  # noqa: S305
        else:
            raise EncryptionFailedError(f"Unsupported cipher mode {profile.mode}")
        self.profile = profile
        self.cipher = Cipher(algorithms.AES(key), mode)

    def encrypt(self, data: bytes) -> str:
        """Encrypt the message, returning base64 text."""
        remainder = len(data) % BLOCK_SIZE
        if remainder:
            data += bytes(BLOCK_SIZE - remainder)
        encryptor = self.cipher.encryptor()
        try:
            encrypted = encryptor.update(data) + encryptor.finalize()
        except ValueError as ex:
            raise EncryptionFailedError(f"AES encryption failed: {ex}") from ex
        return base64.b64encode(encrypted).decode()

    def decrypt(self, data: str | bytes) -> bytes:
        """Decrypt base64 text, stripping the trailing zero padding."""
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as ex:
            raise InvalidBase64Error(f"Encrypted content is not base64: {ex}") from ex
        if len(raw) % BLOCK_SIZE:
            raise DecryptionFailedError(
                f"Encrypted content length {len(raw)} is not a multiple of "
                f"{BLOCK_SIZE}"
            )
        decryptor = self.cipher.decryptor()
        try:
            decrypted = decryptor.update(raw) + decryptor.finalize()
        except ValueError as ex:
            raise DecryptionFailedError(f"AES decryption failed: {ex}") from ex
        return strip_zero_padding(decrypted)


def strip_zero_padding(data: bytes) -> bytes:
    """Remove trailing zero bytes, an all zero buffer becomes empty."""
    return data.rstrip(b"\x00")


def normalize_key(key: bytes, length: int) -> bytes:
    """Zero pad or truncate ``key`` to exactly ``length`` bytes."""
    if len(key) < length:
        return key + bytes(length - len(key))
    return key[:length]


def parse_public_key(pub: str) -> tuple[int, int]:
    """Parse a ``N:<hex>,E:<hex>`` public key into modulus and exponent."""
    parts: dict[str, str] = {}
    for item in pub.split(","):
        name, sep, value = item.strip().partition(":")
        if not sep:
            raise InvalidPublicKeyError(f"Malformed public key component {item!r}")
        parts[name.strip().upper()] = value.strip()
    try:
        modulus = int(parts["N"], 16)
        exponent = int(parts["E"], 16)
    except KeyError as ex:
        raise InvalidPublicKeyError(f"Public key is missing {ex}") from ex
    except ValueError as ex:
        raise InvalidPublicKeyError(f"Public key is not hex: {ex}") from ex
    if modulus <= 0 or exponent <= 0:
        raise InvalidPublicKeyError("Public key components must be positive")
    return modulus, exponent


def select_profile(server_ciphers: Iterable[str]) -> EncryptionProfile:
    """Return the first client profile the server also supports."""
    server_ciphers = list(server_ciphers)
    for profile in CLIENT_PROFILES:
        if profile.cipher_name in server_ciphers:
            return profile
    client_names = [profile.cipher_name for profile in CLIENT_PROFILES]
    raise NoCipherMatchError(
        f"No common cipher, client supports {client_names}, "
        f"server supports {server_ciphers}",
        client_profiles=client_names,
        server_ciphers=server_ciphers,
    )


def generate_symmetric_key(length: int) -> bytes:
    """Return a fresh random key of ``length`` ascii digits.

    The recorder web client uses decimal digit keys with a non zero leading digit.
    """
    if length <= 0:
        raise InvalidKeySizeError(
            "Key length must be positive", expected=None, actual=length
        )
    first = str(secrets.randbelow(9) + 1)
    rest = "".join(str(secrets.randbelow(10)) for _ in range(length - 1))
    return (first + rest).encode()


def encapsulate_key(key: bytes, modulus: int, exponent: int) -> str:
    """RSA encrypt ``key`` with PKCS#1 v1.5 padding, returning lowercase hex."""
    try:
        public_key = rsa.RSAPublicNumbers(exponent, modulus).public_key()
    except ValueError as ex:
        raise InvalidPublicKeyError(f"Unusable RSA public key: {ex}") from ex
    try:
        encrypted = public_key.encrypt(key, asymmetric_padding.PKCS1v15())
    except ValueError as ex:
        raise EncryptionFailedError(f"RSA encryption failed: {ex}") from ex
    return encrypted.hex()


def encrypt_payload(data: bytes, key: bytes, profile: EncryptionProfile) -> str:
    """Encrypt ``data`` with ``key`` using ``profile``, returning base64 text."""
    return SymmetricSession(key, profile).encrypt(data)


def decrypt_payload(content: str, key: bytes, profile: EncryptionProfile) -> bytes:
    """Decrypt base64 ``content`` with ``key`` using ``profile``."""
    return SymmetricSession(key, profile).decrypt(content)


def encrypt(
    payload: Any,
    server_ciphers: Iterable[str],
    modulus: int,
    exponent: int,
) -> EncryptionResult:
    """Encrypt ``payload`` for the server, returning envelope, key and profile."""
    profile = select_profile(server_ciphers)
    _LOGGER.debug("Selected encryption profile %s", profile.cipher_name)
    key = generate_symmetric_key(profile.key_length)
    salt = encapsulate_key(key, modulus, exponent)
    content = encrypt_payload(json_dumps(payload).encode(), key, profile)
    return EncryptionResult(
        envelope=EncryptedEnvelope(
            cipher=profile.cipher_name, salt=salt, content=content
        ),
        key=key,
        profile=profile,
    )


def decrypt(content: str, key: bytes, profile: EncryptionProfile) -> Any:
    """Decrypt a response body and decode it as json."""
    key = normalize_key(key, profile.key_length)
    cleartext = decrypt_payload(content, key, profile)
    try:
        text = cleartext.decode()
    except UnicodeDecodeError:
        _LOGGER.debug("Decrypted content is not utf-8, decoding as latin-1")
        text = cleartext.decode("latin-1")
    try:
        return json_loads(text)
    except ValueError as ex:
        raise DecryptionFailedError(
            f"Decrypted content is not valid json: {ex}"
        ) from ex
