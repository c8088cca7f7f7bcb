"""Crypto capabilities negotiated with one recorder."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace

from .transports.encryption import parse_public_key

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CryptoParameters:
    """Immutable snapshot of the recorder crypto parameters."""

    asymmetric: str | None = None
    ciphers: tuple[str, ...] = field(default_factory=tuple)
    public_key: str | None = None
    modulus: int | None = None
    exponent: int | None = None

    @property
    def has_public_key(self) -> bool:
        """Return True if a parsed public key is available."""
        return self.modulus is not None and self.exponent is not None


class CryptoParameterRegistry:
    """Read mostly cache of the crypto parameters for one session.

    Readers get an immutable snapshot so a modulus is never seen together with
    the exponent of a different update.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._parameters = CryptoParameters()

    @property
    def parameters(self) -> CryptoParameters:
        """Return the current snapshot."""
        return self._parameters

    def update(
        self,
        *,
        asymmetric: str | None = None,
        ciphers: list[str] | tuple[str, ...] | None = None,
        public_key: str | None = None,
    ) -> CryptoParameters:
        """Merge the supplied fields into the registry.

        A new public key is parsed before the lock is taken and replaces
        modulus and exponent together. Parse failures leave the registry as is.
        """
        parsed = parse_public_key(public_key) if public_key is not None else None
        with self._lock:
            current = self._parameters
            changes: dict = {}
            if asymmetric is not None:
                changes["asymmetric"] = asymmetric
            if ciphers is not None:
                changes["ciphers"] = tuple(ciphers)
            if parsed is not None:
                changes["public_key"] = public_key
                changes["modulus"], changes["exponent"] = parsed
            self._parameters = replace(current, **changes)
            _LOGGER.debug("Updated crypto parameters: %s", sorted(changes))
            return self._parameters

    def reset(self) -> None:
        """Clear all parameters."""
        with self._lock:
            self._parameters = CryptoParameters()
