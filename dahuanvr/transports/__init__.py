"""Package containing the recorder transports."""

from .basetransport import BaseTransport
from .digesttransport import DigestChallenge, DigestTransport
from .encryption import EncryptedEnvelope, EncryptionProfile, SymmetricSession
from .rpctransport import RpcEndpoint, RpcTransport

__all__ = [
    "BaseTransport",
    "DigestChallenge",
    "DigestTransport",
    "EncryptedEnvelope",
    "EncryptionProfile",
    "RpcEndpoint",
    "RpcTransport",
    "SymmetricSession",
]
