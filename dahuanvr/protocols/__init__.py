"""Package containing the login protocols."""

from .dualprotocol import DualAuthResult, DualProtocol
from .rpclogin import AuthChallenge, LoginResult, LoginState, RpcLogin

__all__ = [
    "AuthChallenge",
    "DualAuthResult",
    "DualProtocol",
    "LoginResult",
    "LoginState",
    "RpcLogin",
]
