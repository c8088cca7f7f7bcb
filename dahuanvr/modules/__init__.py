"""Package containing the rpc method groups."""

from .camera import CameraModule
from .configmanager import ConfigManager
from .rpcmodule import RpcModule
from .security import EncryptInfo, Security
from .system import System

__all__ = [
    "CameraModule",
    "ConfigManager",
    "EncryptInfo",
    "RpcModule",
    "Security",
    "System",
]
