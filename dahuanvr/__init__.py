"""Python interface for Dahua network video recorders.

A session authenticates the legacy CGI channel and the JSON-RPC channel of a
recorder side by side::

>>> from dahuanvr import Credentials, NvrSession
>>> session = NvrSession.from_credentials(
>>>     Credentials("http://192.168.1.108", "admin", "secret")
>>> )
>>> result = await session.connect()
>>> print(result.usable)
True

Errors are raised as subclasses of `DahuaException` and are expected
to be handled by the user of the library.
"""

from importlib.metadata import PackageNotFoundError, version

from dahuanvr.camera import Camera, CameraState, DeviceInfo
from dahuanvr.credentials import Credentials
from dahuanvr.cryptoconfig import CryptoParameterRegistry, CryptoParameters
from dahuanvr.deviceconfig import DeviceConfig
from dahuanvr.exceptions import (
    AuthenticationError,
    CryptoError,
    DahuaException,
    ProtocolError,
    RpcError,
    TimeoutError,
)
from dahuanvr.protocols import DualAuthResult, LoginState
from dahuanvr.session import NvrSession
from dahuanvr.statuspoller import PollOutcome, StatusPoller
from dahuanvr.storage import (
    AuthStore,
    EndpointRegistry,
    MemorySecureStore,
    NvrEndpoint,
    SecureStore,
)

try:
    __version__ = version("python-dahuanvr")
except PackageNotFoundError:
    from dahuanvr.version import __version__


__all__ = [
    "AuthStore",
    "AuthenticationError",
    "Camera",
    "CameraState",
    "Credentials",
    "CryptoError",
    "CryptoParameterRegistry",
    "CryptoParameters",
    "DahuaException",
    "DeviceConfig",
    "DeviceInfo",
    "DualAuthResult",
    "EndpointRegistry",
    "LoginState",
    "MemorySecureStore",
    "NvrEndpoint",
    "NvrSession",
    "PollOutcome",
    "ProtocolError",
    "RpcError",
    "SecureStore",
    "StatusPoller",
    "TimeoutError",
]
