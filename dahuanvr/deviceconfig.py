"""Configuration for connecting to a recorder.

A :class:`DeviceConfig` holds everything needed to reach one recorder and can
be stored and restored as a plain dict:

>>> from dahuanvr import Credentials, DeviceConfig
>>> config = DeviceConfig(
>>>     "192.168.1.108",
>>>     credentials=Credentials("http://192.168.1.108", "admin", "secret"),
>>> )
>>> print(config.base_url)
http://192.168.1.108
>>> config_dict = config.to_dict()
>>> later_config = DeviceConfig.from_dict(config_dict)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Self

from aiohttp import ClientSession
from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.types import SerializationStrategy
from yarl import URL

from .credentials import Credentials
from .exceptions import DahuaException
from .json import DataClassJSONMixin

_LOGGER = logging.getLogger(__name__)


class _DeviceConfigBaseMixin(DataClassJSONMixin):
    """Base class for serialization mixin."""

    class Config(BaseConfig):
        """Serialization config."""

        omit_none = True


class _DoNotSerialize(SerializationStrategy):
    def serialize(self, value: Any) -> None:
        return None

    def deserialize(self, value: Any) -> None:
        return None


@dataclass
class DeviceConfig(_DeviceConfigBaseMixin):
    """Class to represent paramaters that determine how to connect to a recorder."""

    DEFAULT_TIMEOUT = 10
    #: IP address or hostname
    host: str
    #: Timeout for querying the device
    timeout: int | None = DEFAULT_TIMEOUT
    #: Override the default http(s) port to support port forwarding
    port_override: int | None = None
    #: True if the recorder is reached over https
    https: bool = False
    #: Credentials for the recorder account
    credentials: Credentials | None = None
    #: Override the keep alive interval announced by the recorder at login
    keep_alive_interval: int | None = None
    #: Refuse to log in when the recorder asks for an unknown digest type
    strict_digest: bool = False

    # compare=False will be excluded from object comparison.
    #: Set a custom http_client for the device to use.
    http_client: ClientSession | None = field(
        default=None,
        compare=False,
        metadata=field_options(serialization_strategy=_DoNotSerialize()),
    )

    def __pre_serialize__(self) -> Self:
        return replace(self, http_client=None)

    @property
    def base_url(self) -> URL:
        """Return the root url of the recorder."""
        return URL.build(
            scheme="https" if self.https else "http",
            host=self.host,
            port=self.port_override,
        )

    @staticmethod
    def from_credentials(
        credentials: Credentials, **kwargs: Any
    ) -> DeviceConfig:
        """Return a config for the recorder named by ``credentials.server_url``."""
        try:
            url = URL(credentials.server_url)
            if not url.host:
                # Bare hosts like "192.168.1.108:8080" parse as a path
                url = URL(f"http://{credentials.server_url}")
        except ValueError as ex:
            raise DahuaException(
                f"Invalid server url: {credentials.server_url!r}"
            ) from ex
        if not url.host:
            raise DahuaException(f"Invalid server url: {credentials.server_url!r}")
        port = url.port if url.explicit_port else None
        _LOGGER.debug("Config for %s port %s", url.host, port)
        return DeviceConfig(
            host=url.host,
            port_override=port,
            https=url.scheme == "https",
            credentials=credentials,
            **kwargs,
        )
