"""Base class for all transport implementations.

All transport classes must derive from this to implement the common interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from yarl import URL

from ..httpclient import HttpClient

if TYPE_CHECKING:
    from ..deviceconfig import DeviceConfig


class BaseTransport(ABC):
    """Base class for the recorder http transports."""

    DEFAULT_TIMEOUT = 10
    DEFAULT_HTTP_PORT = 80
    DEFAULT_HTTPS_PORT = 443

    def __init__(
        self,
        *,
        config: DeviceConfig,
        http_client: HttpClient | None = None,
    ) -> None:
        """Create a transport object."""
        self._config = config
        self._host = config.host
        self._port = config.port_override or self.default_port
        if not config.timeout:
            config.timeout = self.DEFAULT_TIMEOUT
        self._timeout = config.timeout
        self._http_client = http_client or HttpClient(config)
        self._app_url = URL.build(
            scheme="https" if config.https else "http",
            host=self._host,
            port=self._port,
        )

    @property
    def default_port(self) -> int:
        """The default port for the transport."""
        return self.DEFAULT_HTTPS_PORT if self._config.https else self.DEFAULT_HTTP_PORT

    @property
    def app_url(self) -> URL:
        """Root url of the recorder."""
        return self._app_url

    @property
    def http_client(self) -> HttpClient:
        """Return the shared http client."""
        return self._http_client

    @abstractmethod
    async def close(self) -> None:
        """Close the transport.  Abstract method to be overriden."""

    @abstractmethod
    async def reset(self) -> None:
        """Reset internal state."""
