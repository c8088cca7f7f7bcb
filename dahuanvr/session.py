"""Session facade owning every collaborator of one recorder connection.

>>> from dahuanvr import Credentials, NvrSession
>>> session = NvrSession.from_credentials(
>>>     Credentials("http://192.168.1.108", "admin", "secret")
>>> )
>>> result = await session.connect()
>>> print(result.status)
CGI: ok, RPC: ok
>>> for camera in await session.refresh_cameras():
>>>     print(camera.name, camera.connection_status)
Front door Connected
>>> await session.disconnect()

Sessions hold no global state, several recorders can be used side by side.
"""

from __future__ import annotations

import logging
from typing import Any

from .camera import Camera, CameraStore, DeviceInfo
from .credentials import Credentials
from .cryptoconfig import CryptoParameterRegistry
from .deviceconfig import DeviceConfig
from .exceptions import AuthenticationError, DahuaException
from .httpclient import HttpClient
from .modules import CameraModule, ConfigManager, Security, System
from .protocols.dualprotocol import DualAuthResult, DualProtocol
from .protocols.rpclogin import RpcLogin
from .statuspoller import StatusPoller
from .storage import AuthStore, EndpointRegistry, NvrEndpoint, SecureStore
from .taskregistry import TaskRegistry
from .transports.digesttransport import DigestTransport
from .transports.rpctransport import RpcTransport

_LOGGER = logging.getLogger(__name__)


class NvrSession:
    """Connection to one recorder over its CGI and rpc channels."""

    def __init__(
        self,
        config: DeviceConfig,
        *,
        store: SecureStore | None = None,
    ) -> None:
        self._config = config
        self._http_client = HttpClient(config)
        self._tasks = TaskRegistry(config.host)
        self._crypto = CryptoParameterRegistry()

        self._rpc = RpcTransport(
            config=config, crypto=self._crypto, http_client=self._http_client
        )
        self._cgi = DigestTransport(config=config, http_client=self._http_client)
        self._login = RpcLogin(
            self._rpc,
            tasks=self._tasks,
            strict=config.strict_digest,
            keep_alive_interval=config.keep_alive_interval,
        )
        self._dual = DualProtocol(self._cgi, self._login)

        self.security = Security(self._rpc)
        self.camera = CameraModule(self._rpc)
        self.system = System(self._rpc)
        self.config_manager = ConfigManager(self._rpc)

        self._cameras = CameraStore()
        self._poller = StatusPoller(self._cameras, self.camera, tasks=self._tasks)
        self._auth_store = AuthStore(store) if store is not None else None
        self._last_result: DualAuthResult | None = None

    @staticmethod
    def from_credentials(
        credentials: Credentials,
        *,
        store: SecureStore | None = None,
        **kwargs: Any,
    ) -> NvrSession:
        """Return a session for the recorder named by the credentials."""
        return NvrSession(
            DeviceConfig.from_credentials(credentials, **kwargs), store=store
        )

    @staticmethod
    def from_endpoint(
        endpoint: NvrEndpoint,
        *,
        store: SecureStore | None = None,
        **kwargs: Any,
    ) -> NvrSession:
        """Return a session for a saved endpoint."""
        return NvrSession.from_credentials(endpoint.credentials, store=store, **kwargs)

    @staticmethod
    async def restore(store: SecureStore, **kwargs: Any) -> NvrSession | None:
        """Reconnect with persisted credentials, if they are still valid."""
        auth_store = AuthStore(store)
        if (credentials := auth_store.load()) is None:
            return None
        session = NvrSession.from_credentials(credentials, store=store, **kwargs)
        result = await session.connect()
        if not result.usable:
            _LOGGER.debug(
                "Persisted credentials no longer work: %s", result.rpc_error
            )
            auth_store.clear()
            await session.close()
            return None
        return session

    @staticmethod
    async def connect_default(
        registry: EndpointRegistry,
        *,
        store: SecureStore | None = None,
        **kwargs: Any,
    ) -> NvrSession | None:
        """Connect to the default endpoint and record the outcome."""
        if (endpoint := registry.default) is None:
            return None
        session = NvrSession.from_endpoint(endpoint, store=store, **kwargs)
        result = await session.connect()
        registry.update_status(
            endpoint.id,
            rpc_success=result.rpc_success,
            cgi_success=result.cgi_success,
        )
        if not result.usable:
            await session.close()
            return None
        return session

    @property
    def config(self) -> DeviceConfig:
        """Return the connection config."""
        return self._config

    @property
    def credentials(self) -> Credentials | None:
        """Return the credentials used to connect."""
        return self._config.credentials

    @property
    def crypto(self) -> CryptoParameterRegistry:
        """Return the crypto parameter registry."""
        return self._crypto

    @property
    def transport(self) -> RpcTransport:
        """Return the rpc transport."""
        return self._rpc

    @property
    def cgi(self) -> DigestTransport:
        """Return the CGI transport."""
        return self._cgi

    @property
    def login(self) -> RpcLogin:
        """Return the rpc login."""
        return self._login

    @property
    def poller(self) -> StatusPoller:
        """Return the status poller."""
        return self._poller

    @property
    def last_result(self) -> DualAuthResult | None:
        """Return the result of the last connection attempt."""
        return self._last_result

    @property
    def is_connected(self) -> bool:
        """Return True if the rpc channel is logged in."""
        return self._dual.has_rpc_session

    @property
    def cameras(self) -> list[Camera]:
        """Return the cached cameras."""
        return self._cameras.cameras

    async def connect(self, credentials: Credentials | None = None) -> DualAuthResult:
        """Authenticate both channels.

        The session is usable when the rpc channel authenticated, the outcome of
        the CGI channel is reported but not required.
        """
        if credentials is not None:
            self._config.credentials = credentials
        if self._config.credentials is None:
            raise AuthenticationError(
                f"No credentials configured for {self._config.host}"
            )

        result = await self._dual.authenticate(self._config.credentials)
        self._last_result = result
        if result.usable and self._auth_store is not None:
            self._auth_store.save(self._config.credentials)
        return result

    async def reconnect(self) -> DualAuthResult:
        """Authenticate again with the current credentials."""
        _LOGGER.debug("Reconnecting to %s", self._config.host)
        await self._poller.stop_all_polling()
        await self._dual.disconnect()
        self._crypto.reset()
        return await self.connect()

    async def refresh_cameras(self) -> list[Camera]:
        """Fetch every camera and replace the cache."""
        cameras = await self.camera.get_all_cameras()
        self._cameras.replace_all(cameras)
        return cameras

    def find_camera(self, camera_id: str) -> Camera | None:
        """Return the cached camera with ``camera_id``."""
        return self._cameras.find_by_id(camera_id)

    async def update_cameras(
        self, cameras: list[Camera | dict[str, Any]]
    ) -> list[Camera]:
        """Update cameras, refresh the cache and watch the first one reconnect."""
        await self.camera.set_cameras(cameras)
        refreshed = await self.refresh_cameras()
        if cameras:
            first = cameras[0]
            device_id = (
                first.get("DeviceID") if isinstance(first, dict) else first.device_id
            )
            if device_id and (updated := self._cameras.find_by_device_id(device_id)):
                self._poller.start_polling(updated.id)
        return refreshed

    async def add_cameras(
        self, devices: list[DeviceInfo | dict[str, Any]]
    ) -> list[Camera]:
        """Add remote devices and refresh the cache."""
        await self.camera.add_cameras(devices)
        return await self.refresh_cameras()

    async def delete_cameras(self, channels: list[int]) -> list[Camera]:
        """Remove cameras and refresh the cache."""
        for channel in channels:
            if (camera := self._cameras.find_by_channel(channel)) is not None:
                await self._poller.stop_polling(camera.id)
        await self.camera.delete_cameras(channels)
        return await self.refresh_cameras()

    async def _teardown(self) -> None:
        await self._poller.stop_all_polling()
        await self._dual.disconnect()
        await self._tasks.stop_all()
        self._crypto.reset()
        self._cameras.clear()

    async def disconnect(self) -> None:
        """Log out of both channels and forget persisted credentials."""
        await self._teardown()
        if self._auth_store is not None:
            self._auth_store.clear()

    async def close(self) -> None:
        """Log out and close the http client, keeping persisted credentials."""
        try:
            await self._teardown()
        except DahuaException as ex:
            _LOGGER.debug("Error disconnecting from %s: %s", self._config.host, ex)
        await self._http_client.close()

    async def __aenter__(self) -> NvrSession:
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()
