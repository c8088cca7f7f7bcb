"""Camera records reported by the recorder and the session side cache of them.

The records follow the recorder's own key names on the wire, for example
``{"Channel": 0, "DeviceID": "uuid:...", "DeviceInfo": {...}, "Enable": true}``,
and are exposed with python attribute names.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace

from mashumaro import field_options
from mashumaro.config import BaseConfig

from .json import DataClassJSONMixin

_LOGGER = logging.getLogger(__name__)


class _CameraBaseMixin(DataClassJSONMixin):
    """Base class for serialization mixin."""

    class Config(BaseConfig):
        """Serialization config."""

        omit_none = True
        serialize_by_alias = True


@dataclass
class VideoInput(_CameraBaseMixin):
    """Video input of a remote device."""

    enable: bool = field(default=True, metadata=field_options(alias="Enable"))
    name: str | None = field(default=None, metadata=field_options(alias="Name"))
    main_stream_url: str | None = field(
        default=None, metadata=field_options(alias="MainStreamUrl")
    )
    extra_stream_url: str | None = field(
        default=None, metadata=field_options(alias="ExtraStreamUrl")
    )
    service_type: str | None = field(
        default=None, metadata=field_options(alias="ServiceType")
    )
    buf_delay: int | None = field(
        default=None, metadata=field_options(alias="BufDelay")
    )


@dataclass
class DeviceInfo(_CameraBaseMixin):
    """Connection details of the remote device behind a channel."""

    address: str = field(default="", metadata=field_options(alias="Address"))
    enable: bool = field(default=False, metadata=field_options(alias="Enable"))
    port: int = field(default=37777, metadata=field_options(alias="Port"))
    http_port: int = field(default=80, metadata=field_options(alias="HttpPort"))
    https_port: int = field(default=443, metadata=field_options(alias="HttpsPort"))
    rtsp_port: int | None = field(
        default=None, metadata=field_options(alias="RtspPort")
    )
    name: str | None = field(default=None, metadata=field_options(alias="Name"))
    user_name: str | None = field(
        default=None, metadata=field_options(alias="UserName")
    )
    password: str | None = field(
        default=None, repr=False, metadata=field_options(alias="Password")
    )
    login_type: int | None = field(
        default=None, metadata=field_options(alias="LoginType")
    )
    serial_no: str | None = field(
        default=None, metadata=field_options(alias="SerialNo")
    )
    mac: str | None = field(default=None, metadata=field_options(alias="Mac"))
    device_class: str | None = field(
        default=None, metadata=field_options(alias="DeviceClass")
    )
    device_type: str | None = field(
        default=None, metadata=field_options(alias="DeviceType")
    )
    protocol_type: str | None = field(
        default=None, metadata=field_options(alias="ProtocolType")
    )
    encryption: int | None = field(
        default=None, metadata=field_options(alias="Encryption")
    )
    audio_input_channels: int | None = field(
        default=None, metadata=field_options(alias="AudioInputChannels")
    )
    video_input_channels: int | None = field(
        default=None, metadata=field_options(alias="VideoInputChannels")
    )
    poe: bool | None = field(default=None, metadata=field_options(alias="PoE"))
    poe_port: int | None = field(
        default=None, metadata=field_options(alias="PoEPort")
    )
    video_inputs: list[VideoInput] | None = field(
        default=None, metadata=field_options(alias="VideoInputs")
    )


@dataclass
class CameraState(_CameraBaseMixin):
    """Connection state of one channel."""

    channel: int
    connection_state: str | None = field(
        default=None, metadata=field_options(alias="connectionState")
    )


@dataclass
class Camera(_CameraBaseMixin):
    """One logical camera channel of the recorder."""

    channel: int = field(metadata=field_options(alias="Channel"))
    unique_channel: int = field(metadata=field_options(alias="UniqueChannel"))
    device_id: str = field(default="", metadata=field_options(alias="DeviceID"))
    device_info: DeviceInfo = field(
        default_factory=DeviceInfo, metadata=field_options(alias="DeviceInfo")
    )
    enable: bool = field(default=False, metadata=field_options(alias="Enable"))
    type: str = field(default="", metadata=field_options(alias="Type"))
    video_stream: str | None = field(
        default=None, metadata=field_options(alias="VideoStream")
    )
    video_standard: str | None = field(
        default=None, metadata=field_options(alias="VideoStandard")
    )
    show_status: str | None = field(
        default=None, metadata=field_options(alias="showStatus")
    )

    @property
    def id(self) -> str:
        """Return the stable id of the camera."""
        return f"Channel{self.unique_channel}"

    @property
    def name(self) -> str:
        """Return the display name of the camera."""
        return self.device_info.name or f"Camera {self.unique_channel + 1}"

    @property
    def connection_status(self) -> str | None:
        """Return the last known connection state."""
        return self.show_status


class CameraStore:
    """Cache of the cameras of one session.

    The list is replaced wholesale on refresh and individual statuses are
    patched by the status poller.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cameras: list[Camera] = []

    @property
    def cameras(self) -> list[Camera]:
        """Return a copy of the cached cameras."""
        with self._lock:
            return list(self._cameras)

    def replace_all(self, cameras: list[Camera]) -> None:
        """Replace the cached cameras."""
        with self._lock:
            self._cameras = list(cameras)
        _LOGGER.debug("Camera cache now holds %s cameras", len(cameras))

    def clear(self) -> None:
        """Forget all cameras."""
        self.replace_all([])

    def find_by_id(self, camera_id: str) -> Camera | None:
        """Return the camera with ``camera_id``."""
        return next((c for c in self.cameras if c.id == camera_id), None)

    def find_by_channel(self, channel: int) -> Camera | None:
        """Return the camera on unique ``channel``."""
        return next((c for c in self.cameras if c.unique_channel == channel), None)

    def find_by_device_id(self, device_id: str) -> Camera | None:
        """Return the camera whose remote device is ``device_id``."""
        return next((c for c in self.cameras if c.device_id == device_id), None)

    def update_status(self, camera_id: str, status: str | None) -> bool:
        """Patch the status of one camera, returning False if it is unknown."""
        with self._lock:
            for index, camera in enumerate(self._cameras):
                if camera.id == camera_id:
                    self._cameras[index] = replace(camera, show_status=status)
                    _LOGGER.debug(
                        "Camera %s status %s -> %s",
                        camera.name,
                        camera.show_status,
                        status,
                    )
                    return True
        return False
