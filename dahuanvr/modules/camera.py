"""Implementation of the LogicDeviceManager camera rpc methods."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mashumaro.exceptions import InvalidFieldValue, MissingField

from ..camera import Camera, CameraState, DeviceInfo
from ..exceptions import InvalidServerResponseError
from .rpcmodule import RpcModule

_LOGGER = logging.getLogger(__name__)

ALL_CHANNELS = -1


class CameraModule(RpcModule):
    """Implementation of the camera management rpc methods."""

    PREFIX = "LogicDeviceManager"

    async def get_camera_states(self) -> list[CameraState]:
        """Return the connection state of every channel."""
        params = await self._query("getCameraState", {"uniqueChannels": [ALL_CHANNELS]})
        states = params.get("states")
        if not isinstance(states, list):
            raise InvalidServerResponseError("getCameraState returned no states")
        try:
            return [CameraState.from_dict(state) for state in states]
        except (MissingField, InvalidFieldValue) as ex:
            raise InvalidServerResponseError(f"Invalid camera state: {ex}") from ex

    async def get_all_cameras(self) -> list[Camera]:
        """Return every camera with its current connection state."""
        session_id = self._require_session()
        await self._prepare_encryption()
        batch = [
            {
                "method": self._method("getCameraAll"),
                "id": 1,
                "session": session_id,
            }
        ]
        responses, states = await asyncio.gather(
            self._transport.send_encrypted(batch),
            self.get_camera_states(),
        )
        if not isinstance(responses, list) or not responses:
            raise InvalidServerResponseError("No camera data received")
        first = responses[0]
        raw_cameras = None
        if isinstance(first, dict) and isinstance(params := first.get("params"), dict):
            raw_cameras = params.get("camera")
        if not isinstance(raw_cameras, list):
            raise InvalidServerResponseError("getCameraAll returned no camera list")

        status_by_channel = {state.channel: state.connection_state for state in states}
        cameras = []
        for raw in raw_cameras:
            try:
                camera = Camera.from_dict(raw)
            except (MissingField, InvalidFieldValue, TypeError) as ex:
                _LOGGER.debug("Skipping unparsable camera %s: %s", raw, ex)
                continue
            if camera.unique_channel in status_by_channel:
                camera.show_status = status_by_channel[camera.unique_channel]
            cameras.append(camera)
        return cameras

    async def set_cameras(self, cameras: list[Camera | dict[str, Any]]) -> None:
        """Update camera settings, the payload travels encrypted."""
        self._require_session()
        await self._prepare_encryption()
        payload = {"cameras": [_as_dict(camera) for camera in cameras]}
        await self._transport.send_encrypted_command(
            self._method("secSetCamera"), payload
        )

    async def add_cameras(self, devices: list[DeviceInfo | dict[str, Any]]) -> None:
        """Attach remote devices to free channels."""
        self._require_session()
        await self._prepare_encryption()
        payload = {"cameras": [_as_dict(device) for device in devices]}
        await self._transport.send_encrypted_command(
            self._method("addCamera"), payload
        )

    async def delete_cameras(self, channels: list[int]) -> None:
        """Detach the remote devices on the given unique channels."""
        await self._command("deleteCamera", {"uniqueChannels": list(channels)})


def _as_dict(value: Camera | DeviceInfo | dict[str, Any]) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return value.to_dict()
