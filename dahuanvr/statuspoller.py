"""Poll the recorder until a camera's connection state changes.

After a camera is reconfigured the recorder takes a while to reconnect it.
The poller queries the channel states with exponential backoff and patches the
cached camera as soon as its state differs from the one seen when polling
started. Giving up after the last attempt is a normal outcome.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto

from .camera import CameraStore
from .exceptions import DahuaException
from .modules.camera import CameraModule
from .taskregistry import TaskRegistry

_LOGGER = logging.getLogger(__name__)


class PollOutcome(Enum):
    """Result of one polling loop."""

    CHANGED = auto()  # State changed and the cache was updated
    EXHAUSTED = auto()  # No change within the allowed attempts
    NOT_FOUND = auto()  # Camera is not in the cache


class StatusPoller:
    """Run one cancellable polling loop per camera id."""

    INITIAL_DELAY = 2.0
    MAX_DELAY = 10.0
    BACKOFF_MULTIPLIER = 1.5
    MAX_ATTEMPTS = 6

    def __init__(
        self,
        store: CameraStore,
        cameras: CameraModule,
        *,
        tasks: TaskRegistry | None = None,
    ) -> None:
        self._store = store
        self._cameras = cameras
        self._tasks = tasks or TaskRegistry("statuspoller")

    def _task_key(self, camera_id: str) -> tuple[str, str]:
        return ("poll", camera_id)

    def start_polling(self, camera_id: str) -> asyncio.Task:
        """Start polling ``camera_id``, replacing a loop already running for it."""
        _LOGGER.debug("Starting status polling for camera %s", camera_id)
        return self._tasks.start(
            self._task_key(camera_id), self.poll_until_changed(camera_id)
        )

    def is_polling(self, camera_id: str) -> bool:
        """Return True if a loop is running for ``camera_id``."""
        return self._tasks.is_running(self._task_key(camera_id))

    async def stop_polling(self, camera_id: str) -> None:
        """Stop the loop for ``camera_id``."""
        _LOGGER.debug("Stopping status polling for camera %s", camera_id)
        await self._tasks.stop(self._task_key(camera_id))

    async def stop_all_polling(self) -> None:
        """Stop every polling loop."""
        for key in self._tasks.keys():
            if isinstance(key, tuple) and key[0] == "poll":
                await self._tasks.stop(key)

    async def poll_until_changed(self, camera_id: str) -> PollOutcome:
        """Poll until the state of ``camera_id`` changes or attempts run out."""
        camera = self._store.find_by_id(camera_id)
        if camera is None:
            _LOGGER.debug("Cannot find camera %s to poll", camera_id)
            return PollOutcome.NOT_FOUND

        baseline = camera.show_status
        channel = camera.unique_channel
        delay = self.INITIAL_DELAY

        try:
            for attempt in range(1, self.MAX_ATTEMPTS + 1):
                await asyncio.sleep(delay)
                try:
                    states = await self._cameras.get_camera_states()
                except DahuaException as ex:
                    _LOGGER.debug(
                        "Error polling camera %s on attempt %s: %s",
                        camera_id,
                        attempt,
                        ex,
                    )
                else:
                    current = next((s for s in states if s.channel == channel), None)
                    if current is None:
                        _LOGGER.debug("No state reported for channel %s", channel)
                    elif current.connection_state != baseline:
                        _LOGGER.debug(
                            "Camera %s status changed %s -> %s on attempt %s",
                            camera_id,
                            baseline,
                            current.connection_state,
                            attempt,
                        )
                        self._store.update_status(camera_id, current.connection_state)
                        return PollOutcome.CHANGED
                delay = min(delay * self.BACKOFF_MULTIPLIER, self.MAX_DELAY)
        except asyncio.CancelledError:
            _LOGGER.debug("Polling for camera %s was cancelled", camera_id)
            raise

        _LOGGER.debug(
            "Polling for camera %s gave up after %s attempts, status remained %s",
            camera_id,
            self.MAX_ATTEMPTS,
            baseline,
        )
        return PollOutcome.EXHAUSTED
