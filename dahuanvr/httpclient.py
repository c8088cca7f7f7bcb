"""Module for HttpClient class."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any

import aiohttp
from yarl import URL

from .deviceconfig import DeviceConfig
from .exceptions import (
    DahuaException,
    TimeoutError,
    _ConnectionError,
)
from .json import dumps as json_dumps
from .json import loads as json_loads

_LOGGER = logging.getLogger(__name__)


class HttpClient:
    """HttpClient Class."""

    # Some recorders drop the http connection after each request under load.
    # After a client OS error sequential requests are spaced by this delay.
    WAIT_BETWEEN_REQUESTS_ON_OSERROR = 0.25

    def __init__(self, config: DeviceConfig) -> None:
        self._config = config
        self._client_session: aiohttp.ClientSession | None = None

        self._wait_between_requests = 0.0
        self._last_request_time = 0.0

    @property
    def client(self) -> aiohttp.ClientSession:
        """Return the underlying http client."""
        if self._config.http_client and issubclass(
            self._config.http_client.__class__, aiohttp.ClientSession
        ):
            return self._config.http_client

        if not self._client_session:
            self._client_session = aiohttp.ClientSession()
        return self._client_session

    async def _wait_if_needed(self) -> None:
        # Once we know a device needs a wait between sequential queries always wait
        # first rather than keep erroring then waiting.
        if not self._wait_between_requests:
            return
        gap = time.monotonic() - self._last_request_time
        if gap < self._wait_between_requests:
            sleep = self._wait_between_requests - gap
            _LOGGER.debug(
                "Device %s waiting %s seconds to send request",
                self._config.host,
                sleep,
            )
            await asyncio.sleep(sleep)

    def _client_timeout(self) -> aiohttp.ClientTimeout:
        if self._config.timeout is None:
            _LOGGER.warning("Request timeout is set to None.")
        return aiohttp.ClientTimeout(total=self._config.timeout)

    def _raise_from(self, ex: Exception) -> None:
        if isinstance(ex, aiohttp.ServerDisconnectedError | aiohttp.ClientOSError):
            if not self._wait_between_requests:
                _LOGGER.debug(
                    "Device %s received an os error, "
                    "enabling sequential request delay: %s",
                    self._config.host,
                    ex,
                )
                self._wait_between_requests = self.WAIT_BETWEEN_REQUESTS_ON_OSERROR
            self._last_request_time = time.monotonic()
            raise _ConnectionError(
                f"Device connection error: {self._config.host}: {ex}", ex
            ) from ex
        if isinstance(ex, aiohttp.ServerTimeoutError | asyncio.TimeoutError):
            raise TimeoutError(
                "Unable to query the device, "
                + f"timed out: {self._config.host}: {ex}",
                ex,
            ) from ex
        raise DahuaException(
            f"Unable to query the device: {self._config.host}: {ex}", ex
        ) from ex

    async def post(
        self,
        url: URL,
        *,
        json: dict | list | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, dict | bytes | None]:
        """Send a json request to the device.

        A body that parses as json is returned decoded, anything else as bytes.
        """
        await self._wait_if_needed()

        _LOGGER.debug("Posting to %s", url)
        response_data: Any = None
        try:
            resp = await self.client.post(
                url,
                data=json_dumps(json).encode() if json is not None else None,
                headers={"Content-Type": "application/json", **(headers or {})},
                timeout=self._client_timeout(),
            )
            async with resp:
                response_data = await resp.read()

            if resp.status != 200:
                _LOGGER.debug(
                    "Device %s received status code %s with response %s",
                    self._config.host,
                    resp.status,
                    str(response_data),
                )
            if response_data:
                try:
                    response_data = json_loads(response_data.decode())
                except Exception:
                    _LOGGER.debug(
                        "Device %s response could not be parsed as json",
                        self._config.host,
                    )
        except Exception as ex:
            self._raise_from(ex)

        # For performance only request system time if waiting is enabled
        if self._wait_between_requests:
            self._last_request_time = time.monotonic()

        return resp.status, response_data

    async def get(
        self,
        url: URL,
        *,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, str, Mapping[str, str]]:
        """Send an http get request to the device.

        Returns the status, the body decoded as text and the response headers.
        """
        await self._wait_if_needed()

        _LOGGER.debug("Getting %s", url)
        try:
            resp = await self.client.get(
                url,
                headers=headers,
                timeout=self._client_timeout(),
            )
            async with resp:
                body = await resp.read()
        except Exception as ex:
            self._raise_from(ex)

        if self._wait_between_requests:
            self._last_request_time = time.monotonic()

        return resp.status, body.decode(errors="replace"), resp.headers

    async def close(self) -> None:
        """Close the ClientSession."""
        client = self._client_session
        self._client_session = None
        if client:
            await client.close()
