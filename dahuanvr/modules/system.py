"""Implementation of the system and magicBox rpc methods."""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import InvalidServerResponseError
from .rpcmodule import RpcModule

_LOGGER = logging.getLogger(__name__)


class System(RpcModule):
    """Device identity, health and maintenance methods."""

    PREFIX = "magicBox"

    async def _table(self, method: str) -> dict[str, Any]:
        """Return the table answered by ``method``.

        Depending on the firmware the table is carried in ``params`` or in the
        ``result`` member.
        """
        self._require_session()
        response = await self._transport.call(self._method(method))
        table = response.get("params")
        if not isinstance(table, dict):
            table = response.get("result")
        if not isinstance(table, dict):
            raise InvalidServerResponseError(f"{method} returned no data")
        return table

    async def get_system_info(self) -> dict[str, Any]:
        """Return the system information table."""
        return await self._table("system.getSystemInfo")

    async def get_system_usage(self) -> dict[str, Any]:
        """Return cpu, memory, temperature and fan statistics."""
        return await self._table("system.getSystemUsage")

    async def get_current_time(self) -> dict[str, Any]:
        """Return the recorder clock and time zone."""
        return await self._table("system.getCurrentTime")

    async def get_capabilities(self) -> dict[str, Any]:
        """Return channel limits and supported features."""
        return await self._table("system.getCapabilities")

    async def get_device_info(self) -> dict[str, Any]:
        return await self._table("getDeviceInfo")

    async def get_device_status(self) -> dict[str, Any]:
        return await self._table("getDeviceStatus")

    async def get_product_definition(self) -> dict[str, Any]:
        return await self._table("getProductDefinition")

    async def get_vendor_info(self) -> dict[str, Any]:
        return await self._table("getVendorInfo")

    async def get_device_type(self) -> str | None:
        """Return the model name."""
        return (await self._query("getDeviceType")).get("type")

    async def get_serial_no(self) -> str | None:
        """Return the serial number."""
        return (await self._query("getSerialNo")).get("sn")

    async def get_software_version(self) -> dict[str, Any]:
        """Return the firmware version details."""
        params = await self._query("getSoftwareVersion")
        return params.get("version") or params

    async def reboot(self) -> None:
        """Reboot the recorder."""
        _LOGGER.debug("Rebooting %s", self._transport.app_url)
        await self._command("system.reboot")

    async def shutdown(self) -> None:
        """Power the recorder off."""
        _LOGGER.debug("Shutting down %s", self._transport.app_url)
        await self._command("system.shutdown")
