"""Implementation of the configManager rpc methods."""

from __future__ import annotations

from typing import Any

from ..exceptions import InvalidServerResponseError
from .rpcmodule import RpcModule

ENCODE = "Encode"
VIDEO_WIDGET = "VideoWidget"
GENERAL = "General"
NETWORK = "Network"
STORAGE = "Storage"


class ConfigManager(RpcModule):
    """Read and write named configuration tables."""

    PREFIX = "configManager"

    async def get_config(self, name: str, channel: int | None = None) -> Any:
        """Return the configuration table ``name``."""
        params: dict[str, Any] = {"name": name}
        if channel is not None:
            params["channel"] = channel
        return (await self._query("getConfig", params)).get("table")

    async def set_config(
        self, name: str, table: Any, channel: int | None = None
    ) -> None:
        """Write the configuration table ``name``."""
        params: dict[str, Any] = {"name": name, "table": table}
        if channel is not None:
            params["channel"] = channel
        await self._command("setConfig", params)

    async def get_encode_config(self, channel: int) -> Any:
        return await self.get_config(ENCODE, channel)

    async def set_encode_config(self, channel: int, table: Any) -> None:
        await self.set_config(ENCODE, table, channel)

    async def get_video_config(self, channel: int) -> Any:
        return await self.get_config(VIDEO_WIDGET, channel)

    async def set_video_config(self, channel: int, table: Any) -> None:
        await self.set_config(VIDEO_WIDGET, table, channel)

    async def get_system_config(self) -> Any:
        return await self.get_config(GENERAL)

    async def set_system_config(self, table: Any) -> None:
        await self.set_config(GENERAL, table)

    async def get_network_config(self) -> Any:
        return await self.get_config(NETWORK)

    async def set_network_config(self, table: Any) -> None:
        await self.set_config(NETWORK, table)

    async def get_storage_config(self) -> Any:
        return await self.get_config(STORAGE)

    async def set_storage_config(self, table: Any) -> None:
        await self.set_config(STORAGE, table)

    async def backup(self) -> str:
        """Return an opaque backup of the whole configuration."""
        self._require_session()
        response = await self._transport.call(self._method("backup"))
        for member in ("params", "result"):
            if isinstance(table := response.get(member), dict) and isinstance(
                data := table.get("data"), str
            ):
                return data
        raise InvalidServerResponseError("configManager.backup returned no data")

    async def restore(self, data: str) -> None:
        """Restore the configuration from a :meth:`backup` string."""
        await self._command("restore", {"data": data})
