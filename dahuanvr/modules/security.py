"""Implementation of the Security rpc methods."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mashumaro import DataClassDictMixin
from mashumaro.exceptions import InvalidFieldValue, MissingField

from ..exceptions import InvalidServerResponseError
from .rpcmodule import RpcModule

_LOGGER = logging.getLogger(__name__)


@dataclass
class EncryptInfo(DataClassDictMixin):
    """Crypto capabilities announced by the recorder."""

    asymmetric: str
    cipher: list[str]
    pub: str


class Security(RpcModule):
    """Implementation of the Security rpc methods."""

    PREFIX = "Security"

    async def get_encrypt_info(self) -> EncryptInfo:
        """Fetch the crypto capabilities and store them in the registry.

        This is answered before login on the outside command endpoint.
        """
        response = await self._transport.call_outside(
            self._method("getEncryptInfo")
        )
        params = response.get("params")
        if not isinstance(params, dict):
            raise InvalidServerResponseError(
                "Security.getEncryptInfo returned no encryption info"
            )
        try:
            info = EncryptInfo.from_dict(params)
        except (MissingField, InvalidFieldValue) as ex:
            raise InvalidServerResponseError(
                f"Invalid encryption info: {ex}"
            ) from ex
        _LOGGER.debug(
            "Recorder supports %s with ciphers %s", info.asymmetric, info.cipher
        )
        self._transport.crypto.update(
            asymmetric=info.asymmetric,
            ciphers=info.cipher,
            public_key=info.pub,
        )
        return info
