from __future__ import annotations

import asyncio
import os
from unittest.mock import patch

import aiohttp
import pytest
from asyncclick.testing import CliRunner

from dahuanvr import Credentials, DeviceConfig, NvrSession
from dahuanvr.cryptoconfig import CryptoParameterRegistry
from dahuanvr.httpclient import HttpClient
from dahuanvr.transports import DigestTransport, RpcTransport

from .fakenvr import MOCK_PWD, MOCK_USER, FakeNvr

HOST = "127.0.0.1"


@pytest.fixture(autouse=True, scope="session")
def asyncio_sleep_fixture():  # noqa: PT004
    """Patch sleep to prevent tests actually waiting."""
    orig_asyncio_sleep = asyncio.sleep

    async def _asyncio_sleep(*_, **__):
        await orig_asyncio_sleep(0)

    with patch("asyncio.sleep", side_effect=_asyncio_sleep):
        yield


@pytest.fixture()
def credentials() -> Credentials:
    return Credentials(f"http://{HOST}", MOCK_USER, MOCK_PWD)


@pytest.fixture()
def config(credentials) -> DeviceConfig:
    return DeviceConfig(HOST, credentials=credentials)


@pytest.fixture()
def fake_nvr(mocker) -> FakeNvr:
    """Route all aiohttp requests to a fake recorder."""
    nvr = FakeNvr(HOST)
    mocker.patch.object(aiohttp.ClientSession, "post", side_effect=nvr.post)
    mocker.patch.object(aiohttp.ClientSession, "get", side_effect=nvr.get)
    return nvr


@pytest.fixture()
async def http_client(config):
    client = HttpClient(config)
    yield client
    await client.close()


@pytest.fixture()
def rpc_transport(config, http_client) -> RpcTransport:
    return RpcTransport(
        config=config, crypto=CryptoParameterRegistry(), http_client=http_client
    )


@pytest.fixture()
def digest_transport(config, http_client) -> DigestTransport:
    return DigestTransport(config=config, http_client=http_client)


@pytest.fixture()
async def session(credentials, fake_nvr):
    """Return an unconnected session talking to the fake recorder."""
    nvr_session = NvrSession.from_credentials(credentials)
    yield nvr_session
    await nvr_session.close()


@pytest.fixture()
def runner():
    """Runner fixture that unsets the DAHUA_ environment variables for tests."""
    dahua_vars = {k: None for k in os.environ if k.startswith("DAHUA_")}
    return CliRunner(env=dahua_vars)
