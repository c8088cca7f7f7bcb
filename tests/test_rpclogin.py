from __future__ import annotations

import asyncio
import base64
import hashlib
import logging

import pytest

from dahuanvr.credentials import Credentials
from dahuanvr.exceptions import (
    AuthenticationFailedError,
    InvalidAuthParametersError,
    NoAuthParametersError,
    SessionMissingError,
)
from dahuanvr.protocols.rpclogin import (
    KEEP_ALIVE_TASK,
    AuthChallenge,
    LoginState,
    RpcLogin,
    login_digest,
)
from dahuanvr.taskregistry import TaskRegistry

from .fakenvr import MOCK_PWD, MOCK_RANDOM, MOCK_REALM, MOCK_SESSION, MOCK_USER

CHALLENGE = AuthChallenge(random=MOCK_RANDOM, realm=MOCK_REALM, encryption="Default")


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode()).hexdigest().upper()  # noqa: S324


def test_login_digest_default():
    credentials = Credentials(username="admin", password="secret")
    realm_hash = _md5_upper(f"admin:{MOCK_REALM}:secret")
    expected = _md5_upper(f"admin:{MOCK_RANDOM}:{realm_hash}")
    digest = login_digest(credentials, CHALLENGE)
    assert digest == expected
    assert len(digest) == 32
    assert digest == digest.upper()


def test_login_digest_basic():
    credentials = Credentials(username="admin", password="secret")
    challenge = AuthChallenge(random="1", realm="r", encryption="Basic")
    assert login_digest(credentials, challenge) == base64.b64encode(
        b"admin:secret"
    ).decode()


def test_login_digest_unknown(caplog):
    credentials = Credentials(username="admin", password="secret")
    challenge = AuthChallenge(random="1", realm="r", encryption="WSSE")
    assert login_digest(credentials, challenge) == "secret"
    assert "Unknown login encryption WSSE" in caplog.text

    with pytest.raises(InvalidAuthParametersError):
        login_digest(credentials, challenge, strict=True)


@pytest.fixture()
def tasks():
    return TaskRegistry("test")


@pytest.fixture()
async def rpc_login(rpc_transport, tasks):
    login = RpcLogin(rpc_transport, tasks=tasks)
    yield login
    await tasks.stop_all()


@pytest.mark.parametrize("encryption", ["Default", "Basic"])
async def test_login(fake_nvr, rpc_login, rpc_transport, credentials, encryption):
    fake_nvr.encryption = encryption
    await rpc_login.login(credentials)

    assert rpc_login.state is LoginState.AUTHENTICATED
    assert rpc_transport.session_id == MOCK_SESSION
    assert rpc_login.is_keep_alive_running
    assert rpc_login.has_active_session

    first, second = fake_nvr.methods("global.login")[:2]
    assert first["params"] == {
        "clientType": "Web3.0",
        "loginType": "Direct",
        "userName": MOCK_USER,
        "password": "",
    }
    assert "session" not in first
    assert second["session"] == MOCK_SESSION
    assert second["params"]["clientType"] == "Web3.0"
    assert second["params"]["authorityType"] == encryption
    assert second["params"]["passwordType"] == encryption


async def test_login_keep_alive_interval(fake_nvr, rpc_login, credentials):
    fake_nvr.keep_alive_interval = 30
    await rpc_login.login(credentials)
    assert rpc_login.keep_alive_interval == 30


async def test_login_keep_alive_interval_override(fake_nvr, rpc_transport, credentials):
    login = RpcLogin(rpc_transport, keep_alive_interval=15)
    await login.login(credentials)
    assert login.keep_alive_interval == 15
    await login.logout()


async def test_login_with_client_ip(fake_nvr, rpc_transport, credentials):
    login = RpcLogin(rpc_transport, client_ip="192.168.1.10")
    await login.login(credentials)
    assert all(
        request["params"]["ipAddr"] == "192.168.1.10"
        for request in fake_nvr.methods("global.login")
    )
    await login.logout()


async def test_wrong_password(fake_nvr, rpc_login, rpc_transport):
    credentials = Credentials("http://127.0.0.1", MOCK_USER, "wrong")
    with pytest.raises(AuthenticationFailedError):
        await rpc_login.login(credentials)
    assert rpc_login.state is LoginState.LOGGED_OUT
    assert not rpc_transport.has_active_session
    assert not rpc_login.is_keep_alive_running


async def test_missing_session(fake_nvr, rpc_login, credentials):
    fake_nvr.challenge_session = False
    with pytest.raises(SessionMissingError):
        await rpc_login.login(credentials)
    assert rpc_login.state is LoginState.LOGGED_OUT


@pytest.mark.parametrize(
    ("params", "error"),
    [
        pytest.param(None, NoAuthParametersError, id="no-params"),
        pytest.param({"realm": "r"}, NoAuthParametersError, id="no-random"),
        pytest.param({"random": "1"}, NoAuthParametersError, id="no-realm"),
        pytest.param(
            {"random": "1", "realm": "r"},
            InvalidAuthParametersError,
            id="no-encryption",
        ),
        pytest.param(
            {"random": 1, "realm": "r", "encryption": "Default"},
            InvalidAuthParametersError,
            id="random-not-str",
        ),
    ],
)
async def test_invalid_challenge(
    mocker, rpc_login, rpc_transport, credentials, params, error
):
    response = {
        "error": {"code": 268632079, "message": ""},
        "session": "abc",
        "id": 1,
    }
    if params is not None:
        response["params"] = params
    mocker.patch.object(rpc_transport, "call", return_value=response)
    with pytest.raises(error):
        await rpc_login.login(credentials)
    assert not rpc_transport.has_active_session


async def test_unknown_encryption_strict(fake_nvr, rpc_transport, credentials):
    fake_nvr.encryption = "WSSE"
    login = RpcLogin(rpc_transport, strict=True)
    with pytest.raises(InvalidAuthParametersError):
        await login.login(credentials)
    assert len(fake_nvr.methods("global.login")) == 1


async def test_keep_alive(fake_nvr, rpc_login, credentials, caplog):
    caplog.set_level(logging.DEBUG)
    await rpc_login.login(credentials)
    assert await rpc_login.send_keep_alive() is True

    keep_alive = fake_nvr.methods("global.keepAlive")[-1]
    assert keep_alive["params"] == {"timeout": 300, "active": True}
    assert keep_alive["session"] == MOCK_SESSION
    assert "Keep alive sent to" in caplog.text


async def test_keep_alive_failure_is_reported(fake_nvr, rpc_login, credentials):
    await rpc_login.login(credentials)
    fake_nvr.logged_in = False
    assert await rpc_login.send_keep_alive() is False


async def test_relogin_replaces_keep_alive(fake_nvr, rpc_login, tasks, credentials):
    await rpc_login.login(credentials)
    first = tasks.get(KEEP_ALIVE_TASK)
    await rpc_login.login(credentials)
    second = tasks.get(KEEP_ALIVE_TASK)

    assert first is not second
    assert first.cancelled()
    assert not second.done()
    assert len(tasks) == 1


async def test_logout(fake_nvr, rpc_login, rpc_transport, credentials):
    await rpc_login.login(credentials)
    await rpc_login.logout()

    assert rpc_login.state is LoginState.LOGGED_OUT
    assert not rpc_login.is_keep_alive_running
    assert not rpc_transport.has_active_session
    assert len(fake_nvr.methods("global.logout")) == 1
    assert not fake_nvr.logged_in


async def test_logout_without_session(fake_nvr, rpc_login):
    await rpc_login.logout()
    assert fake_nvr.methods("global.logout") == []


async def test_keep_alive_loop_survives_failures(
    fake_nvr, rpc_login, rpc_transport, credentials, caplog
):
    caplog.set_level(logging.DEBUG)
    await rpc_login.login(credentials)
    fake_nvr.keep_alive_ok = False

    for _ in range(50):
        await asyncio.sleep(0)

    assert len(fake_nvr.methods("global.keepAlive")) > 2
    assert rpc_login.is_keep_alive_running
    assert rpc_login.state is LoginState.AUTHENTICATED
    assert rpc_transport.session_id == MOCK_SESSION
    assert "Keep alive to" in caplog.text
