"""In process fake of a recorder for the transport and session tests.

Patch ``aiohttp.ClientSession.post`` and ``get`` with :meth:`FakeNvr.post` and
:meth:`FakeNvr.get` to route every request of the library here.
"""

from __future__ import annotations

import base64
import hashlib
import re
from functools import cache
from json import dumps as json_dumps
from json import loads as json_loads
from typing import Any

from cryptography.hazmat.primitives.asymmetric import padding, rsa
from yarl import URL

from dahuanvr.transports.encryption import EncryptionProfile, SymmetricSession

MOCK_USER = "admin"
MOCK_PWD = "correct_pwd"  # noqa: S105
MOCK_SESSION = "b5c9a4d1e2f3"
MOCK_RANDOM = "1180873745"
MOCK_REALM = "Login to 6J0ABC123"
MOCK_CGI_REALM = "Login to 6J0ABC123"
MOCK_CGI_NONCE = "1603547911"
MOCK_OPAQUE = "5ccc069c403ebaf9f0171e9517f40e41"
MOCK_BACKUP = "Q29uZmlnQmFja3VwRGF0YQ=="

LOGIN_CHALLENGE = 268632079
LOGIN_FAILED = 268632085
INVALID_SESSION = 287637505
METHOD_NOT_FOUND = 268894209

CAMERA_ONE = {
    "Channel": 0,
    "UniqueChannel": 0,
    "DeviceID": "uuid:1f0b27c8-0001",
    "Enable": True,
    "Type": "Remote",
    "VideoStream": "Main",
    "DeviceInfo": {
        "Address": "192.168.1.64",
        "Enable": True,
        "Port": 37777,
        "HttpPort": 80,
        "Name": "Front door",
        "UserName": "admin",
        "Password": "camera_pwd",
        "ProtocolType": "Private",
        "SerialNo": "7G0DEF456",
        "VideoInputChannels": 1,
    },
}
CAMERA_TWO = {
    "Channel": 1,
    "UniqueChannel": 1,
    "DeviceID": "uuid:1f0b27c8-0002",
    "Enable": True,
    "Type": "Remote",
    "DeviceInfo": {
        "Address": "192.168.1.65",
        "Enable": True,
        "Port": 37777,
        "Name": "Garage",
        "ProtocolType": "Onvif",
    },
}


@cache
def _private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _md5(value: str) -> str:
    return hashlib.md5(value.encode()).hexdigest()  # noqa: S324


class FakeNvr:
    """Fake recorder answering the rpc, outside command and CGI endpoints."""

    class _mock_response:
        def __init__(self, status, body: Any, headers: dict | None = None):
            self.status = status
            self._body = body
            self.headers = headers or {}

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_t, exc_v, exc_tb):
            pass

        async def read(self):
            if isinstance(self._body, dict | list):
                return json_dumps(self._body).encode()
            if isinstance(self._body, str):
                return self._body.encode()
            return self._body

    def __init__(
        self,
        host: str = "127.0.0.1",
        *,
        username: str = MOCK_USER,
        password: str = MOCK_PWD,
        encryption: str = "Default",
        ciphers: tuple[str, ...] = ("RPAC-256", "AES-128"),
        cameras: list[dict] | None = None,
        states: list[list[dict]] | None = None,
        keep_alive_interval: int = 60,
        cgi_status: int | None = None,
        cgi_challenge: bool = True,
        challenge_session: bool = True,
        rpc_status: int = 200,
        keep_alive_ok: bool = True,
    ) -> None:
        self.host = host
        self.username = username
        self.password = password
        self.encryption = encryption
        self.ciphers = list(ciphers)
        self.cameras = cameras if cameras is not None else [CAMERA_ONE, CAMERA_TWO]
        self.states = states or [
            [
                {"channel": 0, "connectionState": "Connected"},
                {"channel": 1, "connectionState": "Unconnect"},
            ]
        ]
        self.keep_alive_interval = keep_alive_interval
        self.cgi_status = cgi_status
        self.cgi_challenge = cgi_challenge
        self.challenge_session = challenge_session
        self.rpc_status = rpc_status
        self.keep_alive_ok = keep_alive_ok

        self.logged_in = False
        self.cgi_authorized = False
        self.requests: list[tuple[str, dict]] = []
        self.commands: dict[str, Any] = {}
        self.last_cipher: str | None = None
        self.last_batch: Any = None

        public_numbers = _private_key().public_key().public_numbers()
        self.public_key = f"N:{public_numbers.n:X},E:{public_numbers.e:06X}"

    def methods(self, name: str) -> list[dict]:
        """Return every request received for the rpc method ``name``."""
        return [request for _, request in self.requests if request["method"] == name]

    async def post(self, url: URL, params=None, json=None, data=None, *_, **__):
        if data:
            json = json_loads(data)
        self.requests.append((url.path, json))
        if self.rpc_status != 200:
            return self._mock_response(self.rpc_status, "Service Unavailable")
        if url.path == "/RPC2_Login":
            return self._login(json)
        if url.path == "/OutsideCmd":
            return self._outside(json)
        if url.path == "/RPC2":
            return self._rpc(json)
        return self._mock_response(404, "Not Found")

    async def get(self, url: URL, headers=None, *_, **__):
        headers = headers or {}
        if self.cgi_status is not None:
            return self._mock_response(self.cgi_status, "Error")
        authorization = headers.get("Authorization")
        if authorization is None:
            if not self.cgi_challenge:
                return self._mock_response(401, "Unauthorized")
            return self._mock_response(
                401,
                "Unauthorized",
                {
                    "WWW-Authenticate": (
                        f'Digest realm="{MOCK_CGI_REALM}", qop="auth", '
                        f'nonce="{MOCK_CGI_NONCE}", opaque="{MOCK_OPAQUE}", '
                        "algorithm=MD5"
                    )
                },
            )
        if not self._verify_digest(authorization, url):
            self.cgi_authorized = False
            return self._mock_response(401, "Unauthorized")
        self.cgi_authorized = True
        return self._mock_response(200, "caps.Languages=English,SimpChinese\r\n")

    def _verify_digest(self, authorization: str, url: URL) -> bool:
        fields = dict(re.findall(r'(\w+)="?([^",]*)"?', authorization))
        if fields.get("uri") != url.raw_path_qs:
            return False
        ha1 = _md5(f"{self.username}:{MOCK_CGI_REALM}:{self.password}")
        ha2 = _md5(f"GET:{fields['uri']}")
        expected = _md5(
            f"{ha1}:{MOCK_CGI_NONCE}:{fields.get('nc')}:{fields.get('cnonce')}:"
            f"auth:{ha2}"
        )
        return (
            fields.get("username") == self.username
            and fields.get("algorithm") == "MD5"
            and fields.get("nc") == "00000001"
            and fields.get("response") == expected
        )

    def _reply(self, request: dict, body: dict) -> _mock_response:
        return self._mock_response(200, {"id": request.get("id"), **body})

    def _login(self, request: dict) -> _mock_response:
        params = request.get("params") or {}
        if "session" not in request:
            body: dict[str, Any] = {
                "result": False,
                "error": {"code": LOGIN_CHALLENGE, "message": "Component error"},
                "params": {
                    "random": MOCK_RANDOM,
                    "realm": MOCK_REALM,
                    "encryption": self.encryption,
                    "authorization": "8a6a5d2b1c",
                },
            }
            if self.challenge_session:
                body["session"] = MOCK_SESSION
            return self._reply(request, body)

        if (
            request["session"] == MOCK_SESSION
            and params.get("userName") == self.username
            and params.get("password") == self._expected_password()
        ):
            self.logged_in = True
            return self._reply(
                request,
                {
                    "result": True,
                    "params": {"keepAliveInterval": self.keep_alive_interval},
                    "session": MOCK_SESSION,
                },
            )
        return self._reply(
            request,
            {
                "result": False,
                "error": {"code": LOGIN_FAILED, "message": "Password not valid"},
                "session": MOCK_SESSION,
            },
        )

    def _expected_password(self) -> str:
        if self.encryption == "Basic":
            return base64.b64encode(
                f"{self.username}:{self.password}".encode()
            ).decode()
        if self.encryption == "Default":
            realm_hash = _md5(f"{self.username}:{MOCK_REALM}:{self.password}").upper()
            return _md5(f"{self.username}:{MOCK_RANDOM}:{realm_hash}").upper()
        return self.password

    def _outside(self, request: dict) -> _mock_response:
        if request["method"] == "Security.getEncryptInfo":
            return self._reply(
                request,
                {
                    "result": True,
                    "params": {
                        "asymmetric": "RPAC",
                        "cipher": self.ciphers,
                        "pub": self.public_key,
                    },
                },
            )
        return self._method_not_found(request)

    def _method_not_found(self, request: dict) -> _mock_response:
        return self._reply(
            request,
            {
                "result": False,
                "error": {"code": METHOD_NOT_FOUND, "message": "Method not found"},
            },
        )

    def _rpc(self, request: dict) -> _mock_response:
        if not self.logged_in or request.get("session") != MOCK_SESSION:
            return self._reply(
                request,
                {
                    "result": False,
                    "error": {"code": INVALID_SESSION, "message": "Invalid session"},
                },
            )
        method = request["method"]
        params = request.get("params")
        handlers = {
            "global.keepAlive": self._keep_alive,
            "global.logout": self._logout,
            "LogicDeviceManager.getCameraState": self._camera_state,
            "LogicDeviceManager.deleteCamera": lambda: self._record(method, params),
            "magicBox.getDeviceType": lambda: {
                "result": True,
                "params": {"type": "DHI-NVR4216-16P-4KS2"},
            },
            "magicBox.getSerialNo": lambda: {
                "result": True,
                "params": {"sn": "6J0ABC123"},
            },
            "magicBox.getSoftwareVersion": lambda: {
                "result": True,
                "params": {
                    "version": {"Version": "4.001.0000000.3", "BuildDate": "2023-06-01"}
                },
            },
            "magicBox.getDeviceInfo": lambda: {
                "result": True,
                "params": {"DeviceModel": "NVR4216-16P-4KS2", "Uptime": 3600},
            },
            "magicBox.getDeviceStatus": lambda: {
                "result": True,
                "params": {"Temperature": 41.5, "FanSpeed": 2400},
            },
            "magicBox.getProductDefinition": lambda: {
                "result": True,
                "params": {"MaxRemoteInputChannels": 16},
            },
            "magicBox.getVendorInfo": lambda: {
                "result": True,
                "params": {"Vendor": "Dahua"},
            },
            "system.reboot": lambda: self._record(method, params),
            "system.shutdown": lambda: self._record(method, params),
            # Usage is answered in the result member like on older firmware
            "system.getSystemUsage": lambda: {
                "result": {"CpuUsage": 12.5, "MemoryUsage": 40.0},
            },
            "system.getCurrentTime": lambda: {
                "result": True,
                "params": {"CurrentTime": "2024-01-01 12:00:00"},
            },
            "system.getCapabilities": lambda: {
                "result": True,
                "params": {"MaxChannels": 16, "SupportPTZ": True},
            },
            "system.getSystemInfo": lambda: {
                "result": True,
                "params": {"deviceType": "NVR", "serialNumber": "6J0ABC123"},
            },
            "configManager.getConfig": lambda: {
                "result": True,
                "params": {"table": {"Name": params.get("name"), "Enable": True}},
            },
            "configManager.setConfig": lambda: self._record(method, params),
            "configManager.backup": lambda: {
                "result": True,
                "params": {"data": MOCK_BACKUP},
            },
            "configManager.restore": lambda: self._record(method, params),
        }
        if method == "system.multiSec":
            return self._multi_sec(request)
        if method in (
            "LogicDeviceManager.secSetCamera",
            "LogicDeviceManager.addCamera",
        ):
            payload, _, _ = self._decrypt(params)
            return self._reply(request, self._record(method, payload))
        if (handler := handlers.get(method)) is None:
            return self._method_not_found(request)
        return self._reply(request, handler())

    def _keep_alive(self) -> dict:
        if not self.keep_alive_ok:
            return {
                "result": False,
                "error": {"code": INVALID_SESSION, "message": "Keep alive refused"},
            }
        return {"result": True, "params": {"timeout": 300}}

    def _logout(self) -> dict:
        self.logged_in = False
        return {"result": True}

    def _record(self, method: str, params: Any) -> dict:
        self.commands[method] = params
        return {"result": True}

    def _camera_state(self) -> dict:
        states = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        return {"result": True, "params": {"states": states}}

    def _decrypt(self, params: dict) -> tuple[Any, bytes, EncryptionProfile]:
        profile = next(
            p for p in EncryptionProfile if p.cipher_name == params["cipher"]
        )
        self.last_cipher = params["cipher"]
        key = _private_key().decrypt(bytes.fromhex(params["salt"]), padding.PKCS1v15())
        cleartext = SymmetricSession(key, profile).decrypt(params["content"])
        return json_loads(cleartext), key, profile

    def _multi_sec(self, request: dict) -> _mock_response:
        batch, key, profile = self._decrypt(request["params"])
        self.last_batch = batch
        responses = []
        for item in batch:
            if item["method"] == "LogicDeviceManager.getCameraAll":
                responses.append(
                    {
                        "id": item["id"],
                        "result": True,
                        "params": {"camera": self.cameras},
                    }
                )
            else:
                responses.append({"id": item["id"], "result": False})
        content = SymmetricSession(key, profile).encrypt(json_dumps(responses).encode())
        return self._reply(request, {"result": True, "params": {"content": content}})
