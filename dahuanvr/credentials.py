"""Credentials class for username / passwords."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Credentials:
    """Credentials for authenticating against one recorder."""

    #: Base url of the recorder, e.g. ``http://192.168.1.108``
    server_url: str = ""
    #: Username of the recorder account
    username: str = field(default="", repr=False)
    #: Password of the recorder account
    password: str = field(default="", repr=False)


DEFAULT_USERNAME = "admin"
