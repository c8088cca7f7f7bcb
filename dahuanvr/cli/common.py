"""Common cli module."""

from __future__ import annotations

import asyncio
import re
import sys
from dataclasses import asdict, is_dataclass
from enum import Enum
from functools import singledispatch, wraps
from gettext import gettext
from typing import Any, NoReturn

import asyncclick as click

from dahuanvr import NvrSession
from dahuanvr.json import dumps as json_dumps

pass_session = click.make_pass_decorator(NvrSession)


try:
    from rich import print as _echo
except ImportError:
    # Strip out lower case rich tags only, recorder names may contain brackets.
    rich_formatting = re.compile(r"\[/?[a-z]+]")

    def _strip_rich_formatting(echo_func):
        """Strip rich formatting from messages."""

        @wraps(echo_func)
        def wrapper(message=None, *args, **kwargs) -> None:
            if message is not None:
                message = rich_formatting.sub("", message)
            echo_func(message, *args, **kwargs)

        return wrapper

    _echo = _strip_rich_formatting(click.echo)


def echo(*args, **kwargs) -> None:
    """Print a message."""
    ctx = click.get_current_context().find_root()
    if "json" not in ctx.params or ctx.params["json"] is False:
        _echo(*args, **kwargs)


def error(msg: str) -> NoReturn:
    """Print an error and exit."""
    echo(f"[bold red]{msg}[/bold red]")
    sys.exit(1)


@singledispatch
def to_serializable(val):
    """Regular obj-to-string for json serialization."""
    if is_dataclass(val) and not isinstance(val, type):
        if hasattr(val, "to_dict"):
            return val.to_dict()
        return asdict(val)
    return str(val)


@to_serializable.register(Enum)
def _enum_to_serializable(val: Enum):
    return val.name


def json_formatter_cb(result: Any, **kwargs) -> None:
    """Format and output the result as JSON, if requested."""
    if not kwargs.get("json") or result is None:
        return
    print(json_dumps(result, indent=True, default=to_serializable))


def CatchAllExceptions(cls):
    """Capture all exceptions and print them nicely."""

    def _handle_exception(debug, exc) -> None:
        if isinstance(exc, click.ClickException):
            raise
        if isinstance(exc, click.exceptions.Exit):
            sys.exit(exc.exit_code)
        if isinstance(exc, click.exceptions.Abort):
            sys.exit(0)

        echo(f"Raised error: {exc}")
        if debug:
            raise
        echo("Run with --debug enabled to see stacktrace")
        sys.exit(1)

    class _CommandCls(cls):
        _debug = False

        async def make_context(self, info_name, args, parent=None, **extra):
            self._debug = any(
                [arg for arg in args if arg in ["--debug", "-d", "--verbose", "-v"]]
            )
            try:
                return await super().make_context(
                    info_name, args, parent=parent, **extra
                )
            except Exception as exc:
                _handle_exception(self._debug, exc)

        async def invoke(self, ctx):
            try:
                return await super().invoke(ctx)
            except Exception as exc:
                _handle_exception(self._debug, exc)

        def __call__(self, *args, **kwargs):
            """Run the coroutine in the event loop and print any exceptions.

            Catch the KeyboardInterrupt re-raised by asyncio.run so Ctrl-C
            does not print a stacktrace.
            """
            try:
                asyncio.run(self.main(*args, **kwargs))
            except KeyboardInterrupt:
                click.echo(gettext("\nAborted!"), file=sys.stderr)
                sys.exit(1)

    return _CommandCls
