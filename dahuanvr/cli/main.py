"""Main module for cli tool."""

from __future__ import annotations

import ast
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any

import asyncclick as click

from dahuanvr import Credentials, DeviceConfig, NvrSession
from dahuanvr.credentials import DEFAULT_USERNAME
from dahuanvr.statuspoller import PollOutcome

from .common import (
    CatchAllExceptions,
    echo,
    error,
    json_formatter_cb,
    pass_session,
)


@click.group(
    invoke_without_command=True,
    cls=CatchAllExceptions(click.Group),
    result_callback=json_formatter_cb,
)
@click.option(
    "--host",
    envvar="DAHUA_HOST",
    required=False,
    help="The url, host name or IP address of the recorder.",
)
@click.option(
    "--port",
    envvar="DAHUA_PORT",
    required=False,
    type=int,
    help="The http(s) port of the recorder.",
)
@click.option(
    "--https/--no-https",
    envvar="DAHUA_HTTPS",
    default=False,
    is_flag=True,
    type=bool,
    help="Set flag if the recorder is reached over https.",
)
@click.option(
    "--username",
    default=DEFAULT_USERNAME,
    required=False,
    show_default=True,
    envvar="DAHUA_USERNAME",
    help="Username of the recorder account.",
)
@click.option(
    "--password",
    default=None,
    required=False,
    envvar="DAHUA_PASSWORD",
    help="Password of the recorder account.",
)
@click.option(
    "--timeout",
    envvar="DAHUA_TIMEOUT",
    default=DeviceConfig.DEFAULT_TIMEOUT,
    required=False,
    show_default=True,
    help="Timeout for recorder communications.",
)
@click.option(
    "--strict-digest/--no-strict-digest",
    envvar="DAHUA_STRICT_DIGEST",
    default=False,
    is_flag=True,
    help="Refuse to log in when the recorder asks for an unknown digest type.",
)
@click.option(
    "-v",
    "--verbose",
    envvar="DAHUA_VERBOSE",
    required=False,
    default=False,
    is_flag=True,
    help="Be more verbose on output",
)
@click.option(
    "-d",
    "--debug",
    envvar="DAHUA_DEBUG",
    default=False,
    is_flag=True,
    help="Print debug output",
)
@click.option(
    "--json/--no-json",
    envvar="DAHUA_JSON",
    default=False,
    is_flag=True,
    help="Output the results as JSON.",
)
@click.version_option(package_name="python-dahuanvr")
@click.pass_context
async def cli(
    ctx,
    host,
    port,
    https,
    username,
    password,
    timeout,
    strict_digest,
    verbose,
    debug,
    json,
):
    """A tool for querying Dahua network video recorders."""
    # no need to connect if we are just displaying the help
    if "--help" in sys.argv:
        ctx.obj = object()
        return

    logging_config: dict[str, Any] = {
        "level": logging.DEBUG if debug > 0 else logging.INFO
    }
    try:
        from rich.logging import RichHandler

        logging_config["handlers"] = [RichHandler(show_time=False)]
        logging_config["format"] = "%(message)s"
    except ImportError:
        pass

    logging.basicConfig(**logging_config)  # type: ignore

    if host is None:
        error("No recorder given, use --host or set DAHUA_HOST")
    if password is None:
        raise click.BadOptionUsage(
            "password", "Logging in to a recorder requires --password"
        )

    scheme = "https" if https else "http"
    server_url = host if "://" in host else f"{scheme}://{host}"
    if port is not None and "://" not in host:
        server_url = f"{server_url}:{port}"
    credentials = Credentials(
        server_url=server_url, username=username, password=password
    )
    session = NvrSession.from_credentials(
        credentials, timeout=timeout, strict_digest=strict_digest
    )

    @asynccontextmanager
    async def async_wrapped_session(session: NvrSession):
        try:
            yield session
        finally:
            await session.close()

    ctx.obj = await ctx.with_async_resource(async_wrapped_session(session))

    result = await session.connect()
    if verbose:
        echo(f"Connected to {session.config.host}: {result.status}")
    if not result.usable:
        error(f"Unable to log in to {session.config.host}: {result.rpc_error}")

    if ctx.invoked_subcommand is None:
        return await ctx.invoke(state)

    return session


@cli.command()
@pass_session
async def state(session: NvrSession):
    """Print recorder identity and the camera overview."""
    system = session.system
    info = {
        "host": session.config.host,
        "status": session.last_result.status if session.last_result else None,
        "device_type": await system.get_device_type(),
        "serial_no": await system.get_serial_no(),
        "software_version": await system.get_software_version(),
    }
    cameras = await session.refresh_cameras()
    info["cameras"] = len(cameras)

    echo(f"[bold]== {info['device_type']} - {info['host']} ==[/bold]")
    echo(f"\tConnection: {info['status']}")
    echo(f"\tSerial number: {info['serial_no']}")
    echo(f"\tSoftware version: {info['software_version']}")
    echo(f"\tCameras: {info['cameras']}")
    return info


@cli.command()
@pass_session
async def cameras(session: NvrSession):
    """List the cameras attached to the recorder."""
    result = await session.refresh_cameras()
    if not result:
        echo("No cameras found")
    for camera in result:
        address = camera.device_info.address if camera.device_info else None
        echo(
            f"{camera.id}: {camera.name} ({address}) "
            f"{camera.connection_status or 'Unknown'}"
        )
    return [camera.to_dict() for camera in result]


@cli.command(name="camera-states")
@pass_session
async def camera_states(session: NvrSession):
    """Print the connection state of every channel."""
    states = await session.camera.get_camera_states()
    for camera_state in states:
        echo(f"Channel {camera_state.channel}: {camera_state.connection_state}")
    return [camera_state.to_dict() for camera_state in states]


@cli.command()
@click.argument("camera_id")
@pass_session
async def poll(session: NvrSession, camera_id):
    """Poll a camera until its connection state changes."""
    await session.refresh_cameras()
    if session.find_camera(camera_id) is None:
        error(f"No camera with id {camera_id}")

    echo(f"Polling {camera_id}..")
    outcome = await session.poller.poll_until_changed(camera_id)
    camera = session.find_camera(camera_id)
    status = camera.connection_status if camera else None
    if outcome is PollOutcome.CHANGED:
        echo(f"{camera_id} is now {status}")
    else:
        echo(f"{camera_id} stayed {status}")
    return {"camera": camera_id, "outcome": outcome.name, "status": status}


@cli.command()
@pass_session
async def keepalive(session: NvrSession):
    """Send a single keep alive."""
    alive = await session.login.send_keep_alive()
    echo("Session is alive" if alive else "[bold red]Keep alive failed[/bold red]")
    return {"alive": alive}


@cli.command()
@click.confirmation_option(prompt="Are you sure you want to reboot the recorder?")
@pass_session
async def reboot(session: NvrSession):
    """Reboot the recorder."""
    echo("Rebooting the recorder..")
    await session.system.reboot()


@cli.command(name="command")
@click.argument("method")
@click.argument("parameters", default=None, required=False)
@pass_session
async def cmd_command(session: NvrSession, method, parameters):
    """Run a raw rpc method on the recorder."""
    if parameters is not None:
        parameters = ast.literal_eval(parameters)
    res = await session.transport.call(method, parameters)
    echo(str(res))
    return res
