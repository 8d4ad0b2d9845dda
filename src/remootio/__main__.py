"""Command line client: connect to a device, authenticate and log traffic."""

import asyncio
import logging
from typing import Optional

import click

from .client import RemootioDevice
from .config import DeviceConfig
from .events import (
    Authenticated,
    Connected,
    ErrorEvent,
    IncomingMessage,
    OutgoingMessage,
    SessionEvent,
)
from .models import ActionResponse, ActionType
from .types import ConfigError, TransportError

logger = logging.getLogger("remootio.cli")

_ACTIONS = {t.name.lower(): t for t in ActionType}


def _log_event(event: SessionEvent) -> None:
    if isinstance(event, IncomingMessage):
        logger.info("<- %s %s", event.frame.type, event.payload or "")
    elif isinstance(event, OutgoingMessage):
        logger.info("-> %s %s", event.frame.type, event.payload or "")
    elif isinstance(event, ErrorEvent):
        logger.error("%s", event.message)
    else:
        logger.info("%s", type(event).__name__)


async def _session(config: DeviceConfig, action: Optional[ActionType], duration: Optional[int]) -> None:
    device = RemootioDevice(config)
    device.add_listener(_log_event)
    device.add_listener(lambda _: device.authenticate(), Connected)

    if action is not None:
        def on_response(event: SessionEvent) -> None:
            if isinstance(event.payload, ActionResponse) and event.payload.type is action:
                device.disconnect()

        def on_authenticated(_: SessionEvent) -> None:
            # The authentication QUERY already reported the status
            if action is ActionType.QUERY:
                device.disconnect()
                return
            device.add_listener(on_response, IncomingMessage)
            device.send_action(action, duration)

        device.add_listener(on_authenticated, Authenticated)

    device.connect(auto_reconnect=action is None)
    try:
        await device.wait_closed()
    finally:
        device.disconnect()


@click.command()
@click.option("--device-ip", envvar="REMOOTIO_DEVICE_IP", help="IP address of the device")
@click.option("--secret-key", envvar="REMOOTIO_API_SECRET_KEY", help="API secret key (hex)")
@click.option("--auth-key", envvar="REMOOTIO_API_AUTH_KEY", help="API auth key (hex)")
@click.option("--ping-interval", type=int, default=60000, show_default=True, help="Keepalive interval in ms")
@click.option("--action", type=click.Choice(sorted(_ACTIONS)), help="Send one action, then exit")
@click.option("--duration", type=int, help="Hold the output active (trigger/open/close actions)")
@click.option("-v", "--verbose", is_flag=True, help="Log frame traffic at debug level")
def main(device_ip, secret_key, auth_key, ping_interval, action, duration, verbose):
    """Connect to a Remootio device and log the session.

    Without --action the client stays connected and reconnects when the
    connection drops; stop it with Ctrl-C.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = DeviceConfig(
            device_ip=device_ip or "",
            api_secret_key=secret_key or "",
            api_auth_key=auth_key or "",
            ping_interval_ms=ping_interval,
        )
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    try:
        asyncio.run(_session(config, _ACTIONS.get(action), duration))
    except KeyboardInterrupt:
        pass
    except TransportError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    main()
