"""Connection configuration for a Remootio device."""

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from .types import (
    DEFAULT_PING_INTERVAL_MS,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_DELAY_MS,
    MIN_RECOMMENDED_PING_INTERVAL_MS,
    ConfigError,
    InvalidKeyError,
)

logger = logging.getLogger(__name__)

_HEX_KEY = re.compile(r"[0-9A-Fa-f]{64}")


@dataclass(frozen=True)
class DeviceConfig:
    """Configuration for one device. The keys are shown in the Remootio app."""

    device_ip: str
    """IP address or host name of the device."""

    api_secret_key: str
    """API secret key, 64 hex characters (256 bit)."""

    api_auth_key: str
    """API auth key, 64 hex characters (256 bit)."""

    ping_interval_ms: int = DEFAULT_PING_INTERVAL_MS
    """A PING frame is sent this often; the reply window is half of it."""

    port: int = DEFAULT_PORT
    """Websocket API port."""

    reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS
    """Pause before retrying after an attempt that never opened."""

    def __post_init__(self) -> None:
        if not _HEX_KEY.fullmatch(self.api_secret_key or ""):
            raise InvalidKeyError("api_secret_key must be a hex string representing a 256 bit value")
        if not _HEX_KEY.fullmatch(self.api_auth_key or ""):
            raise InvalidKeyError("api_auth_key must be a hex string representing a 256 bit value")
        if not self.device_ip:
            raise ConfigError("device_ip is required")
        if self.ping_interval_ms <= 0:
            raise ConfigError(f"ping_interval_ms must be positive, got {self.ping_interval_ms}")
        if self.reconnect_delay_ms < 0:
            raise ConfigError(f"reconnect_delay_ms must not be negative, got {self.reconnect_delay_ms}")
        if self.ping_interval_ms < MIN_RECOMMENDED_PING_INTERVAL_MS:
            logger.warning(
                "ping_interval_ms=%d is below the recommended minimum of %d",
                self.ping_interval_ms,
                MIN_RECOMMENDED_PING_INTERVAL_MS,
            )

    @property
    def url(self) -> str:
        """Websocket URL of the device API."""
        return f"ws://{self.device_ip}:{self.port}/"

    @property
    def reply_timeout_ms(self) -> float:
        """How long to wait for any frame after a PING."""
        return self.ping_interval_ms / 2

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DeviceConfig":
        """
        Creates configuration from environment variables.

        Reads REMOOTIO_DEVICE_IP, REMOOTIO_API_SECRET_KEY, REMOOTIO_API_AUTH_KEY
        and optionally REMOOTIO_PING_INTERVAL_MS and REMOOTIO_PORT.

        Raises:
            ConfigError: If a required variable is missing or malformed
        """
        env = os.environ if environ is None else environ

        missing = [
            name
            for name in ("REMOOTIO_DEVICE_IP", "REMOOTIO_API_SECRET_KEY", "REMOOTIO_API_AUTH_KEY")
            if not env.get(name)
        ]
        if missing:
            raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

        try:
            ping_interval_ms = int(env.get("REMOOTIO_PING_INTERVAL_MS", DEFAULT_PING_INTERVAL_MS))
            port = int(env.get("REMOOTIO_PORT", DEFAULT_PORT))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        return cls(
            device_ip=env["REMOOTIO_DEVICE_IP"],
            api_secret_key=env["REMOOTIO_API_SECRET_KEY"],
            api_auth_key=env["REMOOTIO_API_AUTH_KEY"],
            ping_interval_ms=ping_interval_ms,
            port=port,
        )
