"""Wire frame encoding and decoding for the Remootio websocket API.

Every websocket message is a JSON object with a ``type`` discriminator.
Plaintext control frames carry no payload of their own; ENCRYPTED frames
carry an opaque ``data`` block that only the crypto module interprets.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .models import (
    Action,
    ActionResponse,
    Challenge,
    DeviceEvent,
    EncryptedPayload,
)
from .types import FrameError, PayloadFormatError


class ErrorMessage(Enum):
    """Reasons the device reports in an ERROR frame."""
    JSON_ERROR = "json error"
    INPUT_ERROR = "input error"
    INTERNAL_ERROR = "internal error"
    CONNECTION_TIMEOUT = "connection timeout"
    AUTHENTICATION_TIMEOUT = "authentication timeout"
    ALREADY_AUTHENTICATED = "already authenticated"
    AUTHENTICATION_ERROR = "authentication error"


# MARK: - Frames


@dataclass(frozen=True)
class AuthFrame:
    """Starts the authentication flow."""
    type: str = "AUTH"


@dataclass(frozen=True)
class HelloFrame:
    """Asks the device for a SERVER_HELLO."""
    type: str = "HELLO"


@dataclass(frozen=True)
class PingFrame:
    """Keepalive probe."""
    type: str = "PING"


@dataclass(frozen=True)
class PongFrame:
    """Keepalive reply."""
    type: str = "PONG"


@dataclass(frozen=True)
class ErrorFrame:
    """Plaintext error reported by the device."""
    error_message: ErrorMessage
    type: str = "ERROR"


@dataclass(frozen=True)
class ServerHelloFrame:
    """Device greeting; API version 2 adds the serial number and hardware version."""
    api_version: int
    message: str
    serial_number: Optional[str] = None
    remootio_version: Optional[str] = None
    type: str = "SERVER_HELLO"


@dataclass(frozen=True)
class EncryptedFrame:
    """Opaque encrypted frame. All three fields are base64 strings."""
    iv: str
    payload: str
    mac: str
    type: str = "ENCRYPTED"

    def data_dict(self) -> dict:
        """The ``data`` object in the authenticated key order (iv, payload)."""
        return {"iv": self.iv, "payload": self.payload}


SentFrame = Union[AuthFrame, HelloFrame, PingFrame, EncryptedFrame]
ReceivedFrame = Union[ErrorFrame, PongFrame, ServerHelloFrame, EncryptedFrame]
Frame = Union[SentFrame, ReceivedFrame]


def dumps(obj: dict) -> str:
    """Compact JSON, matching the byte layout the device produces."""
    return json.dumps(obj, separators=(",", ":"))


def frame_to_dict(frame: Frame) -> dict:
    """
    Convert a frame to its JSON object.

    Args:
        frame: Frame value

    Returns:
        dict with the wire field names
    """
    if isinstance(frame, EncryptedFrame):
        return {"type": frame.type, "data": frame.data_dict(), "mac": frame.mac}
    if isinstance(frame, ErrorFrame):
        return {"type": frame.type, "errorMessage": frame.error_message.value}
    if isinstance(frame, ServerHelloFrame):
        obj = {"type": frame.type, "apiVersion": frame.api_version, "message": frame.message}
        if frame.serial_number is not None:
            obj["serialNumber"] = frame.serial_number
        if frame.remootio_version is not None:
            obj["remootioVersion"] = frame.remootio_version
        return obj
    return {"type": frame.type}


def encode_frame(frame: Frame) -> str:
    """Serialize a frame to wire text."""
    return dumps(frame_to_dict(frame))


def decode_frame(text: Union[str, bytes]) -> ReceivedFrame:
    """
    Parse wire text into a frame.

    Args:
        text: Message received from the transport

    Returns:
        The decoded frame

    Raises:
        FrameError: If the text is not JSON or not a known frame shape
    """
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FrameError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise FrameError("Frame is not a JSON object")

    frame_type = obj.get("type")

    if frame_type == "ENCRYPTED":
        data = obj.get("data")
        if not isinstance(data, dict):
            raise FrameError("ENCRYPTED frame without data object")
        iv, payload, mac = data.get("iv"), data.get("payload"), obj.get("mac")
        if not (isinstance(iv, str) and isinstance(payload, str) and isinstance(mac, str)):
            raise FrameError("ENCRYPTED frame must carry iv, payload and mac strings")
        if not (iv and payload and mac):
            raise FrameError("ENCRYPTED frame has empty iv, payload or mac")
        return EncryptedFrame(iv=iv, payload=payload, mac=mac)

    if frame_type == "PONG":
        return PongFrame()

    if frame_type == "ERROR":
        try:
            return ErrorFrame(error_message=ErrorMessage(obj.get("errorMessage")))
        except ValueError:
            raise FrameError(f"Unknown errorMessage: {obj.get('errorMessage')!r}") from None

    if frame_type == "SERVER_HELLO":
        api_version = obj.get("apiVersion")
        if not isinstance(api_version, int) or isinstance(api_version, bool):
            raise FrameError("SERVER_HELLO frame without apiVersion")
        message = obj.get("message", "")
        if not isinstance(message, str):
            raise FrameError(f"SERVER_HELLO message must be a string, got {message!r}")
        return ServerHelloFrame(
            api_version=api_version,
            message=message,
            serial_number=obj.get("serialNumber"),
            remootio_version=obj.get("remootioVersion"),
        )

    raise FrameError(f"Unknown frame type: {frame_type!r}")


# MARK: - Encrypted payloads


def encode_payload(action: Action) -> str:
    """Serialize an action to the plaintext that gets encrypted."""
    return dumps(action.to_dict())


def decode_payload(text: Union[str, bytes]) -> EncryptedPayload:
    """
    Parse decrypted plaintext into a payload value.

    Args:
        text: Decrypted JSON document

    Returns:
        Challenge, ActionResponse or DeviceEvent

    Raises:
        PayloadFormatError: If the text is not JSON or not a known payload
    """
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PayloadFormatError(f"Decrypted payload is not valid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise PayloadFormatError("Decrypted payload is not a JSON object")

    if isinstance(obj.get("challenge"), dict):
        return Challenge.from_dict(obj["challenge"])
    if isinstance(obj.get("response"), dict):
        return ActionResponse.from_dict(obj["response"])
    if isinstance(obj.get("event"), dict):
        return DeviceEvent.from_dict(obj["event"])

    raise PayloadFormatError(f"Unknown payload keys: {sorted(obj)}")
