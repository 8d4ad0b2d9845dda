"""
remootio - client for the Remootio websocket API

Python implementation of the Remootio device API session protocol:
AES-256-CBC + HMAC-SHA256 encrypted frames, challenge-response
authentication, keepalive and action sequencing.
"""

from .types import (
    ACTION_ID_MODULUS,
    DEFAULT_PING_INTERVAL_MS,
    DEFAULT_PORT,
    RemootioError,
    ConfigError,
    InvalidKeyError,
    FrameError,
    EncryptionError,
    DecryptionError,
    MacMismatchError,
    PayloadFormatError,
    TransportError,
)
from .models import (
    ActionType,
    SensorState,
    EventType,
    KeyType,
    ConnectionType,
    Action,
    Challenge,
    ActionResponse,
    DeviceEvent,
    KeyUsageData,
    LeftOpenData,
    KeyManagementData,
    EncryptedPayload,
)
from .frames import (
    ErrorMessage,
    AuthFrame,
    HelloFrame,
    PingFrame,
    PongFrame,
    ErrorFrame,
    ServerHelloFrame,
    EncryptedFrame,
    encode_frame,
    decode_frame,
    encode_payload,
    decode_payload,
)
from .crypto import (
    derive_key,
    compute_mac,
    encrypt_payload,
    decrypt_frame,
)
from .state import SessionState, next_action_id, should_advance
from .keepalive import Keepalive, KeepaliveState
from .events import (
    Connecting,
    Connected,
    Authenticated,
    Disconnect,
    ErrorEvent,
    OutgoingMessage,
    IncomingMessage,
    SessionEvent,
    EventEmitter,
)
from .transport import Transport, WebsocketTransport
from .config import DeviceConfig
from .client import (
    RemootioDevice,
    SessionPhase,
    SendStatus,
    SendResult,
)

__version__ = "0.1.0"

__all__ = [
    # Constants
    "ACTION_ID_MODULUS",
    "DEFAULT_PING_INTERVAL_MS",
    "DEFAULT_PORT",
    # Errors
    "RemootioError",
    "ConfigError",
    "InvalidKeyError",
    "FrameError",
    "EncryptionError",
    "DecryptionError",
    "MacMismatchError",
    "PayloadFormatError",
    "TransportError",
    # Models
    "ActionType",
    "SensorState",
    "EventType",
    "KeyType",
    "ConnectionType",
    "Action",
    "Challenge",
    "ActionResponse",
    "DeviceEvent",
    "KeyUsageData",
    "LeftOpenData",
    "KeyManagementData",
    "EncryptedPayload",
    # Frames
    "ErrorMessage",
    "AuthFrame",
    "HelloFrame",
    "PingFrame",
    "PongFrame",
    "ErrorFrame",
    "ServerHelloFrame",
    "EncryptedFrame",
    "encode_frame",
    "decode_frame",
    "encode_payload",
    "decode_payload",
    # Crypto
    "derive_key",
    "compute_mac",
    "encrypt_payload",
    "decrypt_frame",
    # State
    "SessionState",
    "next_action_id",
    "should_advance",
    "Keepalive",
    "KeepaliveState",
    # Events
    "Connecting",
    "Connected",
    "Authenticated",
    "Disconnect",
    "ErrorEvent",
    "OutgoingMessage",
    "IncomingMessage",
    "SessionEvent",
    "EventEmitter",
    # Transport
    "Transport",
    "WebsocketTransport",
    # Client
    "DeviceConfig",
    "RemootioDevice",
    "SessionPhase",
    "SendStatus",
    "SendResult",
]
