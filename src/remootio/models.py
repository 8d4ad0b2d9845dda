"""Models for the payloads carried inside ENCRYPTED frames."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .types import ACTION_ID_MODULUS, PayloadFormatError


class ActionType(Enum):
    """Actions the client can ask the device to perform."""
    QUERY = "QUERY"
    TRIGGER = "TRIGGER"
    TRIGGER_SECONDARY = "TRIGGER_SECONDARY"
    OPEN = "OPEN"
    CLOSE = "CLOSE"
    RESTART = "RESTART"

    @property
    def accepts_duration(self) -> bool:
        """Whether the action can hold the output active for a duration."""
        return self in _DURATION_ACTIONS


_DURATION_ACTIONS = frozenset(
    {ActionType.TRIGGER, ActionType.TRIGGER_SECONDARY, ActionType.OPEN, ActionType.CLOSE}
)


class SensorState(Enum):
    """Gate status reported by the device sensor."""
    CLOSED = "closed"
    OPEN = "open"
    NO_SENSOR = "no sensor"


class EventType(Enum):
    """Asynchronous event types sent by the device."""
    STATE_CHANGE = "StateChange"
    RESTART = "Restart"
    MANUAL_BUTTON_PUSHED = "ManualButtonPushed"
    MANUAL_BUTTON_ENABLED = "ManualButtonEnabled"
    MANUAL_BUTTON_DISABLED = "ManualButtonDisabled"
    DOORBELL_PUSHED = "DoorbellPushed"
    DOORBELL_ENABLED = "DoorbellEnabled"
    DOORBELL_DISABLED = "DoorbellDisabled"
    SENSOR_ENABLED = "SensorEnabled"
    SENSOR_FLIPPED = "SensorFlipped"
    SENSOR_DISABLED = "SensorDisabled"
    RELAY_TRIGGER = "RelayTrigger"
    SECONDARY_RELAY_TRIGGER = "SecondaryRelayTrigger"
    CONNECTED = "Connected"
    LEFT_OPEN = "LeftOpen"
    KEY_MANAGEMENT = "KeyManagement"


class KeyType(Enum):
    """Kind of key that caused an event."""
    MASTER_KEY = "master key"
    UNIQUE_KEY = "unique key"
    GUEST_KEY = "guest key"
    API_KEY = "api key"
    SMART_HOME = "smart home"
    AUTOMATION = "automation"


class ConnectionType(Enum):
    """Channel a key used to reach the device."""
    BLUETOOTH = "bluetooth"
    WIFI = "wifi"
    INTERNET = "internet"
    AUTOOPEN = "autoopen"
    UNKNOWN = "unknown"
    NONE = "none"


def _enum(cls, value):
    try:
        return cls(value)
    except ValueError:
        raise PayloadFormatError(f"Unknown {cls.__name__} value: {value!r}") from None


def _field(obj: dict, name: str, kind=None):
    if name not in obj:
        raise PayloadFormatError(f"Missing field: {name}")
    value = obj[name]
    if kind is None:
        return value
    # bool is a subclass of int
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise PayloadFormatError(f"Field {name} has wrong type: {value!r}")
    return value


def _optional(obj: dict, name: str, kind, default):
    if name not in obj:
        return default
    return _field(obj, name, kind)


def _action_id(obj: dict, name: str) -> int:
    value = _field(obj, name, int)
    if not 0 <= value < ACTION_ID_MODULUS:
        raise PayloadFormatError(f"Field {name} is not a valid action id: {value!r}")
    return value


# MARK: - Outbound


@dataclass(frozen=True)
class Action:
    """An action sent to the device inside an ENCRYPTED frame."""
    type: ActionType
    id: int
    duration: Optional[int] = None

    def to_dict(self) -> dict:
        """Returns the JSON object placed in the encrypted payload."""
        body: dict = {"type": self.type.value, "id": self.id}
        if self.duration is not None:
            body["duration"] = self.duration
        return {"action": body}


# MARK: - Inbound


@dataclass(frozen=True)
class Challenge:
    """Authentication challenge answering an AUTH frame."""
    session_key: str  # base64, 256 bit
    initial_action_id: int

    @classmethod
    def from_dict(cls, obj: dict) -> "Challenge":
        return cls(
            session_key=_field(obj, "sessionKey", str),
            initial_action_id=_action_id(obj, "initialActionId"),
        )

    def to_dict(self) -> dict:
        return {
            "challenge": {
                "sessionKey": self.session_key,
                "initialActionId": self.initial_action_id,
            }
        }


@dataclass(frozen=True)
class ActionResponse:
    """The device's response to an action."""
    type: ActionType
    id: int
    success: bool
    state: SensorState
    t100ms: int
    relay_triggered: bool
    error_code: str

    @classmethod
    def from_dict(cls, obj: dict) -> "ActionResponse":
        return cls(
            type=_enum(ActionType, _field(obj, "type")),
            id=_action_id(obj, "id"),
            success=bool(obj.get("success", False)),
            state=_enum(SensorState, _field(obj, "state")),
            t100ms=_optional(obj, "t100ms", int, 0),
            relay_triggered=bool(obj.get("relayTriggered", False)),
            error_code=_optional(obj, "errorCode", str, ""),
        )

    def to_dict(self) -> dict:
        return {
            "response": {
                "type": self.type.value,
                "id": self.id,
                "success": self.success,
                "state": self.state.value,
                "t100ms": self.t100ms,
                "relayTriggered": self.relay_triggered,
                "errorCode": self.error_code,
            }
        }


@dataclass(frozen=True)
class KeyUsageData:
    """Which key triggered a relay or connected."""
    key_nr: int
    key_type: KeyType
    via: ConnectionType

    @classmethod
    def from_dict(cls, obj: dict) -> "KeyUsageData":
        return cls(
            key_nr=_field(obj, "keyNr", int),
            key_type=_enum(KeyType, _field(obj, "keyType")),
            via=_enum(ConnectionType, _field(obj, "via")),
        )

    def to_dict(self) -> dict:
        return {"keyNr": self.key_nr, "keyType": self.key_type.value, "via": self.via.value}


@dataclass(frozen=True)
class LeftOpenData:
    """How long the gate has been left open."""
    time_open_100ms: int

    @classmethod
    def from_dict(cls, obj: dict) -> "LeftOpenData":
        return cls(time_open_100ms=_field(obj, "timeOpen100ms", int))

    def to_dict(self) -> dict:
        return {"timeOpen100ms": self.time_open_100ms}


@dataclass(frozen=True)
class KeyManagementData:
    """A key was added, changed or removed."""
    key_nr: int
    key_type: KeyType
    bluetooth: bool
    wifi: bool
    internet: bool
    notification: bool
    is_removed: bool

    @classmethod
    def from_dict(cls, obj: dict) -> "KeyManagementData":
        return cls(
            key_nr=_field(obj, "keyNr", int),
            key_type=_enum(KeyType, _field(obj, "keyType")),
            bluetooth=bool(obj.get("bluetooth", False)),
            wifi=bool(obj.get("wifi", False)),
            internet=bool(obj.get("internet", False)),
            notification=bool(obj.get("notification", False)),
            is_removed=bool(obj.get("isRemoved", False)),
        )

    def to_dict(self) -> dict:
        return {
            "keyNr": self.key_nr,
            "keyType": self.key_type.value,
            "bluetooth": self.bluetooth,
            "wifi": self.wifi,
            "internet": self.internet,
            "notification": self.notification,
            "isRemoved": self.is_removed,
        }


EventData = Union[KeyUsageData, LeftOpenData, KeyManagementData]

_EVENT_DATA = {
    EventType.RELAY_TRIGGER: KeyUsageData,
    EventType.SECONDARY_RELAY_TRIGGER: KeyUsageData,
    EventType.CONNECTED: KeyUsageData,
    EventType.LEFT_OPEN: LeftOpenData,
    EventType.KEY_MANAGEMENT: KeyManagementData,
}


@dataclass(frozen=True)
class DeviceEvent:
    """Asynchronous notification from the device."""
    cnt: int
    type: EventType
    state: SensorState
    t100ms: int
    data: Optional[EventData] = None

    @classmethod
    def from_dict(cls, obj: dict) -> "DeviceEvent":
        event_type = _enum(EventType, _field(obj, "type"))
        data = None
        data_cls = _EVENT_DATA.get(event_type)
        if data_cls is not None and isinstance(obj.get("data"), dict):
            data = data_cls.from_dict(obj["data"])
        return cls(
            cnt=_field(obj, "cnt", int),
            type=event_type,
            state=_enum(SensorState, _field(obj, "state")),
            t100ms=_optional(obj, "t100ms", int, 0),
            data=data,
        )

    def to_dict(self) -> dict:
        body = {
            "cnt": self.cnt,
            "type": self.type.value,
            "state": self.state.value,
            "t100ms": self.t100ms,
        }
        if self.data is not None:
            body["data"] = self.data.to_dict()
        return {"event": body}


EncryptedPayload = Union[Challenge, ActionResponse, DeviceEvent]
