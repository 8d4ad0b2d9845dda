"""Per-connection session state and action id arithmetic."""

from dataclasses import dataclass
from typing import Optional

from .types import ACTION_ID_MAX, ACTION_ID_MODULUS


@dataclass
class SessionState:
    """Mutable state of one connection to the device.

    Attributes:
        session_key: Base64 session key from the challenge; None until then.
        last_action_id: Last action id known to the device; None until the challenge.
        awaiting_auth_query_response: True between the challenge and the
            response to the QUERY that completes authentication.
    """

    session_key: Optional[str] = None
    last_action_id: Optional[int] = None
    last_sent_action_id: Optional[int] = None
    awaiting_auth_query_response: bool = False

    def reset(self) -> None:
        """Forget everything learned on the previous connection."""
        self.session_key = None
        self.last_action_id = None
        self.last_sent_action_id = None
        self.awaiting_auth_query_response = False

    def next_send_id(self) -> Optional[int]:
        """Id for the next outgoing action, or None before the challenge.

        Follows the last sent id while its response is outstanding, so
        back-to-back actions never reuse an id.
        """
        if self.last_action_id is None:
            return None
        base = self.last_action_id
        if self.last_sent_action_id is not None and is_ahead(base, self.last_sent_action_id):
            base = self.last_sent_action_id
        return next_action_id(base)


def next_action_id(last_action_id: int) -> int:
    """The id for the next action sent after last_action_id."""
    return (last_action_id + 1) % ACTION_ID_MODULUS


def should_advance(last_action_id: int, response_id: int) -> bool:
    """Whether a response id moves the counter forward.

    Only ids ahead of the current value are accepted, plus the wrap from
    the largest id back to 0. Stale or replayed ids never move it back.

    Args:
        last_action_id: Current counter value.
        response_id: Id echoed in an action response.

    Returns:
        True if the counter should become response_id.
    """
    if response_id > last_action_id:
        return True
    return response_id == 0 and last_action_id == ACTION_ID_MAX


def is_ahead(reference: int, candidate: int) -> bool:
    """Whether candidate is within half a cycle ahead of reference."""
    distance = (candidate - reference) % ACTION_ID_MODULUS
    return 0 < distance < ACTION_ID_MODULUS // 2
