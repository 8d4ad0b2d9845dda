"""Tests for action id sequencing."""

from remootio.state import SessionState, is_ahead, next_action_id, should_advance
from remootio.types import ACTION_ID_MAX, ACTION_ID_MODULUS


class TestNextActionId:
    """Ids increment modulo 0x7FFFFFFF."""

    def test_increment(self) -> None:
        assert next_action_id(100) == 101

    def test_wraps_to_zero(self) -> None:
        """The largest id is followed by 0."""
        assert ACTION_ID_MAX == 0x7FFFFFFE
        assert next_action_id(ACTION_ID_MAX) == 0

    def test_full_cycle_has_no_duplicates(self) -> None:
        """Consecutive ids near the boundary are all distinct."""
        current = ACTION_ID_MAX - 5
        seen = set()
        for _ in range(10):
            current = next_action_id(current)
            assert 0 <= current < ACTION_ID_MODULUS
            assert current not in seen
            seen.add(current)


class TestShouldAdvance:
    """The counter only moves forward."""

    def test_larger_id_advances(self) -> None:
        assert should_advance(100, 101)
        assert should_advance(100, 5000)

    def test_stale_id_ignored(self) -> None:
        """Equal or older ids never move the counter back."""
        assert not should_advance(100, 100)
        assert not should_advance(100, 99)
        assert not should_advance(100, 0)

    def test_wraparound(self) -> None:
        """0 follows the largest id."""
        assert should_advance(ACTION_ID_MAX, 0)
        assert not should_advance(ACTION_ID_MAX - 1, 0)


class TestSessionState:
    """Per-connection state."""

    def test_reset_clears_everything(self) -> None:
        state = SessionState(session_key="k", last_action_id=5, last_sent_action_id=6, awaiting_auth_query_response=True)
        state.reset()

        assert state == SessionState()

    def test_no_send_id_before_challenge(self) -> None:
        assert SessionState().next_send_id() is None

    def test_send_id_follows_acknowledged_id(self) -> None:
        state = SessionState(last_action_id=100)
        assert state.next_send_id() == 101

    def test_send_id_follows_outstanding_send(self) -> None:
        """Back-to-back sends do not reuse an id while responses are pending."""
        state = SessionState(last_action_id=100, last_sent_action_id=102)
        assert state.next_send_id() == 103

    def test_acknowledged_id_ahead_of_last_send(self) -> None:
        state = SessionState(last_action_id=200, last_sent_action_id=102)
        assert state.next_send_id() == 201

    def test_send_id_across_wrap(self) -> None:
        state = SessionState(last_action_id=ACTION_ID_MAX, last_sent_action_id=0)
        assert is_ahead(ACTION_ID_MAX, 0)
        assert state.next_send_id() == 1
