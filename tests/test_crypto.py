"""Tests for frame encryption and decryption."""

import base64
import hashlib
import hmac

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from remootio.crypto import compute_mac, decrypt_frame, derive_key, encrypt_payload, mac_input
from remootio.frames import EncryptedFrame, dumps, encode_frame
from remootio.models import ActionResponse, ActionType, Challenge, DeviceEvent, SensorState
from remootio.types import DecryptionError, EncryptionError, MacMismatchError, PayloadFormatError
from .test_vectors import (
    API_AUTH_KEY,
    API_SECRET_KEY,
    CHALLENGE,
    QUERY_RESPONSE,
    RELAY_TRIGGER_EVENT,
    SECRET_AS_SESSION_KEY,
    SESSION_KEY,
)


def _encrypt(payload, session_key=SESSION_KEY) -> EncryptedFrame:
    text = payload if isinstance(payload, str) else dumps(payload)
    return encrypt_payload(text, API_SECRET_KEY, API_AUTH_KEY, session_key)


def _flip_first_char(value: str) -> str:
    return ("B" if value[0] == "A" else "A") + value[1:]


class TestDeriveKey:
    """Test key selection per trust phase."""

    def test_secret_key_before_authentication(self) -> None:
        """Without a session key the hex secret key is used."""
        assert derive_key(API_SECRET_KEY) == bytes.fromhex(API_SECRET_KEY)

    def test_session_key_after_authentication(self) -> None:
        """A session key takes precedence and is base64 decoded."""
        assert derive_key(API_SECRET_KEY, SESSION_KEY) == base64.b64decode(SESSION_KEY)

    def test_wrong_size_rejected(self) -> None:
        """Keys that are not 256 bit are rejected."""
        with pytest.raises(ValueError):
            derive_key(API_SECRET_KEY, base64.b64encode(bytes(16)).decode())


class TestMac:
    """Test HMAC-SHA256 over the data object."""

    def test_mac_matches_hmac_sha256(self) -> None:
        """MAC is base64 HMAC-SHA256 keyed with the hex auth key."""
        message = b'{"iv":"abc","payload":"def"}'
        expected = hmac.new(bytes.fromhex(API_AUTH_KEY), message, hashlib.sha256).digest()
        assert compute_mac(message, API_AUTH_KEY) == base64.b64encode(expected).decode()

    def test_mac_input_key_order(self) -> None:
        """The authenticated bytes are compact JSON with iv before payload."""
        assert mac_input("abc", "def") == b'{"iv":"abc","payload":"def"}'


class TestEncryption:
    """Test building ENCRYPTED frames."""

    def test_no_session_key_is_noop(self) -> None:
        """Encryption is refused, not raised, before authentication."""
        assert encrypt_payload('{"action":{}}', API_SECRET_KEY, API_AUTH_KEY, None) is None

    def test_invalid_session_key_raises(self) -> None:
        """A malformed session key is an encryption error."""
        with pytest.raises(EncryptionError):
            encrypt_payload("{}", API_SECRET_KEY, API_AUTH_KEY, "not base64!")

    def test_frame_fields_are_base64(self) -> None:
        """IV is 16 bytes, ciphertext is whole blocks, MAC is 32 bytes."""
        frame = _encrypt({"action": {"type": "QUERY", "id": 1}})

        assert len(base64.b64decode(frame.iv)) == 16
        assert len(base64.b64decode(frame.payload)) % 16 == 0
        assert len(base64.b64decode(frame.mac)) == 32

    def test_mac_covers_serialized_data(self) -> None:
        """The MAC is computed over the data object exactly as it goes on the wire."""
        frame = _encrypt({"action": {"type": "QUERY", "id": 1}})
        wire = encode_frame(frame)

        data = wire[wire.index('"data":') + len('"data":'): wire.index(',"mac"')]
        assert compute_mac(data.encode(), API_AUTH_KEY) == frame.mac

    def test_fresh_iv_per_call(self) -> None:
        """Encrypting the same plaintext twice never reuses the IV."""
        first = _encrypt({"action": {"type": "QUERY", "id": 1}})
        second = _encrypt({"action": {"type": "QUERY", "id": 1}})

        assert first.iv != second.iv
        assert first.payload != second.payload

    def test_aes_cbc_pkcs7_under_session_key(self) -> None:
        """The ciphertext is plain AES-256-CBC with PKCS#7 padding."""
        plaintext = dumps({"action": {"type": "TRIGGER", "id": 5}})
        frame = _encrypt(plaintext)

        decryptor = Cipher(
            algorithms.AES(base64.b64decode(SESSION_KEY)),
            modes.CBC(base64.b64decode(frame.iv)),
        ).decryptor()
        padded = decryptor.update(base64.b64decode(frame.payload)) + decryptor.finalize()
        unpadder = padding.PKCS7(128).unpadder()

        assert (unpadder.update(padded) + unpadder.finalize()).decode() == plaintext


class TestDecryption:
    """Test verifying and decrypting ENCRYPTED frames."""

    def test_roundtrip_response(self) -> None:
        """An action response survives encrypt then decrypt."""
        frame = _encrypt(QUERY_RESPONSE)
        payload = decrypt_frame(frame, API_SECRET_KEY, API_AUTH_KEY, SESSION_KEY)

        assert isinstance(payload, ActionResponse)
        assert payload.type is ActionType.QUERY
        assert payload.id == 101
        assert payload.state is SensorState.CLOSED

    def test_challenge_under_secret_key(self) -> None:
        """Before authentication frames are decrypted with the secret key."""
        frame = _encrypt(CHALLENGE, SECRET_AS_SESSION_KEY)
        payload = decrypt_frame(frame, API_SECRET_KEY, API_AUTH_KEY)

        assert isinstance(payload, Challenge)
        assert payload.initial_action_id == 100

    def test_event_payload(self) -> None:
        """Events decrypt into DeviceEvent."""
        frame = _encrypt(RELAY_TRIGGER_EVENT)
        payload = decrypt_frame(frame, API_SECRET_KEY, API_AUTH_KEY, SESSION_KEY)

        assert isinstance(payload, DeviceEvent)
        assert payload.cnt == 7

    def test_tampered_ciphertext_rejected(self) -> None:
        """Changing the ciphertext breaks the MAC."""
        frame = _encrypt(QUERY_RESPONSE)
        tampered = EncryptedFrame(iv=frame.iv, payload=_flip_first_char(frame.payload), mac=frame.mac)

        with pytest.raises(MacMismatchError):
            decrypt_frame(tampered, API_SECRET_KEY, API_AUTH_KEY, SESSION_KEY)

    def test_tampered_iv_rejected(self) -> None:
        """Changing the IV breaks the MAC."""
        frame = _encrypt(QUERY_RESPONSE)
        tampered = EncryptedFrame(iv=_flip_first_char(frame.iv), payload=frame.payload, mac=frame.mac)

        with pytest.raises(MacMismatchError):
            decrypt_frame(tampered, API_SECRET_KEY, API_AUTH_KEY, SESSION_KEY)

    def test_corrupted_mac_rejected(self) -> None:
        """A corrupted MAC is a security failure."""
        frame = _encrypt(QUERY_RESPONSE)
        tampered = EncryptedFrame(iv=frame.iv, payload=frame.payload, mac=_flip_first_char(frame.mac))

        with pytest.raises(MacMismatchError):
            decrypt_frame(tampered, API_SECRET_KEY, API_AUTH_KEY, SESSION_KEY)

    def test_wrong_auth_key_rejected(self) -> None:
        """Frames authenticated with another auth key are rejected."""
        frame = _encrypt(QUERY_RESPONSE)

        with pytest.raises(MacMismatchError):
            decrypt_frame(frame, API_SECRET_KEY, "00" * 32, SESSION_KEY)

    def test_wrong_encryption_key_fails(self) -> None:
        """A valid MAC with the wrong AES key does not yield a payload."""
        frame = _encrypt(QUERY_RESPONSE)

        with pytest.raises(DecryptionError):
            decrypt_frame(frame, API_SECRET_KEY, API_AUTH_KEY)

    def test_non_json_plaintext_is_format_error(self) -> None:
        """Valid MAC but non-JSON plaintext is a protocol violation, not a MAC error."""
        frame = _encrypt("this is not json")

        with pytest.raises(PayloadFormatError):
            decrypt_frame(frame, API_SECRET_KEY, API_AUTH_KEY, SESSION_KEY)

    def test_unknown_payload_is_format_error(self) -> None:
        """Valid JSON that is not a challenge, response or event is rejected."""
        frame = _encrypt({"something": {"else": 1}})

        with pytest.raises(PayloadFormatError) as excinfo:
            decrypt_frame(frame, API_SECRET_KEY, API_AUTH_KEY, SESSION_KEY)
        assert not isinstance(excinfo.value, MacMismatchError)

    def test_bad_iv_length(self) -> None:
        """A correctly authenticated frame with a short IV is undecryptable."""
        iv = base64.b64encode(bytes(8)).decode()
        payload = base64.b64encode(bytes(16)).decode()
        mac = compute_mac(mac_input(iv, payload), API_AUTH_KEY)

        with pytest.raises(DecryptionError):
            decrypt_frame(EncryptedFrame(iv=iv, payload=payload, mac=mac), API_SECRET_KEY, API_AUTH_KEY)
