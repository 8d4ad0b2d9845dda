"""Encryption and decryption of ENCRYPTED frames.

Frames are protected with AES-256-CBC (PKCS#7 padding) and authenticated
with HMAC-SHA256 over the compact JSON of the frame's ``data`` object. Before
authentication the API secret key (hex) encrypts; afterwards the session key
(base64) received in the challenge does.
"""

import base64
import binascii
import hmac
import logging
import os
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .frames import EncryptedFrame, decode_payload, dumps
from .models import EncryptedPayload
from .types import (
    AES_BLOCK_BITS,
    API_KEY_SIZE,
    IV_SIZE,
    DecryptionError,
    EncryptionError,
    MacMismatchError,
    PayloadFormatError,
)

logger = logging.getLogger(__name__)


def derive_key(api_secret_key: str, session_key: Optional[str] = None) -> bytes:
    """
    Select the AES key for the current trust phase.

    Args:
        api_secret_key: API secret key, 64 hex characters
        session_key: Base64 session key from the challenge, if authenticated

    Returns:
        32-byte AES key

    Raises:
        ValueError: If the selected key cannot be decoded or has the wrong size
    """
    if session_key is not None:
        key = base64.b64decode(session_key, validate=True)
    else:
        key = bytes.fromhex(api_secret_key)

    if len(key) != API_KEY_SIZE:
        raise ValueError(f"AES key must be {API_KEY_SIZE} bytes, got {len(key)}")
    return key


def mac_input(iv: str, payload: str) -> bytes:
    """The exact bytes the MAC covers: ``{"iv":...,"payload":...}``."""
    return dumps({"iv": iv, "payload": payload}).encode("utf-8")


def compute_mac(message: bytes, api_auth_key: str) -> str:
    """
    HMAC-SHA256 of message under the auth key.

    Args:
        message: Bytes to authenticate
        api_auth_key: API auth key, 64 hex characters

    Returns:
        Base64 encoded MAC
    """
    h = crypto_hmac.HMAC(bytes.fromhex(api_auth_key), hashes.SHA256())
    h.update(message)
    return base64.b64encode(h.finalize()).decode("ascii")


def encrypt_payload(
    plaintext: str,
    api_secret_key: str,
    api_auth_key: str,
    session_key: Optional[str],
) -> Optional[EncryptedFrame]:
    """
    Encrypt a payload and build the ENCRYPTED frame around it.

    The client can only produce valid ENCRYPTED frames in an authenticated
    session, so the session key is always the AES key here.

    Args:
        plaintext: JSON text of the payload
        api_secret_key: API secret key (unused once a session key exists)
        api_auth_key: API auth key used for the MAC
        session_key: Base64 session key, or None before authentication

    Returns:
        The EncryptedFrame, or None when there is no session key

    Raises:
        EncryptionError: If the session key is malformed
    """
    if session_key is None:
        logger.debug("No session key; refusing to encrypt")
        return None

    try:
        key = derive_key(api_secret_key, session_key)
    except (binascii.Error, ValueError) as e:
        raise EncryptionError(f"Invalid session key: {e}") from e

    # A fresh IV for every frame
    iv = os.urandom(IV_SIZE)

    padder = padding.PKCS7(AES_BLOCK_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    iv_b64 = base64.b64encode(iv).decode("ascii")
    payload_b64 = base64.b64encode(ciphertext).decode("ascii")
    mac = compute_mac(mac_input(iv_b64, payload_b64), api_auth_key)

    return EncryptedFrame(iv=iv_b64, payload=payload_b64, mac=mac)


def decrypt_frame(
    frame: EncryptedFrame,
    api_secret_key: str,
    api_auth_key: str,
    session_key: Optional[str] = None,
) -> EncryptedPayload:
    """
    Verify and decrypt an ENCRYPTED frame.

    The MAC is checked before anything is decrypted; nothing from a frame
    with a bad MAC is returned.

    Args:
        frame: Received ENCRYPTED frame
        api_secret_key: API secret key, used before authentication
        api_auth_key: API auth key used for the MAC
        session_key: Base64 session key, if authenticated

    Returns:
        The decoded payload

    Raises:
        MacMismatchError: If the MAC does not match
        PayloadFormatError: If the MAC matches but the plaintext is not a known payload
        DecryptionError: If the ciphertext cannot be decrypted
    """
    expected = compute_mac(mac_input(frame.iv, frame.payload), api_auth_key)
    if not hmac.compare_digest(expected.encode("ascii"), frame.mac.encode("utf-8")):
        raise MacMismatchError(f"Calculated MAC {expected} does not match frame MAC {frame.mac}")

    try:
        iv = base64.b64decode(frame.iv, validate=True)
        ciphertext = base64.b64decode(frame.payload, validate=True)
        key = derive_key(api_secret_key, session_key)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Malformed encrypted frame: {e}") from e

    if len(iv) != IV_SIZE:
        raise DecryptionError(f"IV must be {IV_SIZE} bytes, got {len(iv)}")
    if not ciphertext or len(ciphertext) % (AES_BLOCK_BITS // 8):
        raise DecryptionError(f"Ciphertext length {len(ciphertext)} is not a multiple of the block size")

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    try:
        unpadder = padding.PKCS7(AES_BLOCK_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionError("Invalid padding; wrong key?") from e

    try:
        text = plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise PayloadFormatError("Decrypted payload is not UTF-8 text") from e

    return decode_payload(text)
