"""Protocol constants and exception types for the Remootio client."""


# Protocol constants
DEFAULT_PORT = 8080
DEFAULT_PING_INTERVAL_MS = 60_000
MIN_RECOMMENDED_PING_INTERVAL_MS = 10_000
DEFAULT_RECONNECT_DELAY_MS = 1_000

# Action ids cycle in [0, ACTION_ID_MODULUS)
ACTION_ID_MODULUS = 0x7FFFFFFF
ACTION_ID_MAX = ACTION_ID_MODULUS - 1

# Key and block sizes (bytes)
API_KEY_SIZE = 32
IV_SIZE = 16
AES_BLOCK_BITS = 128


# Exception types
class RemootioError(Exception):
    """Base exception for Remootio client errors."""
    pass


class ConfigError(RemootioError):
    """Invalid client configuration."""
    pass


class InvalidKeyError(ConfigError):
    """API key is not a 256-bit hex string."""
    pass


class FrameError(RemootioError):
    """Wire text is not a recognised frame."""
    pass


class EncryptionError(RemootioError):
    """Encryption failed."""
    pass


class DecryptionError(RemootioError):
    """Encrypted frame could not be decrypted."""
    pass


class MacMismatchError(DecryptionError):
    """The frame MAC does not match the one computed with the auth key."""
    pass


class PayloadFormatError(DecryptionError):
    """MAC verified, but the decrypted payload is not a known JSON document."""
    pass


class TransportError(RemootioError):
    """The transport could not be opened or failed while in use."""
    pass
