"""Exceptions raised by the field-level PII protection package.

Configuration faults (missing or malformed key) are fatal and should stop the application from serving traffic
that needs PII protection. Ciphertext faults are per-field and recoverable by isolation.
"""


class PiiError(Exception):
    """Base class for every error raised by app.pii."""


class EmptyValueError(PiiError):
    """An empty, null, or whitespace-only value was passed to encrypt."""

    def __init__(self, message: str = 'Cannot encrypt an empty value') -> None:
        super().__init__(message)


class KeyUnavailableError(PiiError):
    """The process-wide field encryption key is not configured."""

    def __init__(self, message: str = 'FIELD_ENCRYPTION_KEY is not set') -> None:
        super().__init__(message)


class InvalidKeyFormatError(PiiError):
    """The field encryption key is not exactly 64 hex characters (32 raw bytes)."""

    def __init__(self, message: str = 'FIELD_ENCRYPTION_KEY must be exactly 64 hex characters (256 bits)') -> None:
        super().__init__(message)


class MalformedCiphertextError(PiiError):
    """Stored ciphertext does not decode, is too short, or does not decrypt to UTF-8."""


class AuthenticationFailedError(PiiError):
    """
    The GCM authentication tag did not verify.

    Raised for tampered ciphertext, ciphertext written under a different key, or corrupted storage. Callers should
    treat this as a potential security event.
    """

    def __init__(self, message: str = 'Ciphertext failed authentication') -> None:
        super().__init__(message)
