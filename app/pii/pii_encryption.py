"""Field-level authenticated encryption for PII values.

Every value is sealed with AES-256-GCM under the process-wide field encryption key. The stored form is

    base64(nonce (16 bytes) || tag (16 bytes) || ciphertext)

in exactly that order. Decryption slices by fixed offsets, so the layout must never change for data that has
already been persisted.
"""

# Builtins
import base64
import binascii
import os
import secrets
import string

# Dependencies
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.pii.pii_exceptions import (
    AuthenticationFailedError,
    EmptyValueError,
    InvalidKeyFormatError,
    KeyUnavailableError,
    MalformedCiphertextError,
)

KEY_LENGTH = 32  # 256 bits
NONCE_LENGTH = 16  # 128 bits
TAG_LENGTH = 16  # 128 bits
MIN_CIPHERTEXT_LENGTH = NONCE_LENGTH + TAG_LENGTH

FIELD_ENCRYPTION_KEY_ENV = 'FIELD_ENCRYPTION_KEY'

_SELF_TEST_VALUE = 'field-encryption-self-test'


def generate_field_encryption_key() -> str:
    """Return a new random key in the 64 hex character form expected by FIELD_ENCRYPTION_KEY."""
    return secrets.token_hex(KEY_LENGTH)


def parse_field_encryption_key(key_hex: str | None) -> bytes:
    """Convert the configured hex key to raw bytes.

    Raises:
        KeyUnavailableError: If the key is unset or blank.
        InvalidKeyFormatError: If the key is not exactly 64 hex characters, surrounding whitespace included.
    """
    if key_hex is None or not key_hex.strip():
        raise KeyUnavailableError()

    if len(key_hex) != KEY_LENGTH * 2 or any(c not in string.hexdigits for c in key_hex):
        raise InvalidKeyFormatError()

    return bytes.fromhex(key_hex)


def is_likely_ciphertext(value) -> bool:
    """Guess whether a stored value is already a ciphertext produced by FieldCipher.

    This only checks that the value is strict base64 of at least nonce + tag bytes. It is not authoritative: a long
    plaintext that happens to be valid base64 is misclassified as ciphertext.
    """
    if not isinstance(value, str) or not value:
        return False
    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return False
    return len(decoded) >= MIN_CIPHERTEXT_LENGTH


class FieldCipher:
    """Encrypts and decrypts single string values with a fixed key.

    Instances are immutable and hold no other state, so one instance can be shared by any number of threads.
    """

    def __init__(self, key: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LENGTH:
            raise InvalidKeyFormatError()
        self._aesgcm = AESGCM(bytes(key))

    @classmethod
    def from_hex(cls, key_hex: str | None) -> 'FieldCipher':
        return cls(parse_field_encryption_key(key_hex))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a non-empty string under a fresh random nonce.

        Raises:
            EmptyValueError: If the value is None, empty, or whitespace only.
        """
        if plaintext is None or not str(plaintext).strip():
            raise EmptyValueError()

        nonce = os.urandom(NONCE_LENGTH)
        # AESGCM appends the tag to the ciphertext; the stored layout puts it before.
        sealed = self._aesgcm.encrypt(nonce, str(plaintext).encode('utf-8'), None)
        body, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return base64.b64encode(nonce + tag + body).decode('ascii')

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a value produced by encrypt.

        Raises:
            MalformedCiphertextError: If the value is not base64, is shorter than nonce + tag, or is not UTF-8.
            AuthenticationFailedError: If the authentication tag does not verify.
        """
        if not isinstance(ciphertext, str) or not ciphertext.strip():
            raise MalformedCiphertextError('Ciphertext is empty or not a string')

        try:
            combined = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedCiphertextError('Ciphertext is not valid base64') from e

        if len(combined) < MIN_CIPHERTEXT_LENGTH:
            raise MalformedCiphertextError(
                f'Ciphertext is {len(combined)} bytes, expected at least {MIN_CIPHERTEXT_LENGTH}'
            )

        nonce = combined[:NONCE_LENGTH]
        tag = combined[NONCE_LENGTH:MIN_CIPHERTEXT_LENGTH]
        body = combined[MIN_CIPHERTEXT_LENGTH:]

        try:
            plaintext = self._aesgcm.decrypt(nonce, body + tag, None)
        except InvalidTag:
            raise AuthenticationFailedError() from None

        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedCiphertextError('Decrypted value is not valid UTF-8') from e

    @staticmethod
    def is_likely_ciphertext(value) -> bool:
        return is_likely_ciphertext(value)

    def self_test(self) -> None:
        """Round-trip a known value, raising PiiError on any failure."""
        first = self.encrypt(_SELF_TEST_VALUE)
        second = self.encrypt(_SELF_TEST_VALUE)
        if first == second:
            raise AuthenticationFailedError('Encryption self-test produced a repeated nonce')
        if self.decrypt(first) != _SELF_TEST_VALUE:
            raise AuthenticationFailedError('Encryption self-test round trip did not match')


class PiiEncryption:
    """Singleton to manage the process-wide FieldCipher.

    The key is resolved once, either from the Flask config by init_app or lazily from the environment on the first
    get_cipher call, and never re-read afterwards. Code that needs a different key (tests, tooling) should build its
    own FieldCipher and inject it rather than touching this class.
    """

    _instance: 'PiiEncryption | None' = None
    _cipher: FieldCipher | None = None

    def __new__(cls) -> 'PiiEncryption':
        if cls._instance is None:
            cls._instance = super(PiiEncryption, cls).__new__(cls)
        return cls._instance

    @classmethod
    def init_app(cls, app) -> FieldCipher:
        """Resolve the key from app.config, optionally proving it works.

        Raises:
            KeyUnavailableError: If FIELD_ENCRYPTION_KEY is not configured.
            InvalidKeyFormatError: If FIELD_ENCRYPTION_KEY is malformed.
        """
        cipher = FieldCipher.from_hex(app.config.get(FIELD_ENCRYPTION_KEY_ENV))
        if app.config.get('PII_VALIDATE_KEY_AT_STARTUP', True):
            cipher.self_test()

        cls._cipher = cipher
        app.logger.info('Field encryption key loaded')
        return cipher

    @classmethod
    def get_cipher(cls) -> FieldCipher:
        """Get or create the FieldCipher for the configured key.

        Raises:
            KeyUnavailableError: If FIELD_ENCRYPTION_KEY is not set.
            InvalidKeyFormatError: If FIELD_ENCRYPTION_KEY is malformed.
        """
        if cls._cipher is None:
            cls._cipher = FieldCipher.from_hex(os.getenv(FIELD_ENCRYPTION_KEY_ENV))
        return cls._cipher

    @classmethod
    def is_available(cls) -> bool:
        """True when a usable key is configured. Never raises."""
        if cls._cipher is not None:
            return True
        try:
            parse_field_encryption_key(os.getenv(FIELD_ENCRYPTION_KEY_ENV))
        except (KeyUnavailableError, InvalidKeyFormatError):
            return False
        return True
