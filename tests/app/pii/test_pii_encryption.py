import base64
import os
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from flask import Flask

from app.pii.pii_encryption import (
    MIN_CIPHERTEXT_LENGTH,
    NONCE_LENGTH,
    TAG_LENGTH,
    FieldCipher,
    PiiEncryption,
    generate_field_encryption_key,
    is_likely_ciphertext,
    parse_field_encryption_key,
)
from app.pii.pii_exceptions import (
    AuthenticationFailedError,
    EmptyValueError,
    InvalidKeyFormatError,
    KeyUnavailableError,
    MalformedCiphertextError,
    PiiError,
)
from tests.app.conftest import TEST_KEY_HEX


def _flip_byte(ciphertext: str, offset: int) -> str:
    raw = bytearray(base64.b64decode(ciphertext))
    raw[offset] ^= 0x01
    return base64.b64encode(bytes(raw)).decode('ascii')


class TestFieldCipher:
    @pytest.mark.parametrize(
        'plaintext',
        [
            '123-45-6789',
            'a',
            '  padded value  ',
            'Ünïcødé 名前 🙂',
            'x' * 10_000,
        ],
    )
    def test_round_trip(self, cipher, plaintext):
        assert cipher.decrypt(cipher.encrypt(plaintext)) == plaintext

    def test_layout_is_nonce_tag_body(self, cipher):
        plaintext = '12-3456789'
        combined = base64.b64decode(cipher.encrypt(plaintext))

        assert len(combined) == NONCE_LENGTH + TAG_LENGTH + len(plaintext.encode('utf-8'))

        nonce = combined[:NONCE_LENGTH]
        tag = combined[NONCE_LENGTH:MIN_CIPHERTEXT_LENGTH]
        body = combined[MIN_CIPHERTEXT_LENGTH:]
        aesgcm = AESGCM(bytes.fromhex(TEST_KEY_HEX))
        assert aesgcm.decrypt(nonce, body + tag, None) == plaintext.encode('utf-8')

    def test_encrypt_uses_a_fresh_nonce_each_call(self, cipher):
        first = cipher.encrypt('111-22-3333')
        second = cipher.encrypt('111-22-3333')

        assert first != second
        assert base64.b64decode(first)[:NONCE_LENGTH] != base64.b64decode(second)[:NONCE_LENGTH]
        assert cipher.decrypt(first) == cipher.decrypt(second) == '111-22-3333'

    def test_encrypt_converts_non_string_values(self, cipher):
        assert cipher.decrypt(cipher.encrypt(123456789)) == '123456789'

    @pytest.mark.parametrize('value', [None, '', '   ', '\t\n'])
    def test_encrypt_rejects_empty_values(self, cipher, value):
        with pytest.raises(EmptyValueError):
            cipher.encrypt(value)

    @pytest.mark.parametrize('offset', [NONCE_LENGTH, NONCE_LENGTH + TAG_LENGTH - 1, MIN_CIPHERTEXT_LENGTH, -1])
    def test_flipped_tag_or_body_byte_fails_authentication(self, cipher, offset):
        tampered = _flip_byte(cipher.encrypt('9876543210'), offset)

        with pytest.raises(AuthenticationFailedError):
            cipher.decrypt(tampered)

    def test_flipped_nonce_byte_fails_authentication(self, cipher):
        tampered = _flip_byte(cipher.encrypt('9876543210'), 0)

        with pytest.raises(AuthenticationFailedError):
            cipher.decrypt(tampered)

    def test_decrypt_with_another_key_fails_authentication(self, cipher, other_cipher):
        with pytest.raises(AuthenticationFailedError):
            other_cipher.decrypt(cipher.encrypt('D12345678'))

    @pytest.mark.parametrize(
        'ciphertext',
        [
            None,
            '',
            '   ',
            12345,
            'not base64 at all!',
            base64.b64encode(b'too short').decode('ascii'),
            base64.b64encode(b'\x00' * (MIN_CIPHERTEXT_LENGTH - 1)).decode('ascii'),
        ],
        ids=['none', 'empty', 'whitespace', 'not-a-string', 'not-base64', 'short', 'one-byte-short'],
    )
    def test_decrypt_rejects_malformed_ciphertext(self, cipher, ciphertext):
        with pytest.raises(MalformedCiphertextError):
            cipher.decrypt(ciphertext)

    def test_decrypt_rejects_plaintext_that_is_not_utf8(self, cipher):
        nonce = os.urandom(NONCE_LENGTH)
        sealed = AESGCM(bytes.fromhex(TEST_KEY_HEX)).encrypt(nonce, b'\xff\xfe\xfd', None)
        ciphertext = base64.b64encode(nonce + sealed[-TAG_LENGTH:] + sealed[:-TAG_LENGTH]).decode('ascii')

        with pytest.raises(MalformedCiphertextError):
            cipher.decrypt(ciphertext)

    def test_errors_share_a_base_class(self, cipher):
        with pytest.raises(PiiError):
            cipher.decrypt('not base64 at all!')

    @pytest.mark.parametrize('key', [b'', b'short', bytes(31), bytes(33), 'a' * 32])
    def test_constructor_rejects_wrong_key_length(self, key):
        with pytest.raises(InvalidKeyFormatError):
            FieldCipher(key)

    def test_self_test_passes_with_valid_key(self, cipher):
        cipher.self_test()

    def test_self_test_detects_broken_round_trip(self, cipher, mocker):
        mocker.patch.object(FieldCipher, 'decrypt', return_value='something else')

        with pytest.raises(PiiError):
            cipher.self_test()


class TestKeyParsing:
    def test_generated_key_is_64_hex_characters(self):
        key = generate_field_encryption_key()

        assert len(key) == 64
        assert len(parse_field_encryption_key(key)) == 32

    def test_generated_keys_differ(self):
        assert generate_field_encryption_key() != generate_field_encryption_key()

    def test_parse_accepts_uppercase(self):
        assert parse_field_encryption_key(TEST_KEY_HEX.upper()) == bytes.fromhex(TEST_KEY_HEX)

    @pytest.mark.parametrize('key_hex', [None, '', '   '])
    def test_missing_key_is_unavailable(self, key_hex):
        with pytest.raises(KeyUnavailableError):
            parse_field_encryption_key(key_hex)

    @pytest.mark.parametrize(
        'key_hex',
        [
            TEST_KEY_HEX[:-2],
            TEST_KEY_HEX + '00',
            'g' * 64,
            base64.b64encode(bytes(32)).decode('ascii'),
            f' {TEST_KEY_HEX}',
            f'{TEST_KEY_HEX}\n',
        ],
        ids=['too-short', 'too-long', 'not-hex', 'base64', 'leading-space', 'trailing-newline'],
    )
    def test_malformed_key_is_rejected(self, key_hex):
        with pytest.raises(InvalidKeyFormatError):
            parse_field_encryption_key(key_hex)


class TestIsLikelyCiphertext:
    def test_real_ciphertext(self, cipher):
        assert is_likely_ciphertext(cipher.encrypt('1'))
        assert FieldCipher.is_likely_ciphertext(cipher.encrypt('123-45-6789'))

    @pytest.mark.parametrize(
        'value',
        [None, '', 123, '123-45-6789', 'John Doe', base64.b64encode(bytes(MIN_CIPHERTEXT_LENGTH - 1)).decode()],
    )
    def test_plaintext_values(self, value):
        assert not is_likely_ciphertext(value)

    def test_long_base64_plaintext_is_misclassified(self):
        # Known limitation of the heuristic: any strict base64 of 32+ bytes looks like ciphertext.
        assert is_likely_ciphertext(base64.b64encode(b'an ordinary note that is long enough').decode('ascii'))


class TestPiiEncryption:
    def test_singleton_pattern(self):
        assert PiiEncryption() is PiiEncryption()

    def test_get_cipher_uses_environment_variable(self, cipher):
        with patch.object(PiiEncryption, '_cipher', None):
            with patch.dict(os.environ, {'FIELD_ENCRYPTION_KEY': TEST_KEY_HEX}):
                resolved = PiiEncryption.get_cipher()
                assert resolved.decrypt(cipher.encrypt('123-45-6789')) == '123-45-6789'

    def test_get_cipher_caches_cipher_instance(self):
        with patch.object(PiiEncryption, '_cipher', None):
            with patch.dict(os.environ, {'FIELD_ENCRYPTION_KEY': TEST_KEY_HEX}):
                assert PiiEncryption.get_cipher() is PiiEncryption.get_cipher()

    def test_get_cipher_does_not_reread_the_environment(self):
        with patch.object(PiiEncryption, '_cipher', None):
            with patch.dict(os.environ, {'FIELD_ENCRYPTION_KEY': TEST_KEY_HEX}):
                first = PiiEncryption.get_cipher()
            with patch.dict(os.environ, {}, clear=True):
                assert PiiEncryption.get_cipher() is first

    def test_get_cipher_without_key_raises(self):
        with patch.object(PiiEncryption, '_cipher', None):
            with patch.dict(os.environ, {}, clear=True):
                with pytest.raises(KeyUnavailableError):
                    PiiEncryption.get_cipher()

    def test_get_cipher_with_malformed_key_raises(self):
        with patch.object(PiiEncryption, '_cipher', None):
            with patch.dict(os.environ, {'FIELD_ENCRYPTION_KEY': 'abc123'}):
                with pytest.raises(InvalidKeyFormatError):
                    PiiEncryption.get_cipher()

    @pytest.mark.parametrize(
        'env, expected',
        [
            ({}, False),
            ({'FIELD_ENCRYPTION_KEY': 'abc123'}, False),
            ({'FIELD_ENCRYPTION_KEY': TEST_KEY_HEX}, True),
        ],
    )
    def test_is_available(self, env, expected):
        with patch.object(PiiEncryption, '_cipher', None):
            with patch.dict(os.environ, env, clear=True):
                assert PiiEncryption.is_available() is expected

    def test_init_app_resolves_key_from_config(self, cipher):
        app = Flask('test')
        app.config['FIELD_ENCRYPTION_KEY'] = TEST_KEY_HEX

        with patch.object(PiiEncryption, '_cipher', None):
            resolved = PiiEncryption.init_app(app)
            assert PiiEncryption.get_cipher() is resolved
            assert resolved.decrypt(cipher.encrypt('abc')) == 'abc'

    def test_init_app_fails_fast_without_key(self):
        app = Flask('test')
        app.config['FIELD_ENCRYPTION_KEY'] = None

        with patch.object(PiiEncryption, '_cipher', None):
            with pytest.raises(KeyUnavailableError):
                PiiEncryption.init_app(app)
            assert PiiEncryption._cipher is None

    def test_init_app_runs_self_test_when_enabled(self, mocker):
        app = Flask('test')
        app.config['FIELD_ENCRYPTION_KEY'] = TEST_KEY_HEX
        app.config['PII_VALIDATE_KEY_AT_STARTUP'] = True
        self_test = mocker.patch.object(FieldCipher, 'self_test')

        with patch.object(PiiEncryption, '_cipher', None):
            PiiEncryption.init_app(app)

        self_test.assert_called_once_with()

    def test_init_app_skips_self_test_when_disabled(self, mocker):
        app = Flask('test')
        app.config['FIELD_ENCRYPTION_KEY'] = TEST_KEY_HEX
        app.config['PII_VALIDATE_KEY_AT_STARTUP'] = False
        self_test = mocker.patch.object(FieldCipher, 'self_test')

        with patch.object(PiiEncryption, '_cipher', None):
            PiiEncryption.init_app(app)

        self_test.assert_not_called()
