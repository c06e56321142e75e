"""
Unit tests for encryptors.

Covers:
- AES-256-GCM and Fernet round trips
- None/empty pass-through and non-string input
- Failures returned as results instead of raised
- Encryptor factory contract checks
"""

from django.test import SimpleTestCase

from lifecycle_encryption.encryptors import (
    AES256GCMEncryptor,
    BaseEncryptor,
    CipherResult,
    FernetEncryptor,
    build_encryptor,
    encryptor_factory,
    generate_secret_key,
)
from lifecycle_encryption.exceptions import EncryptionConfigurationError
from lifecycle_encryption.tests.fakes import PrefixEncryptor


class NotAnEncryptor:
    """Has the right method names but not the contract."""

    def __init__(self, secret_key):
        pass

    def encrypt(self, value):
        return value

    def decrypt(self, value):
        return value


class AESEncryptorTestCase(SimpleTestCase):

    def setUp(self):
        self.encryptor = AES256GCMEncryptor('unit-test-secret')

    def test_round_trip(self):
        encrypted = self.encryptor.encrypt('123-45-6789')

        self.assertTrue(encrypted.ok)
        self.assertNotEqual(encrypted.value, '123-45-6789')

        decrypted = self.encryptor.decrypt(encrypted.value)
        self.assertTrue(decrypted.ok)
        self.assertEqual(decrypted.value, '123-45-6789')

    def test_random_iv_per_call(self):
        first = self.encryptor.encrypt('same value')
        second = self.encryptor.encrypt('same value')

        self.assertNotEqual(first.value, second.value)

    def test_unicode_round_trip(self):
        value = 'Zoë Łukasz 日本語'
        encrypted = self.encryptor.encrypt(value)

        self.assertEqual(self.encryptor.decrypt(encrypted.value).value, value)

    def test_none_and_empty_pass_through(self):
        self.assertEqual(self.encryptor.encrypt(None), CipherResult.success(None))
        self.assertEqual(self.encryptor.encrypt(''), CipherResult.success(''))
        self.assertEqual(self.encryptor.decrypt(None), CipherResult.success(None))
        self.assertEqual(self.encryptor.decrypt(''), CipherResult.success(''))

    def test_non_string_is_a_failure(self):
        result = self.encryptor.encrypt(42)

        self.assertFalse(result.ok)
        self.assertIsNone(result.value)
        self.assertIn('int', result.error)

    def test_decrypting_plaintext_fails_without_raising(self):
        result = self.encryptor.decrypt('not encrypted at all')

        self.assertFalse(result.ok)
        self.assertIsNone(result.value)

    def test_wrong_key_fails(self):
        encrypted = self.encryptor.encrypt('secret')
        other = AES256GCMEncryptor('another-secret')

        result = other.decrypt(encrypted.value)

        self.assertFalse(result.ok)
        self.assertIn('Authentication failed', result.error)

    def test_empty_secret_rejected(self):
        with self.assertRaises(EncryptionConfigurationError):
            AES256GCMEncryptor('')


class FernetEncryptorTestCase(SimpleTestCase):

    def test_round_trip(self):
        encryptor = FernetEncryptor('unit-test-secret')

        encrypted = encryptor.encrypt('hello')
        self.assertTrue(encrypted.ok)
        self.assertEqual(encryptor.decrypt(encrypted.value).value, 'hello')

    def test_invalid_token(self):
        result = FernetEncryptor('unit-test-secret').decrypt('garbage')

        self.assertFalse(result.ok)
        self.assertEqual(result.error, 'Invalid Fernet token')

    def test_cannot_read_aes_ciphertext(self):
        aes_value = AES256GCMEncryptor('unit-test-secret').encrypt('hello').value

        self.assertFalse(FernetEncryptor('unit-test-secret').decrypt(aes_value).ok)


class EncryptorFactoryTestCase(SimpleTestCase):

    def test_aliases(self):
        self.assertIsInstance(encryptor_factory('aes256', 'k'), AES256GCMEncryptor)
        self.assertIsInstance(encryptor_factory('fernet', 'k'), FernetEncryptor)

    def test_dotted_path(self):
        encryptor = encryptor_factory('lifecycle_encryption.tests.fakes.PrefixEncryptor', 'k')

        self.assertIsInstance(encryptor, PrefixEncryptor)

    def test_class(self):
        self.assertIsInstance(encryptor_factory(PrefixEncryptor, 'k'), PrefixEncryptor)

    def test_unknown_path(self):
        with self.assertRaises(EncryptionConfigurationError):
            encryptor_factory('no.such.Encryptor', 'k')

    def test_class_without_contract(self):
        with self.assertRaisesMessage(EncryptionConfigurationError, 'must implement BaseEncryptor'):
            encryptor_factory(NotAnEncryptor, 'k')

    def test_abstract_base_rejected(self):
        with self.assertRaises(EncryptionConfigurationError):
            encryptor_factory(BaseEncryptor, 'k')

    def test_missing_secret(self):
        with self.assertRaises(EncryptionConfigurationError):
            encryptor_factory('aes256', None)

    def test_service_takes_precedence(self):
        service = PrefixEncryptor()

        self.assertIs(build_encryptor('aes256', 'k', service=service), service)

    def test_service_must_satisfy_contract(self):
        with self.assertRaises(EncryptionConfigurationError):
            build_encryptor('aes256', 'k', service=NotAnEncryptor('k'))

    def test_generated_keys_are_usable(self):
        key = generate_secret_key()

        self.assertNotEqual(key, generate_secret_key())
        encryptor = AES256GCMEncryptor(key)
        self.assertEqual(encryptor.decrypt(encryptor.encrypt('v').value).value, 'v')
