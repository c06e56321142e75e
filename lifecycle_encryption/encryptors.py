"""
Encryptor implementations.

An encryptor is the pluggable cipher strategy used by the transition engine.
It is built once from the configured secret and exposes ``encrypt`` and
``decrypt``, both of which return a :class:`CipherResult` instead of raising.
"""

import base64
import inspect
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from django.utils.module_loading import import_string

from .exceptions import (
    DecryptionFailure,
    EncryptionConfigurationError,
    EncryptionFailure,
)

logger = logging.getLogger(__name__)

KEY_DERIVATION_INFO = b'lifecycle-encryption'


@dataclass(frozen=True)
class CipherResult:
    """Outcome of a single encrypt or decrypt call."""

    value: Optional[str]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[str]) -> 'CipherResult':
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> 'CipherResult':
        return cls(value=None, error=reason)


def derive_key(secret_key: str, length: int = 32) -> bytes:
    """
    Derive fixed-length key material from the configured secret.

    Args:
        secret_key: The secret string from settings
        length: Number of bytes to derive

    Returns:
        Raw key bytes
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=None,
        info=KEY_DERIVATION_INFO,
        backend=default_backend()
    )
    return hkdf.derive(secret_key.encode('utf-8'))


def generate_secret_key() -> str:
    """Generate a random secret suitable for ENCRYPTION_SECRET_KEY."""
    return base64.urlsafe_b64encode(os.urandom(32)).decode('utf-8')


class BaseEncryptor(ABC):
    """
    Base class for all encryptors.

    Subclasses implement ``_encrypt`` and ``_decrypt`` and may raise
    :class:`EncryptionFailure` / :class:`DecryptionFailure`; the public
    methods turn every failure into a failed :class:`CipherResult`.
    """

    def __init__(self, secret_key: str):
        if not secret_key:
            raise EncryptionConfigurationError(
                f"{type(self).__name__} requires a non-empty secret key"
            )
        self._secret_key = secret_key

    @abstractmethod
    def _encrypt(self, plaintext: str) -> str:
        """Encrypt a non-empty string."""

    @abstractmethod
    def _decrypt(self, ciphertext: str) -> str:
        """Decrypt a non-empty string."""

    def encrypt(self, plaintext: Any) -> CipherResult:
        return self._apply(self._encrypt, plaintext, 'encrypt')

    def decrypt(self, ciphertext: Any) -> CipherResult:
        return self._apply(self._decrypt, ciphertext, 'decrypt')

    def _apply(self, transform, value, operation: str) -> CipherResult:
        if value is None or value == '':
            return CipherResult.success(value)

        if not isinstance(value, str):
            return CipherResult.failure(
                f"cannot {operation} value of type {type(value).__name__}"
            )

        try:
            return CipherResult.success(transform(value))
        except (EncryptionFailure, DecryptionFailure) as e:
            return CipherResult.failure(str(e))
        except Exception as e:
            logger.exception(f"Unexpected {operation} error in {type(self).__name__}")
            return CipherResult.failure(f"{operation} failed: {e}")


class AES256GCMEncryptor(BaseEncryptor):
    """
    AES-256-GCM encryptor with authentication.

    Ciphertext is a base64-encoded JSON envelope holding the IV, the
    encrypted bytes and the GCM tag.
    """

    def __init__(self, secret_key: str):
        super().__init__(secret_key)
        self._key = derive_key(secret_key)

    def _encrypt(self, plaintext: str) -> str:
        # 96-bit IV for GCM
        iv = os.urandom(12)

        cipher = Cipher(
            algorithms.AES(self._key),
            modes.GCM(iv),
            backend=default_backend()
        )
        encryptor = cipher.encryptor()
        ciphertext = encryptor.update(plaintext.encode('utf-8')) + encryptor.finalize()

        envelope = {
            'iv': base64.b64encode(iv).decode('utf-8'),
            'ct': base64.b64encode(ciphertext).decode('utf-8'),
            'tag': base64.b64encode(encryptor.tag).decode('utf-8'),
        }

        return base64.b64encode(
            json.dumps(envelope).encode('utf-8')
        ).decode('utf-8')

    def _decrypt(self, ciphertext: str) -> str:
        try:
            envelope = json.loads(base64.b64decode(ciphertext.encode('utf-8')))
            iv = base64.b64decode(envelope['iv'])
            ct = base64.b64decode(envelope['ct'])
            tag = base64.b64decode(envelope['tag'])
        except (ValueError, KeyError, TypeError) as e:
            raise DecryptionFailure(f"Malformed ciphertext: {e}")

        cipher = Cipher(
            algorithms.AES(self._key),
            modes.GCM(iv, tag),
            backend=default_backend()
        )
        decryptor = cipher.decryptor()

        try:
            plaintext = decryptor.update(ct) + decryptor.finalize()
        except Exception as e:
            raise DecryptionFailure(f"Authentication failed: {type(e).__name__}")

        return plaintext.decode('utf-8')


class FernetEncryptor(BaseEncryptor):
    """
    Alternative encryptor using Fernet symmetric encryption.

    Simpler than AES-GCM and still authenticated; tokens embed a timestamp.
    """

    def __init__(self, secret_key: str):
        super().__init__(secret_key)
        self._fernet = Fernet(base64.urlsafe_b64encode(derive_key(secret_key)))

    def _encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode('utf-8')).decode('utf-8')

    def _decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode('utf-8')).decode('utf-8')
        except InvalidToken:
            raise DecryptionFailure("Invalid Fernet token")


ENCRYPTOR_ALIASES = {
    'aes256': AES256GCMEncryptor,
    'fernet': FernetEncryptor,
}


def satisfies_encryptor_contract(candidate) -> bool:
    """Check that a class or instance can act as the active encryptor."""
    cls = candidate if isinstance(candidate, type) else type(candidate)
    if not issubclass(cls, BaseEncryptor) or inspect.isabstract(cls):
        return False
    return callable(getattr(cls, 'encrypt', None)) and callable(getattr(cls, 'decrypt', None))


def resolve_encryptor_class(encryptor_class):
    """
    Resolve an alias, dotted path or class to an encryptor class.

    Raises:
        EncryptionConfigurationError: If it cannot be resolved or does not
            satisfy the encryptor contract
    """
    if isinstance(encryptor_class, str):
        if encryptor_class in ENCRYPTOR_ALIASES:
            encryptor_class = ENCRYPTOR_ALIASES[encryptor_class]
        else:
            try:
                encryptor_class = import_string(encryptor_class)
            except ImportError as e:
                raise EncryptionConfigurationError(
                    f"Unknown encryptor {encryptor_class!r}: {e}"
                )

    if not isinstance(encryptor_class, type) or not satisfies_encryptor_contract(encryptor_class):
        raise EncryptionConfigurationError(
            f"Encryptor must implement BaseEncryptor, got {encryptor_class!r}"
        )

    return encryptor_class


def encryptor_factory(encryptor_class, secret_key: str) -> BaseEncryptor:
    """
    Check and create the configured encryptor.

    Args:
        encryptor_class: Alias ('aes256', 'fernet'), dotted path or class
        secret_key: Secret key for the encryptor

    Returns:
        Encryptor instance
    """
    cls = resolve_encryptor_class(encryptor_class)
    return cls(secret_key)


def build_encryptor(encryptor_class, secret_key: str,
                    service: Optional[BaseEncryptor] = None) -> BaseEncryptor:
    """
    Return the injected service if given, otherwise build one from settings.
    """
    if service is not None:
        if not satisfies_encryptor_contract(service):
            raise EncryptionConfigurationError(
                f"Encryptor service must implement BaseEncryptor, got {type(service).__name__}"
            )
        return service

    return encryptor_factory(encryptor_class, secret_key)
