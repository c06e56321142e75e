"""
Transparent field-level encryption for Django models.

Sensitive fields are encrypted before an object is written and decrypted
after it is loaded, with a decoded-state registry preventing double
encryption and double decryption.

``EncryptedModel`` lives in :mod:`lifecycle_encryption.models` and is not
re-exported here, so that importing this package never touches the app
registry.
"""

from .classifier import FieldClassifier, SensitiveField, default_classifier, encrypted
from .encryptors import (
    AES256GCMEncryptor,
    BaseEncryptor,
    CipherResult,
    FernetEncryptor,
    encryptor_factory,
)
from .engine import Direction, TransitionEngine, TransitionResult, TransformOutcome
from .exceptions import (
    DecryptionFailure,
    EncryptionConfigurationError,
    EncryptionError,
    EncryptionFailure,
)
from .registry import DecodedStateRegistry, ScopedRegistry, TrackedIdentity
from .subscriber import EncryptionSubscriber

__all__ = [
    # Classification
    'FieldClassifier',
    'SensitiveField',
    'default_classifier',
    'encrypted',

    # Encryptors
    'BaseEncryptor',
    'AES256GCMEncryptor',
    'FernetEncryptor',
    'CipherResult',
    'encryptor_factory',

    # State machine
    'Direction',
    'TransitionEngine',
    'TransitionResult',
    'TransformOutcome',
    'DecodedStateRegistry',
    'ScopedRegistry',
    'TrackedIdentity',

    # Lifecycle
    'EncryptionSubscriber',

    # Exceptions
    'EncryptionError',
    'EncryptionConfigurationError',
    'EncryptionFailure',
    'DecryptionFailure',
]

__version__ = '1.0.0'
