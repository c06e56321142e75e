"""
Custom exceptions for the lifecycle encryption layer.
"""


class EncryptionError(Exception):
    """Base exception for encryption-related errors."""
    pass


class EncryptionConfigurationError(EncryptionError):
    """Raised when encryption is misconfigured. Always fatal."""
    pass


class EncryptionFailure(EncryptionError):
    """Raised inside an encryptor when a value cannot be encrypted."""
    pass


class DecryptionFailure(EncryptionError):
    """Raised inside an encryptor when a value cannot be decrypted."""
    pass
