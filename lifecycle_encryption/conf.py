"""
Settings for the lifecycle encryption layer.

Values come from Django settings and fall back to environment variables
(or ``.env`` / ``settings.ini``) through python-decouple. They are read once
when the subscriber is built; later changes are not picked up.

    ENCRYPTION_SECRET_KEY   secret the encryptor is built from
    ENCRYPTION_ENCRYPTOR    'aes256', 'fernet' or a dotted path to a BaseEncryptor
    ENCRYPTION_DISABLED     bypass all transforms
    ENCRYPTION_DEBUG        verbose diagnostics, including field values
"""

from dataclasses import dataclass
from typing import Any, Optional

from decouple import config
from django.conf import settings

from .exceptions import EncryptionConfigurationError


def _setting(name: str, default: Any = None, cast: Any = None) -> Any:
    if hasattr(settings, name):
        return getattr(settings, name)
    if cast is not None:
        return config(name, default=default, cast=cast)
    return config(name, default=default)


@dataclass(frozen=True)
class EncryptionSettings:
    secret_key: Optional[str] = None
    encryptor: Any = 'aes256'
    disabled: bool = False
    debug: bool = False

    @classmethod
    def from_django(cls) -> 'EncryptionSettings':
        return cls(
            secret_key=_setting('ENCRYPTION_SECRET_KEY', default=None),
            encryptor=_setting('ENCRYPTION_ENCRYPTOR', default='aes256'),
            disabled=_setting('ENCRYPTION_DISABLED', default=False, cast=bool),
            debug=_setting('ENCRYPTION_DEBUG', default=False, cast=bool),
        )

    def validate(self) -> None:
        """
        Raises:
            EncryptionConfigurationError: If encryption is enabled without a secret
        """
        if not self.disabled and not self.secret_key:
            raise EncryptionConfigurationError(
                "ENCRYPTION_SECRET_KEY must be set unless ENCRYPTION_DISABLED is True"
            )
