"""
Test settings for lifecycle-encryption
"""

import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

SECRET_KEY = 'test-secret-key-for-lifecycle-encryption-tests'

DEBUG = True

ALLOWED_HOSTS = ['*']

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'lifecycle_encryption',
    'lifecycle_encryption.tests.testapp',
]

MIDDLEWARE = [
    'lifecycle_encryption.middleware.EncryptionSessionMiddleware',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.path.join(BASE_DIR, 'test_db.sqlite3'),
    }
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Field encryption
ENCRYPTION_SECRET_KEY = 'dGVzdF9zZWNyZXRfa2V5X2Zvcl9saWZlY3ljbGVfdGVzdHM='
ENCRYPTION_ENCRYPTOR = 'aes256'
ENCRYPTION_DISABLED = False
ENCRYPTION_DEBUG = False

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'WARNING',
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'lifecycle_encryption': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': True,
        },
    },
}
