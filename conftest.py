"""
Test configuration for lifecycle-encryption
"""

import os
import sys

import django
import pytest

# test_settings lives next to this file
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'test_settings')


def pytest_configure():
    django.setup()


@pytest.fixture(autouse=True)
def reset_decoded_state():
    """Forget plaintext state recorded by the app subscriber outside a request."""
    yield

    from lifecycle_encryption.apps import get_subscriber

    subscriber = get_subscriber()
    if subscriber is not None:
        subscriber.registry.fallback.clear()
