"""Models used by the lifecycle_encryption test suite."""
