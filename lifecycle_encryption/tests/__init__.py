"""Tests for lifecycle_encryption."""
