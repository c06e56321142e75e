"""
Tests for the startup checks run by the app config.
"""

from django.apps import apps
from django.db import models
from django.test import SimpleTestCase
from django.test.utils import isolate_apps

from lifecycle_encryption.apps import check_encrypted_models, get_subscriber
from lifecycle_encryption.classifier import FieldClassifier, encrypted
from lifecycle_encryption.exceptions import EncryptionConfigurationError
from lifecycle_encryption.tests.testapp.models import Account, AuditEntry, Patient


class CheckEncryptedModelsTestCase(SimpleTestCase):

    def test_installed_models_pass(self):
        classified = check_encrypted_models(get_subscriber().classifier, apps.get_models())

        self.assertIn(Patient, classified)
        self.assertIn(Account, classified)
        self.assertNotIn(AuditEntry, classified)

    def test_models_without_sensitive_fields_are_skipped(self):
        classified = check_encrypted_models(FieldClassifier(), [Patient, AuditEntry])

        self.assertEqual(list(classified), [Patient])

    @isolate_apps('lifecycle_encryption.tests.testapp')
    def test_plain_model_with_marker_is_rejected(self):
        class LegacyPatient(models.Model):
            ssn = models.TextField()

            encrypted_fields = ('ssn',)

            class Meta:
                app_label = 'testapp'

        with self.assertRaisesMessage(EncryptionConfigurationError, 'does not subclass EncryptedModel'):
            check_encrypted_models(FieldClassifier(), [LegacyPatient])

    @isolate_apps('lifecycle_encryption.tests.testapp')
    def test_plain_model_with_decorator_is_rejected(self):
        classifier = FieldClassifier()

        @encrypted('card_number', classifier=classifier)
        class LegacyAccount(models.Model):
            card_number = models.TextField()

            class Meta:
                app_label = 'testapp'

        with self.assertRaisesMessage(EncryptionConfigurationError, 'testapp.LegacyAccount'):
            check_encrypted_models(classifier, [LegacyAccount])
