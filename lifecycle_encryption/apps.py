"""
Lifecycle Encryption App Configuration
"""
from django.apps import AppConfig, apps


class LifecycleEncryptionConfig(AppConfig):
    """Configuration for transparent field-level encryption."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'lifecycle_encryption'
    verbose_name = 'Lifecycle Encryption'

    subscriber = None

    def ready(self):
        """Build the subscriber and connect it to model signals."""
        from .subscriber import EncryptionSubscriber

        self.subscriber = EncryptionSubscriber.from_settings()

        # Misconfigured sensitive fields fail at startup, not on first save
        check_encrypted_models(self.subscriber.classifier, apps.get_models())

        self.subscriber.connect()


def check_encrypted_models(classifier, models):
    """
    Classify models and check that every one with sensitive fields can be
    decrypted after loading.

    Returns:
        Mapping of model to its sensitive fields

    Raises:
        EncryptionConfigurationError: If a field is misconfigured, or a model
            with sensitive fields does not subclass EncryptedModel
    """
    from .exceptions import EncryptionConfigurationError
    from .models import EncryptedModel

    classified = classifier.classify(models)
    for model in classified:
        if not issubclass(model, EncryptedModel):
            raise EncryptionConfigurationError(
                f"{model._meta.label} declares encrypted fields but does not subclass "
                f"EncryptedModel, so it would never be decrypted after loading"
            )
    return classified


def get_subscriber():
    """Return the subscriber connected by the app."""
    return apps.get_app_config('lifecycle_encryption').subscriber
