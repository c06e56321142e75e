"""
Base model for models with encrypted fields.
"""

from django.db import models

from .metadata import DjangoMetadataProvider
from .signals import post_load


class EncryptedModel(models.Model):
    """
    Abstract base model that announces database loads.

    Sensitive fields are declared with ``encrypted_fields`` or the
    :func:`lifecycle_encryption.classifier.encrypted` decorator.
    """

    class Meta:
        abstract = True

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        post_load.send(sender=cls, instance=instance, using=db)
        return instance

    def __setstate__(self, state):
        super().__setstate__(state)
        # A pickled or copied instance keeps its decoded flag but is a
        # distinct object, so it gets an identity token of its own
        self.__dict__.pop(DjangoMetadataProvider.TOKEN_ATTRIBUTE, None)
