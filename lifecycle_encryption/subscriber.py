"""
Encryption Subscriber

Translates model lifecycle callbacks into transition engine calls and wires
them to Django's model signals.
"""

import logging
from contextlib import contextmanager, nullcontext
from typing import Any, List, MutableMapping, Optional

from django.db.models.signals import post_save, pre_save

from .classifier import FieldClassifier, default_classifier
from .conf import EncryptionSettings
from .encryptors import BaseEncryptor, build_encryptor
from .engine import Direction, TransitionEngine, TransitionResult
from .metadata import DjangoMetadataProvider
from .registry import ScopedRegistry
from .signals import post_load

logger = logging.getLogger(__name__)


class EncryptionSubscriber:
    """
    Encrypts sensitive fields before writes and decrypts them after loads
    and writes.

    pre_persist   encrypt, forced (new objects are never in the registry)
    pre_update    encrypt
    post_load     decrypt
    post_update   decrypt
    post_persist  decrypt
    """

    SUBSCRIBED_EVENTS = (
        'pre_persist',
        'pre_update',
        'post_load',
        'post_update',
        'post_persist',
    )

    def __init__(self, encryptor: Optional[BaseEncryptor],
                 classifier: Optional[FieldClassifier] = None,
                 registry=None,
                 metadata=None,
                 disabled: bool = False,
                 debug: bool = False):
        self.registry = registry if registry is not None else ScopedRegistry()
        self.disabled = disabled
        self.debug = debug
        self.engine = TransitionEngine(
            encryptor,
            registry=self.registry,
            classifier=classifier if classifier is not None else default_classifier,
            metadata=metadata if metadata is not None else DjangoMetadataProvider(),
            disabled=disabled,
            debug=debug,
        )

    @classmethod
    def from_settings(cls, encryption_settings: Optional[EncryptionSettings] = None,
                      service: Optional[BaseEncryptor] = None,
                      classifier: Optional[FieldClassifier] = None) -> 'EncryptionSubscriber':
        """
        Build a subscriber from configuration.

        Raises:
            EncryptionConfigurationError: If the encryptor cannot be built
        """
        conf = encryption_settings or EncryptionSettings.from_django()
        conf.validate()

        encryptor = None
        if service is not None or conf.secret_key:
            encryptor = build_encryptor(conf.encryptor, conf.secret_key, service)

        if conf.disabled:
            logger.warning("Field encryption is disabled; sensitive fields are stored as plaintext")

        return cls(encryptor, classifier=classifier, disabled=conf.disabled, debug=conf.debug)

    @property
    def encryptor(self) -> Optional[BaseEncryptor]:
        return self.engine.encryptor

    @property
    def classifier(self) -> FieldClassifier:
        return self.engine.classifier

    def get_subscribed_events(self) -> List[str]:
        return list(self.SUBSCRIBED_EVENTS)

    # Lifecycle callbacks

    def pre_persist(self, instance) -> TransitionResult:
        if self.disabled:
            return TransitionResult(direction=Direction.ENCRYPT, skipped=True)

        with self._traced(instance, 'pre_persist'):
            # First persist: the object was never decrypted, so it is not in
            # the registry, yet it must be encrypted before the insert
            return self.engine.encrypt(instance, force=True)

    def pre_update(self, instance, changeset: Optional[MutableMapping[str, Any]] = None,
                   mutate_instance: bool = True) -> TransitionResult:
        """
        Encrypt before an update.

        With ``mutate_instance=False`` only ``changeset`` is rewritten, for
        hosts that forbid touching the object during this callback.
        """
        if self.disabled:
            return TransitionResult(direction=Direction.ENCRYPT, skipped=True)

        with self._traced(instance, 'pre_update'):
            return self.engine.encrypt(instance, changeset=changeset,
                                       mutate_instance=mutate_instance)

    def post_load(self, instance) -> TransitionResult:
        return self._decrypt(instance, 'post_load')

    def post_update(self, instance) -> TransitionResult:
        return self._decrypt(instance, 'post_update')

    def post_persist(self, instance) -> TransitionResult:
        return self._decrypt(instance, 'post_persist')

    def _decrypt(self, instance, event: str) -> TransitionResult:
        if self.disabled:
            return TransitionResult(direction=Direction.DECRYPT, skipped=True)

        with self._traced(instance, event):
            return self.engine.decrypt(instance)

    @contextmanager
    def _traced(self, instance, event: str):
        if not self.debug:
            yield
            return

        identity = self.engine.metadata.identity_of(instance)
        logger.info(
            f"EncryptionSubscriber.{event} begin {identity.type_name} {identity.pk}",
            extra={'entity_class': identity.type_name, 'entity_identifier': identity.pk}
        )

        yield

        identity = self.engine.metadata.identity_of(instance)
        logger.info(
            f"EncryptionSubscriber.{event} end {identity.type_name} {identity.pk}",
            extra={
                'entity_class': identity.type_name,
                'entity_identifier': identity.pk,
                'decode_registry': self.registry.snapshot(),
            }
        )

    # Unit of work

    def session(self):
        """
        Scope the decoded-state registry to a block, e.g. one request.
        """
        if isinstance(self.registry, ScopedRegistry):
            return self.registry.scope()
        return nullcontext(self.registry)

    # Django wiring

    def connect(self) -> None:
        pre_save.connect(self._on_pre_save, weak=False, dispatch_uid=self._dispatch_uid('pre_save'))
        post_save.connect(self._on_post_save, weak=False, dispatch_uid=self._dispatch_uid('post_save'))
        post_load.connect(self._on_post_load, weak=False, dispatch_uid=self._dispatch_uid('post_load'))

    def disconnect(self) -> None:
        pre_save.disconnect(dispatch_uid=self._dispatch_uid('pre_save'))
        post_save.disconnect(dispatch_uid=self._dispatch_uid('post_save'))
        post_load.disconnect(dispatch_uid=self._dispatch_uid('post_load'))

    def _dispatch_uid(self, signal_name: str) -> str:
        return f'lifecycle_encryption.{signal_name}.{id(self)}'

    def _handles(self, sender) -> bool:
        return bool(self.classifier.fields_of(sender))

    def _on_pre_save(self, sender, instance, raw=False, **kwargs):
        if raw or not self._handles(sender):
            return

        if instance._state.adding:
            self.pre_persist(instance)
        else:
            self.pre_update(instance)

    def _on_post_save(self, sender, instance, created=False, raw=False, **kwargs):
        if raw or not self._handles(sender):
            return

        if created:
            self.post_persist(instance)
        else:
            self.post_update(instance)

    def _on_post_load(self, sender, instance, **kwargs):
        if not self._handles(sender):
            return

        self.post_load(instance)
