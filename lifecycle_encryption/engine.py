"""
Transition Engine

Moves an object's sensitive fields between plaintext and ciphertext and keeps
the decoded-state registry in step with what is held in memory.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, MutableMapping, Optional

from .classifier import FieldClassifier, default_classifier
from .encryptors import BaseEncryptor
from .metadata import AttributeMetadataProvider
from .registry import DecodedStateRegistry

logger = logging.getLogger(__name__)

MASK = '***'


class Direction(str, Enum):
    """Direction of a field transform."""

    ENCRYPT = 'encrypt'
    DECRYPT = 'decrypt'


@dataclass(frozen=True)
class TransformOutcome:
    """Result of transforming one field."""

    field: str
    old_value: Any
    new_value: Any
    ok: bool
    error: Optional[str] = None


@dataclass
class TransitionResult:
    """
    Result of one engine invocation.

    Truthy when the object's type has at least one sensitive field.
    """

    direction: Direction
    annotated: bool = False
    skipped: bool = False
    outcomes: List[TransformOutcome] = field(default_factory=list)

    def __bool__(self):
        return self.annotated

    @property
    def failures(self) -> List[TransformOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def transformed(self) -> List[str]:
        return [outcome.field for outcome in self.outcomes if outcome.ok]


class TransitionEngine:
    """
    Encryption state machine.

    Every tracked identity is either PLAINTEXT (registered in the decoded
    state registry) or CIPHERTEXT (absent). A successful encrypt moves it to
    CIPHERTEXT, a successful decrypt to PLAINTEXT. Transitions whose
    precondition already holds are skipped unless forced.
    """

    def __init__(self, encryptor: BaseEncryptor,
                 registry: Optional[DecodedStateRegistry] = None,
                 classifier: Optional[FieldClassifier] = None,
                 metadata=None,
                 disabled: bool = False,
                 debug: bool = False):
        self.encryptor = encryptor
        self.registry = registry if registry is not None else DecodedStateRegistry()
        self.classifier = classifier if classifier is not None else default_classifier
        self.metadata = metadata if metadata is not None else AttributeMetadataProvider()
        self.disabled = disabled
        self.debug = debug

    def encrypt(self, obj, changeset: Optional[MutableMapping[str, Any]] = None,
                force: bool = False, mutate_instance: bool = True) -> TransitionResult:
        return self.process(obj, Direction.ENCRYPT, changeset=changeset,
                            force=force, mutate_instance=mutate_instance)

    def decrypt(self, obj, force: bool = False) -> TransitionResult:
        return self.process(obj, Direction.DECRYPT, force=force)

    def is_decrypted(self, obj) -> bool:
        return self._is_plaintext(obj, self.metadata.identity_of(obj))

    def is_encrypted(self, obj) -> bool:
        return not self.is_decrypted(obj)

    def process(self, obj, direction: Direction,
                changeset: Optional[MutableMapping[str, Any]] = None,
                force: bool = False,
                mutate_instance: bool = True) -> TransitionResult:
        """
        Transform the sensitive fields of ``obj`` in ``direction``.

        Args:
            obj: Object whose sensitive fields are transformed
            direction: Direction.ENCRYPT or Direction.DECRYPT
            changeset: Staged field values. Read in preference to the object
                and written alongside it
            force: Skip the registry precondition check
            mutate_instance: Write through the field mutators. When False
                only fields present in ``changeset`` are transformed and the
                registry is left alone, since the object is unchanged

        Returns:
            TransitionResult, truthy if the type has sensitive fields
        """
        direction = Direction(direction)
        result = TransitionResult(direction=direction)

        if self.disabled:
            result.skipped = True
            return result

        if not mutate_instance and changeset is None:
            raise ValueError("A changeset is required when mutate_instance is False")

        identity = self.metadata.identity_of(obj)

        with self.registry.locked(identity):
            if not force and self._already_in_state(obj, identity, direction):
                logger.debug(f"Skipping {direction.value} of {identity}: already {direction.value}ed")
                result.skipped = True
                return result

            fields = self.classifier.fields_of(type(obj))
            if not fields:
                logger.debug(f"No annotated fields on {type(obj).__name__}")
                return result

            result.annotated = True
            transform = self.encryptor.encrypt if direction is Direction.ENCRYPT else self.encryptor.decrypt
            deferred = self.metadata.deferred_fields_of(obj)

            for sensitive in fields:
                in_changeset = changeset is not None and sensitive.name in changeset
                if not mutate_instance and not in_changeset:
                    continue

                # Not loaded; arrives through a fresh load of its own
                if sensitive.name in deferred and not in_changeset:
                    if mutate_instance:
                        self._record_state(obj, identity, direction)
                    continue

                current = changeset[sensitive.name] if in_changeset else sensitive.get(obj)
                cipher_result = transform(current)

                if not cipher_result.ok:
                    logger.error(
                        f"{direction.value} failed for {sensitive.name} on {identity}: {cipher_result.error}",
                        extra={
                            'prop_name': sensitive.name,
                            'current_value': self._shown(current),
                            'new_value': cipher_result.value,
                            'identity': str(identity),
                        }
                    )
                    result.outcomes.append(TransformOutcome(
                        field=sensitive.name,
                        old_value=current,
                        new_value=cipher_result.value,
                        ok=False,
                        error=cipher_result.error,
                    ))
                    continue

                new_value = cipher_result.value
                if changeset is not None:
                    changeset[sensitive.name] = new_value
                if mutate_instance:
                    sensitive.set(obj, new_value)
                    self._record_state(obj, identity, direction)

                logger.debug(
                    f"{direction.value} {sensitive.name} on {identity}",
                    extra={
                        'prop_name': sensitive.name,
                        'current_value': self._shown(current),
                        'new_value': self._shown(new_value),
                    }
                )
                result.outcomes.append(TransformOutcome(
                    field=sensitive.name,
                    old_value=current,
                    new_value=new_value,
                    ok=True,
                ))

        return result

    def _is_plaintext(self, obj, identity) -> bool:
        # State carried by the object wins over the registry of the current scope
        carried = self.metadata.carried_state_of(obj)
        if carried is not None:
            return carried
        return self.registry.has(identity)

    def _already_in_state(self, obj, identity, direction: Direction) -> bool:
        decrypted = self._is_plaintext(obj, identity)
        if direction is Direction.ENCRYPT:
            return not decrypted
        return decrypted

    def _record_state(self, obj, identity, direction: Direction) -> None:
        if direction is Direction.ENCRYPT:
            self.registry.mark_encrypted(identity)
        else:
            # per-instance entries go away with their object
            owner = obj if identity.instance is not None else None
            self.registry.mark_decrypted(identity, owner)
        self.metadata.carry_state(obj, direction is Direction.DECRYPT)

    def _shown(self, value):
        if self.debug or value is None:
            return value
        return MASK
