"""
Field classification.

Decides which fields of a type are sensitive and how to read and write them.
Fields are marked either by registering them::

    @encrypted('ssn', 'notes')
    class Patient(EncryptedModel):
        ...

or declaratively with an ``encrypted_fields`` class attribute. Both are
resolved to :class:`SensitiveField` descriptors once per type and cached.
"""

import inspect
import logging
import operator
import re
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Tuple

from .exceptions import EncryptionConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensitiveField:
    """A field marked sensitive, with its accessor and mutator."""

    name: str
    accessor: Callable[[Any], Any]
    mutator: Callable[[Any, Any], None]

    def get(self, obj) -> Any:
        return self.accessor(obj)

    def set(self, obj, value) -> None:
        self.mutator(obj, value)


def accessor_names(field_name: str) -> Tuple[str, str]:
    """
    Return the ``(getter, setter)`` method names for a field.

    ``firstName``, ``first-name`` and ``first_name`` all map to
    ``('get_first_name', 'set_first_name')``.
    """
    name = re.sub(r'[\s\-]+', '_', field_name.strip())
    name = re.sub(r'(?<=[a-z0-9])(?=[A-Z])', '_', name).lower()
    return f'get_{name}', f'set_{name}'


def _method_accessor(getter: str) -> Callable[[Any], Any]:
    return operator.methodcaller(getter)


def _method_mutator(setter: str) -> Callable[[Any, Any], None]:
    def mutate(obj, value):
        getattr(obj, setter)(value)
    return mutate


def _attribute_mutator(attname: str) -> Callable[[Any, Any], None]:
    def mutate(obj, value):
        setattr(obj, attname, value)
    return mutate


class FieldClassifier:
    """
    Registration-time table mapping a type to its ordered sensitive fields.
    """

    MARKER_ATTRIBUTE = 'encrypted_fields'

    def __init__(self):
        self._registered: Dict[type, List[str]] = {}
        self._cache: Dict[type, Tuple[SensitiveField, ...]] = {}
        self._lock = threading.RLock()

    def register(self, cls: type, *field_names: str) -> type:
        """
        Mark fields of ``cls`` as sensitive.

        Raises:
            EncryptionConfigurationError: If a field has no usable
                accessor/mutator pair
        """
        if not field_names:
            raise EncryptionConfigurationError(
                f"No fields given when registering {cls.__name__}"
            )

        with self._lock:
            names = self._registered.setdefault(cls, [])
            for name in field_names:
                if name in names:
                    continue
                self._resolve(cls, name)
                names.append(name)
            # subclasses inherit registrations
            self._cache.clear()

        logger.debug(f"Registered sensitive fields for {cls.__name__}: {', '.join(field_names)}")
        return cls

    def fields_of(self, cls: type) -> Tuple[SensitiveField, ...]:
        """
        Ordered sensitive field descriptors for ``cls``.

        Parent class fields come first, then the class's own, in declaration
        order.
        """
        with self._lock:
            cached = self._cache.get(cls)
            if cached is not None:
                return cached

            descriptors = tuple(
                self._resolve(cls, name) for name in self._field_names_of(cls)
            )
            self._cache[cls] = descriptors
            return descriptors

    def is_field_marked_sensitive(self, cls: type, field_name: str) -> bool:
        with self._lock:
            return field_name in self._field_names_of(cls)

    def classify(self, classes: Iterable[type]) -> Dict[type, Tuple[SensitiveField, ...]]:
        """Classify several types, keeping only those with sensitive fields."""
        result = {}
        for cls in classes:
            fields = self.fields_of(cls)
            if fields:
                result[cls] = fields
        return result

    def registered_types(self) -> List[type]:
        with self._lock:
            return list(self._registered)

    def clear(self) -> None:
        with self._lock:
            self._registered.clear()
            self._cache.clear()

    def _field_names_of(self, cls: type) -> List[str]:
        names: List[str] = []
        for klass in reversed(cls.__mro__):
            declared = klass.__dict__.get(self.MARKER_ATTRIBUTE, ())
            if isinstance(declared, str):
                declared = (declared,)
            for name in list(declared) + self._registered.get(klass, []):
                if name not in names:
                    names.append(name)
        return names

    def _resolve(self, cls: type, name: str) -> SensitiveField:
        getter, setter = accessor_names(name)
        has_getter = callable(getattr(cls, getter, None))
        has_setter = callable(getattr(cls, setter, None))

        if has_getter or has_setter:
            if not (has_getter and has_setter):
                missing = setter if has_getter else getter
                raise EncryptionConfigurationError(
                    f"Property {name} of {cls.__name__} doesn't have {missing}()"
                )
            return SensitiveField(
                name=name,
                accessor=_method_accessor(getter),
                mutator=_method_mutator(setter),
            )

        attname = self._attribute_name(cls, name)
        return SensitiveField(
            name=name,
            accessor=operator.attrgetter(attname),
            mutator=_attribute_mutator(attname),
        )

    def _attribute_name(self, cls: type, name: str) -> str:
        meta = getattr(cls, '_meta', None)
        if meta is not None and hasattr(meta, 'get_field'):
            return self._model_field_attname(cls, meta, name)

        for klass in cls.__mro__:
            if name in inspect.get_annotations(klass):
                return name

        attr = getattr(cls, name, None)
        if isinstance(attr, property):
            if attr.fset is None:
                raise EncryptionConfigurationError(
                    f"Property {name} of {cls.__name__} is read-only"
                )
            return name
        if hasattr(cls, name) and not callable(attr):
            return name

        raise EncryptionConfigurationError(
            f"Property {name} of {cls.__name__} doesn't have an accessor/mutator pair"
        )

    def _model_field_attname(self, cls: type, meta, name: str) -> str:
        from django.core.exceptions import FieldDoesNotExist

        try:
            field = meta.get_field(name)
        except FieldDoesNotExist:
            raise EncryptionConfigurationError(
                f"{cls.__name__} has no field named {name}"
            )

        if not getattr(field, 'concrete', False) or field.is_relation:
            raise EncryptionConfigurationError(
                f"Field {name} of {cls.__name__} must be a concrete, non-relational field"
            )
        if field.primary_key:
            raise EncryptionConfigurationError(
                f"Primary key {name} of {cls.__name__} cannot be encrypted"
            )

        return field.attname


default_classifier = FieldClassifier()


def encrypted(*field_names: str, classifier: FieldClassifier = None):
    """
    Class decorator marking fields as sensitive.

    Usage:
        @encrypted('ssn')
        class Patient(EncryptedModel):
            ssn = models.TextField()
    """
    def decorator(cls):
        (classifier or default_classifier).register(cls, *field_names)
        return cls
    return decorator
