"""
Metadata providers used to build tracked identities.
"""

import uuid
from typing import Any, Optional

from .registry import TrackedIdentity


class AttributeMetadataProvider:
    """
    Identity from a plain attribute on the object (``id`` by default).

    Produces ``(type name, primary key)`` identities with no instance token.
    """

    def __init__(self, identity_attribute: str = 'id'):
        self.identity_attribute = identity_attribute

    def identity_accessor_name_of(self, cls) -> str:
        return self.identity_attribute

    def primary_key_value_of(self, obj) -> Any:
        return getattr(obj, self.identity_accessor_name_of(type(obj)), None)

    def type_name_of(self, cls) -> str:
        return f"{cls.__module__}.{cls.__qualname__}"

    def deferred_fields_of(self, obj):
        return frozenset()

    def carried_state_of(self, obj) -> Optional[bool]:
        """Decoded flag stored on the object itself, or None if it carries none."""
        return None

    def carry_state(self, obj, decoded: bool) -> None:
        pass

    def identity_of(self, obj) -> TrackedIdentity:
        return TrackedIdentity(
            type_name=self.type_name_of(type(obj)),
            pk=self.primary_key_value_of(obj),
        )


class DjangoMetadataProvider(AttributeMetadataProvider):
    """
    Identity for Django model instances.

    The Django ORM returns a new Python object for every query, so the
    identity also carries a token stored on the instance. The decoded flag
    is stored on the instance too and travels with it across registry
    scopes, pickling and copies.
    """

    TOKEN_ATTRIBUTE = '_lifecycle_encryption_token'
    STATE_ATTRIBUTE = '_lifecycle_encryption_decoded'

    def identity_accessor_name_of(self, cls) -> str:
        return cls._meta.pk.attname

    def type_name_of(self, cls) -> str:
        return cls._meta.label

    def deferred_fields_of(self, obj):
        return obj.get_deferred_fields()

    def carried_state_of(self, obj) -> Optional[bool]:
        return obj.__dict__.get(self.STATE_ATTRIBUTE)

    def carry_state(self, obj, decoded: bool) -> None:
        obj.__dict__[self.STATE_ATTRIBUTE] = decoded

    def instance_token_of(self, obj) -> str:
        token = obj.__dict__.get(self.TOKEN_ATTRIBUTE)
        if token is None:
            token = uuid.uuid4().hex
            obj.__dict__[self.TOKEN_ATTRIBUTE] = token
        return token

    def identity_of(self, obj) -> TrackedIdentity:
        return TrackedIdentity(
            type_name=self.type_name_of(type(obj)),
            pk=self.primary_key_value_of(obj),
            instance=self.instance_token_of(obj),
        )

