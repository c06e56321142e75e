"""
Signals sent by the lifecycle encryption layer.

Django has no post-load model signal, so :class:`EncryptedModel` sends
``post_load`` once an instance has been hydrated from the database.
"""

from django.dispatch import Signal

# Arguments: sender, instance, using
post_load = Signal()
