"""
Middleware scoping the decoded-state registry to a request.
"""

from .apps import get_subscriber


class EncryptionSessionMiddleware:
    """
    Give each request its own decoded-state registry.

    Model instances loaded during a request must not be saved after the
    request has finished: their plaintext state is forgotten with the scope.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        with get_subscriber().session():
            return self.get_response(request)
