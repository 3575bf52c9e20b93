"""
Credential stores consulted by the access gate.

A credential store answers one question, ``validate(username, password)``.
Password hashing and user storage belong to the store, never to the gate.
"""
from django.contrib.auth import authenticate
from django.utils.crypto import constant_time_compare


class CredentialStore:

    def validate(self, username, password):
        raise NotImplementedError


class DjangoCredentialStore(CredentialStore):
    """Validates against Django's configured AUTHENTICATION_BACKENDS."""

    def validate(self, username, password):
        user = authenticate(None, username=username, password=password)
        return user is not None and user.is_active


class StaticCredentialStore(CredentialStore):
    """Fixed username -> password mapping, for tests and local demos."""

    def __init__(self, users=None):
        self.users = dict(users or {})

    def validate(self, username, password):
        expected = self.users.get(username)
        if expected is None:
            return False
        return constant_time_compare(expected, password)
