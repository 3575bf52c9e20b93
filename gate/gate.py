"""
The access gate: decides whether a request may reach a protected handler.

AccessGate owns the session lifecycle policy:
  - a successful login always creates a fresh session and evicts any live
    session the same principal already had (login is never blocked)
  - a session older than the configured max age is invalidated lazily, the
    first time it is presented after expiring
  - logout forgets the session and is idempotent

Session keys, session data and the cookie come from django.contrib.sessions
(SESSION_ENGINE, SESSION_COOKIE_*). The injected session table only records
which key is each principal's live session. All collaborators (session table,
credential store, session backend, clock) are injected so the gate can be
exercised without a running server.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from importlib import import_module
from typing import Optional

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver
from django.http import QueryDict
from django.utils import timezone
from django.utils.module_loading import import_string

from gate import signals
from gate.exceptions import AuthError, InvalidCredentials, SessionExpired, SessionInvalidated
from gate.sessions import (
    EXPIRED, LOGOUT, REPLACED,
    DatabaseSessionStore, MemorySessionStore, Session,
)

logger = logging.getLogger('hellogate.auth')

# Key under which the principal is kept in the Django session data
PRINCIPAL_SESSION_KEY = '_gate_principal'

SESSION_STORES = {
    'memory': MemorySessionStore,
    'database': DatabaseSessionStore,
}


@dataclass(frozen=True)
class Allow:
    session: Session
    allowed = True


@dataclass(frozen=True)
class Deny:
    login_url: str
    error: Optional[AuthError] = None
    allowed = False

    def login_redirect(self, next_path=None):
        """Login form URL carrying the error code and the page to return to."""
        query = QueryDict(mutable=True)
        if self.error is not None:
            query['error'] = self.error.code
        if next_path:
            query['next'] = next_path
        if not query:
            return self.login_url
        return f'{self.login_url}?{query.urlencode(safe="/")}'


class AccessGate:

    def __init__(self, store, credentials, max_age, login_url='/login/',
                 clock=timezone.now, session_backend=None):
        self.store = store
        self.credentials = credentials
        self.max_age = max_age
        self.login_url = login_url
        self.clock = clock
        self.session_backend = (
            session_backend or import_module(settings.SESSION_ENGINE).SessionStore
        )

    def authenticate(self, username, password, http_session=None):
        """
        Validate credentials and open a new session for the principal.

        ``http_session`` is the request's Django session; whatever it held
        before is flushed so a login always yields a new key. Raises
        InvalidCredentials without touching any session when the credential
        store rejects the pair.
        """
        if not username or not password or not self.credentials.validate(username, password):
            signals.login_failed.send(sender=self.__class__, username=username)
            raise InvalidCredentials()

        if http_session is None:
            http_session = self.session_backend()
        previous = http_session.session_key
        if previous:
            self.logout(previous)
        http_session.flush()
        http_session[PRINCIPAL_SESSION_KEY] = username
        http_session.set_expiry(int(self.max_age.total_seconds()))
        http_session.save()

        session = Session(
            key=http_session.session_key, principal=username, created_at=self.clock(),
        )
        evicted = self.store.replace(session)
        if evicted is not None:
            self._delete_backend_session(evicted.key)
            signals.session_replaced.send(
                sender=self.__class__, session=evicted, replaced_by=session,
            )
        signals.session_created.send(sender=self.__class__, session=session)
        return session

    def authorize(self, request):
        """Allow the request if its Django session is the principal's live session."""
        decision = self.check_token(request.session.session_key)
        if decision.allowed and (
            request.session.get(PRINCIPAL_SESSION_KEY) != decision.session.principal
        ):
            # The session backend no longer holds this login
            return self._expire(decision.session.key)
        return decision

    def check_token(self, key):
        session = self.store.get(key)
        if session is None:
            return Deny(self.login_url)

        if session.invalidated_reason == REPLACED:
            # Tell the evicted holder once, then forget the tombstone
            self.store.discard(key)
            return Deny(self.login_url, SessionInvalidated())

        if not session.is_live:
            self.store.discard(key)
            return Deny(self.login_url)

        if session.is_expired(self.clock(), self.max_age):
            return self._expire(key)

        return Allow(session)

    def logout(self, session):
        """End a session. Unknown or already-ended sessions are ignored."""
        key = getattr(session, 'key', session)
        if not key:
            return
        ended = self.store.discard(key)
        self._delete_backend_session(key)
        if ended is not None and ended.is_live:
            signals.session_ended.send(sender=self.__class__, session=ended, reason=LOGOUT)

    def purge_expired(self):
        """Sweep sessions whose age exceeds max_age. Returns how many were removed."""
        removed = self.store.purge(self.clock() - self.max_age)
        self.session_backend.clear_expired()
        if removed:
            logger.info('Purged %d expired session(s).', removed)
        return removed

    def _expire(self, key):
        expired = self.store.invalidate(key, EXPIRED)
        self.store.discard(key)
        self._delete_backend_session(key)
        # Concurrent requests with the same key: only the one that flipped it reports
        if expired is not None:
            signals.session_ended.send(sender=self.__class__, session=expired, reason=EXPIRED)
        return Deny(self.login_url, SessionExpired())

    def _delete_backend_session(self, key):
        self.session_backend(session_key=key).delete()


def build_gate():
    """AccessGate built from the GATE_* and SESSION_* settings."""
    store_name = settings.GATE_SESSION_STORE
    try:
        store_class = SESSION_STORES[store_name]
    except KeyError:
        store_class = import_string(store_name)

    credentials = import_string(
        getattr(settings, 'GATE_CREDENTIAL_STORE', 'gate.credentials.DjangoCredentialStore')
    )
    if isinstance(credentials, type):
        credentials = credentials()

    return AccessGate(
        store=store_class(),
        credentials=credentials,
        max_age=timedelta(seconds=settings.SESSION_COOKIE_AGE),
        login_url=settings.LOGIN_URL,
    )


_gate = None
_gate_lock = threading.Lock()


def get_gate():
    """Process-wide AccessGate; built once even when first requests race."""
    global _gate
    if _gate is None:
        with _gate_lock:
            if _gate is None:
                _gate = build_gate()
    return _gate


def reset_gate():
    global _gate
    with _gate_lock:
        _gate = None


@receiver(setting_changed)
def rebuild_gate_on_settings_change(sender, setting, **kwargs):
    if setting.startswith(('GATE_', 'SESSION_')) or setting == 'LOGIN_URL':
        reset_gate()
