"""
Session records and the session table they live in.

The session table maps a token to a Session and a principal to its single live
Session. Every mutation is atomic with respect to concurrent logins of the same
principal, so at most one live session per principal exists at any instant.
Tokens are Django session keys; the session data and cookie themselves belong
to django.contrib.sessions.

Two backends share one contract:
  - MemorySessionStore: process-local dict guarded by a lock (default)
  - DatabaseSessionStore: the ``gate.UserSession`` table, for deployments
    running more than one worker process
"""
import logging
import random
import threading
import time
from dataclasses import dataclass, replace as dc_replace
from datetime import datetime

from django.db import IntegrityError, OperationalError, transaction

logger = logging.getLogger(__name__)

LOGOUT = 'logout'
REPLACED = 'replaced'
EXPIRED = 'expired'

INVALIDATION_REASONS = (LOGOUT, REPLACED, EXPIRED)


@dataclass(frozen=True)
class Session:
    """One authenticated login of a principal."""

    key: str
    principal: str
    created_at: datetime
    invalidated_reason: str = ''

    @property
    def is_live(self):
        return not self.invalidated_reason

    def is_expired(self, now, max_age):
        return now - self.created_at >= max_age

    def invalidated(self, reason):
        if reason not in INVALIDATION_REASONS:
            raise ValueError(f'Unknown invalidation reason: {reason!r}')
        return dc_replace(self, invalidated_reason=reason)

    @property
    def short_key(self):
        """Truncated key, safe to write to logs."""
        return f'{self.key[:6]}…'


class SessionStore:
    """Contract shared by every session table backend."""

    def get(self, key):
        raise NotImplementedError

    def live_for(self, principal):
        raise NotImplementedError

    def replace(self, session):
        """
        Store ``session`` as the live session of its principal.

        Any session the principal already had is invalidated with reason
        ``replaced`` and returned; returns None when there was none.
        """
        raise NotImplementedError

    def invalidate(self, key, reason):
        """
        Invalidate a live session and return it.

        Returns None when the key is unknown or the session was already
        invalidated, so only one caller ever observes the transition.
        """
        raise NotImplementedError

    def discard(self, key):
        raise NotImplementedError

    def purge(self, cutoff):
        """Forget every session created before ``cutoff``. Returns the count."""
        raise NotImplementedError


class MemorySessionStore(SessionStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._by_key = {}
        self._live_by_principal = {}

    def __len__(self):
        with self._lock:
            return len(self._by_key)

    def get(self, key):
        if not key:
            return None
        with self._lock:
            return self._by_key.get(key)

    def live_for(self, principal):
        with self._lock:
            key = self._live_by_principal.get(principal)
            return self._by_key.get(key) if key else None

    def replace(self, session):
        if not session.is_live:
            raise ValueError('Only a live session can be stored.')
        with self._lock:
            evicted = None
            old_key = self._live_by_principal.get(session.principal)
            if old_key is not None:
                evicted = self._by_key[old_key].invalidated(REPLACED)
                self._by_key[old_key] = evicted
            self._by_key[session.key] = session
            self._live_by_principal[session.principal] = session.key
            return evicted

    def invalidate(self, key, reason):
        with self._lock:
            session = self._by_key.get(key)
            if session is None or not session.is_live:
                return None
            session = session.invalidated(reason)
            self._by_key[key] = session
            self._unlink(session)
            return session

    def discard(self, key):
        with self._lock:
            session = self._by_key.pop(key, None)
            if session is not None:
                self._unlink(session)
            return session

    def purge(self, cutoff):
        with self._lock:
            stale = [k for k, s in self._by_key.items() if s.created_at < cutoff]
            for key in stale:
                self._unlink(self._by_key.pop(key))
            return len(stale)

    def _unlink(self, session):
        # Caller holds the lock.
        if self._live_by_principal.get(session.principal) == session.key:
            del self._live_by_principal[session.principal]


class DatabaseSessionStore(SessionStore):
    """
    Session table backed by ``gate.UserSession``.

    The partial unique constraint on the model (one row per principal with an
    empty ``invalidated_reason``) makes the database refuse a second live
    session. Row locks cannot serialize a principal's first login (there is no
    row to lock yet), so ``replace`` retries when it loses that race.
    """

    # Attempts before a lost race is reported to the caller
    REPLACE_ATTEMPTS = 10
    RETRY_DELAY = 0.02

    @property
    def model(self):
        # Lazy-import: the store is built before the app registry is ready
        from gate.models import UserSession
        return UserSession

    def get(self, key):
        if not key:
            return None
        row = self.model.objects.filter(session_key=key).first()
        return row.to_session() if row else None

    def live_for(self, principal):
        row = self.model.objects.live().filter(principal=principal).first()
        return row.to_session() if row else None

    def replace(self, session):
        if not session.is_live:
            raise ValueError('Only a live session can be stored.')
        for attempt in range(1, self.REPLACE_ATTEMPTS + 1):
            try:
                with transaction.atomic():
                    return self._replace(session)
            except (IntegrityError, OperationalError) as exc:
                if not self._is_lost_race(exc) or attempt == self.REPLACE_ATTEMPTS:
                    raise
                logger.info(
                    "Concurrent login for '%s', retrying (attempt %d): %s",
                    session.principal, attempt, exc,
                )
                time.sleep(self.RETRY_DELAY * random.uniform(1, 1 + attempt))

    def _replace(self, session):
        current = list(
            self.model.objects.select_for_update()
            .live().filter(principal=session.principal)
        )
        for row in current:
            row.invalidated_reason = REPLACED
            row.save(update_fields=['invalidated_reason'])
        self._insert(session)
        return current[0].to_session() if current else None

    def _insert(self, session):
        self.model.objects.create(
            session_key=session.key,
            principal=session.principal,
            created_at=session.created_at,
        )

    @staticmethod
    def _is_lost_race(exc):
        if isinstance(exc, IntegrityError):
            return True
        # SQLite reports lock contention as an OperationalError
        return 'locked' in str(exc)

    def invalidate(self, key, reason):
        with transaction.atomic():
            row = self.model.objects.select_for_update().live().filter(session_key=key).first()
            if row is None:
                return None
            row.invalidated_reason = reason
            row.save(update_fields=['invalidated_reason'])
            return row.to_session()

    def discard(self, key):
        with transaction.atomic():
            row = self.model.objects.select_for_update().filter(session_key=key).first()
            if row is None:
                return None
            session = row.to_session()
            row.delete()
            return session

    def purge(self, cutoff):
        deleted, _ = self.model.objects.filter(created_at__lt=cutoff).delete()
        return deleted
