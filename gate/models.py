"""
UserSession model: the database-backed session table.

Only used when GATE_SESSION_STORE = 'database'. Rows are written exclusively
through gate.sessions.DatabaseSessionStore.
"""
from django.db import models
from django.db.models import Q

from gate.sessions import INVALIDATION_REASONS, Session


class UserSessionQuerySet(models.QuerySet):

    def live(self):
        return self.filter(invalidated_reason='')


class UserSession(models.Model):
    """
    Bridges an opaque session token to the principal that owns it.

    The conditional unique constraint lets the database itself enforce one
    live row per principal; invalidated rows stay behind as tombstones until
    the holder presents them again or they are purged.
    """

    REASON_CHOICES = [('', 'Live')] + [(r, r.title()) for r in INVALIDATION_REASONS]

    session_key = models.CharField(max_length=40, primary_key=True)
    principal = models.CharField(max_length=150, db_index=True)
    created_at = models.DateTimeField(db_index=True)
    invalidated_reason = models.CharField(
        max_length=16,
        blank=True,
        default='',
        choices=REASON_CHOICES,
    )

    objects = UserSessionQuerySet.as_manager()

    class Meta:
        db_table = 'user_sessions'
        verbose_name = 'User Session'
        verbose_name_plural = 'User Sessions'
        constraints = [
            models.UniqueConstraint(
                fields=['principal'],
                condition=Q(invalidated_reason=''),
                name='one_live_session_per_principal',
            ),
        ]

    def __str__(self):
        status = self.invalidated_reason or 'live'
        return f'{self.principal} ({status})'

    def to_session(self):
        return Session(
            key=self.session_key,
            principal=self.principal,
            created_at=self.created_at,
            invalidated_reason=self.invalidated_reason,
        )
