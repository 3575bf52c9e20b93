"""
Session lifecycle signals and the audit receivers listening to them.

The access gate sends these; the receivers below write one audit line per
event to the ``hellogate.audit`` logger. Receivers are connected when
GateConfig.ready() imports this module.
"""
import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger('hellogate.audit')

# sender=AccessGate, session=Session
session_created = Signal()
# sender=AccessGate, session=<evicted Session>, replaced_by=Session
session_replaced = Signal()
# sender=AccessGate, session=Session, reason=str
session_ended = Signal()
# sender=AccessGate, username=str
login_failed = Signal()


@receiver(session_created)
def log_session_created(sender, session, **kwargs):
    logger.info(
        'LOGIN_SUCCESS | user=%s | session=%s',
        session.principal,
        session.short_key,
    )


@receiver(session_replaced)
def log_session_replaced(sender, session, replaced_by, **kwargs):
    logger.warning(
        'SESSION_REPLACED | user=%s | old=%s | new=%s',
        session.principal,
        session.short_key,
        replaced_by.short_key,
    )


@receiver(session_ended)
def log_session_ended(sender, session, reason, **kwargs):
    logger.info(
        'SESSION_ENDED | user=%s | session=%s | reason=%s',
        session.principal,
        session.short_key,
        reason,
    )


@receiver(login_failed)
def log_failed_login(sender, username, **kwargs):
    logger.warning('LOGIN_FAILED | username=%s', username or '<blank>')
