"""
Access gate tests: session table, gate policy, login/logout flow, commands.
"""
import threading
import time
import typing
from datetime import datetime, timedelta, timezone as dt_timezone
from io import StringIO
from unittest import mock

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.sessions.backends.cache import SessionStore as CacheSession
from django.contrib.sessions.models import Session as DjangoSession
from django.core.management import call_command
from django.db import IntegrityError, OperationalError, connection
from django.test import (
    Client, RequestFactory, SimpleTestCase, TestCase, TransactionTestCase, override_settings,
)
from django.utils import timezone
from django.utils.crypto import get_random_string

from gate.credentials import DjangoCredentialStore, StaticCredentialStore
from gate.exceptions import AuthError, InvalidCredentials, SessionExpired, SessionInvalidated
from gate.gate import PRINCIPAL_SESSION_KEY, AccessGate, Allow, Deny, get_gate, reset_gate
from gate.models import UserSession
from gate.sessions import (
    EXPIRED, LOGOUT, REPLACED,
    DatabaseSessionStore, MemorySessionStore, Session,
)
from hellogate_project.settings.base import build_middleware

COOKIE = settings.SESSION_COOKIE_NAME


class FakeClock:

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=dt_timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_session(principal='alice', created_at=None):
    return Session(
        key=get_random_string(32),
        principal=principal,
        created_at=created_at or timezone.now(),
    )


# ── Session table ────────────────────────────────────────────────────
class SessionStoreContract:
    """Behaviour every session table backend must share."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def test_first_session_evicts_nothing(self):
        self.assertIsNone(self.store.replace(make_session()))

    def test_replace_evicts_previous_live_session(self):
        first = make_session()
        second = make_session()
        self.store.replace(first)

        evicted = self.store.replace(second)

        self.assertEqual(evicted.key, first.key)
        self.assertEqual(evicted.invalidated_reason, REPLACED)
        self.assertEqual(self.store.live_for('alice').key, second.key)

    def test_replaced_session_stays_as_tombstone(self):
        first = make_session()
        self.store.replace(first)
        self.store.replace(make_session())

        tombstone = self.store.get(first.key)
        self.assertIsNotNone(tombstone)
        self.assertFalse(tombstone.is_live)

    def test_principals_are_independent(self):
        alice = make_session('alice')
        bob = make_session('bob')
        self.store.replace(alice)

        self.assertIsNone(self.store.replace(bob))
        self.assertTrue(self.store.get(alice.key).is_live)

    def test_invalidate_frees_the_principal(self):
        session = make_session()
        self.store.replace(session)

        ended = self.store.invalidate(session.key, EXPIRED)

        self.assertEqual(ended.invalidated_reason, EXPIRED)
        self.assertIsNone(self.store.live_for('alice'))

    def test_invalidate_unknown_key(self):
        self.assertIsNone(self.store.invalidate('missing', LOGOUT))

    def test_invalidate_reports_the_transition_once(self):
        session = make_session()
        self.store.replace(session)

        self.assertIsNotNone(self.store.invalidate(session.key, EXPIRED))
        self.assertIsNone(self.store.invalidate(session.key, EXPIRED))
        self.assertEqual(self.store.get(session.key).invalidated_reason, EXPIRED)

    def test_invalidate_leaves_tombstone_untouched(self):
        first = make_session()
        self.store.replace(first)
        self.store.replace(make_session())

        self.assertIsNone(self.store.invalidate(first.key, EXPIRED))
        self.assertEqual(self.store.get(first.key).invalidated_reason, REPLACED)

    def test_discard_is_idempotent(self):
        session = make_session()
        self.store.replace(session)

        self.assertEqual(self.store.discard(session.key).key, session.key)
        self.assertIsNone(self.store.discard(session.key))
        self.assertIsNone(self.store.get(session.key))

    def test_get_blank_key(self):
        self.assertIsNone(self.store.get(''))
        self.assertIsNone(self.store.get(None))

    def test_purge_removes_sessions_created_before_cutoff(self):
        now = timezone.now()
        old = make_session('alice', created_at=now - timedelta(hours=2))
        fresh = make_session('bob', created_at=now)
        self.store.replace(old)
        self.store.replace(fresh)

        removed = self.store.purge(now - timedelta(hours=1))

        self.assertEqual(removed, 1)
        self.assertIsNone(self.store.get(old.key))
        self.assertIsNone(self.store.live_for('alice'))
        self.assertIsNotNone(self.store.get(fresh.key))

    def test_only_live_sessions_can_be_stored(self):
        with self.assertRaises(ValueError):
            self.store.replace(make_session().invalidated(LOGOUT))


class MemorySessionStoreTest(SessionStoreContract, SimpleTestCase):

    def make_store(self):
        return MemorySessionStore()

    def test_concurrent_logins_leave_one_live_session(self):
        sessions = [make_session() for _ in range(25)]
        barrier = threading.Barrier(len(sessions))

        def login(session):
            barrier.wait()
            self.store.replace(session)

        threads = [threading.Thread(target=login, args=(s,)) for s in sessions]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        live = [s for s in sessions if self.store.get(s.key).is_live]
        self.assertEqual(len(live), 1)
        self.assertEqual(self.store.live_for('alice').key, live[0].key)


class DatabaseSessionStoreTest(SessionStoreContract, TestCase):

    def make_store(self):
        return DatabaseSessionStore()

    def test_one_live_row_per_principal(self):
        for _ in range(3):
            self.store.replace(make_session())

        self.assertEqual(UserSession.objects.filter(principal='alice').count(), 3)
        self.assertEqual(UserSession.objects.live().filter(principal='alice').count(), 1)

    def test_replace_retries_after_losing_first_login_race(self):
        store = RacingDatabaseSessionStore()
        session = make_session()

        evicted = store.replace(session)

        self.assertIsNone(evicted)
        self.assertEqual(store.inserts, 2)
        live = UserSession.objects.live().get(principal='alice')
        self.assertEqual(live.session_key, session.key)

    def test_replace_gives_up_after_max_attempts(self):
        store = FailingDatabaseSessionStore(IntegrityError('UNIQUE constraint failed'))

        with self.assertRaises(IntegrityError):
            store.replace(make_session())
        self.assertEqual(store.inserts, store.REPLACE_ATTEMPTS)

    def test_replace_does_not_retry_unrelated_errors(self):
        store = FailingDatabaseSessionStore(OperationalError('disk I/O error'))

        with self.assertRaises(OperationalError):
            store.replace(make_session())
        self.assertEqual(store.inserts, 1)


class RacingDatabaseSessionStore(DatabaseSessionStore):
    """Another login for the same principal commits just before the first insert."""

    RETRY_DELAY = 0

    def __init__(self):
        self.inserts = 0

    def _insert(self, session):
        self.inserts += 1
        if self.inserts == 1:
            super()._insert(make_session(session.principal))
        super()._insert(session)


class FailingDatabaseSessionStore(DatabaseSessionStore):

    REPLACE_ATTEMPTS = 3
    RETRY_DELAY = 0

    def __init__(self, error):
        self.error = error
        self.inserts = 0

    def _insert(self, session):
        self.inserts += 1
        raise self.error


class ConcurrentDatabaseLoginTest(TransactionTestCase):
    """Simultaneous first logins of one principal against the database table."""

    logins = 6

    def setUp(self):
        self.gate = AccessGate(
            store=DatabaseSessionStore(),
            credentials=StaticCredentialStore({'alice': 'wonderland'}),
            max_age=timedelta(minutes=30),
            session_backend=CacheSession,
        )

    def test_concurrent_logins_all_succeed(self):
        barrier = threading.Barrier(self.logins)
        sessions, errors = [], []

        def login():
            try:
                barrier.wait()
                sessions.append(self.gate.authenticate('alice', 'wonderland'))
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=login) for _ in range(self.logins)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(sessions), self.logins)
        self.assertEqual(UserSession.objects.filter(principal='alice').count(), self.logins)
        live = UserSession.objects.live().filter(principal='alice')
        self.assertEqual(live.count(), 1)
        self.assertIn(live.get().session_key, {s.key for s in sessions})


# ── Gate policy ──────────────────────────────────────────────────────
class AccessGateTest(SimpleTestCase):
    """Gate decisions with an in-memory store, fixed users and a fake clock."""

    def setUp(self):
        self.clock = FakeClock()
        self.store = MemorySessionStore()
        self.backend = CacheSession
        self.gate = AccessGate(
            store=self.store,
            credentials=StaticCredentialStore({'alice': 'wonderland', 'bob': 'builder'}),
            max_age=timedelta(minutes=30),
            login_url='/login/',
            clock=self.clock,
            session_backend=self.backend,
        )
        self.factory = RequestFactory()

    def request_with(self, key=None):
        request = self.factory.get('/')
        request.session = self.backend(session_key=key)
        return request

    def test_authenticate_creates_live_session(self):
        session = self.gate.authenticate('alice', 'wonderland')

        self.assertEqual(session.principal, 'alice')
        self.assertEqual(session.created_at, self.clock.now)
        self.assertTrue(session.is_live)
        self.assertEqual(self.store.live_for('alice').key, session.key)

    def test_invalid_credentials_create_no_session(self):
        with self.assertRaises(InvalidCredentials):
            self.gate.authenticate('alice', 'wrong')
        self.assertEqual(len(self.store), 0)

    def test_blank_credentials_are_rejected(self):
        for username, password in (('', 'wonderland'), ('alice', ''), ('', '')):
            with self.assertRaises(InvalidCredentials):
                self.gate.authenticate(username, password)
        self.assertEqual(len(self.store), 0)

    def test_second_login_invalidates_first(self):
        first = self.gate.authenticate('alice', 'wonderland')
        second = self.gate.authenticate('alice', 'wonderland')

        self.assertNotEqual(first.key, second.key)
        denied = self.gate.authorize(self.request_with(first.key))
        self.assertFalse(denied.allowed)
        self.assertIsInstance(denied.error, SessionInvalidated)
        self.assertTrue(self.gate.authorize(self.request_with(second.key)).allowed)

    def test_evicted_holder_is_told_once(self):
        first = self.gate.authenticate('alice', 'wonderland')
        self.gate.authenticate('alice', 'wonderland')

        self.gate.authorize(self.request_with(first.key))
        again = self.gate.authorize(self.request_with(first.key))

        self.assertFalse(again.allowed)
        self.assertIsNone(again.error)

    def test_request_without_cookie_is_denied(self):
        decision = self.gate.authorize(self.request_with())
        self.assertIsInstance(decision, Deny)
        self.assertIsNone(decision.error)

    def test_unknown_token_is_denied(self):
        self.assertFalse(self.gate.authorize(self.request_with('forged')).allowed)

    def test_live_session_is_allowed(self):
        session = self.gate.authenticate('bob', 'builder')
        decision = self.gate.authorize(self.request_with(session.key))

        self.assertIsInstance(decision, Allow)
        self.assertEqual(decision.session.principal, 'bob')

    def test_session_expires_after_max_age(self):
        session = self.gate.authenticate('alice', 'wonderland')
        self.clock.advance(minutes=29)
        self.assertTrue(self.gate.authorize(self.request_with(session.key)).allowed)

        self.clock.advance(minutes=1)
        decision = self.gate.authorize(self.request_with(session.key))

        self.assertIsInstance(decision.error, SessionExpired)
        self.assertIsNone(self.store.get(session.key))
        self.assertIsNone(self.store.live_for('alice'))

    def test_logout_denies_old_token(self):
        session = self.gate.authenticate('alice', 'wonderland')
        self.gate.logout(session)

        decision = self.gate.authorize(self.request_with(session.key))
        self.assertFalse(decision.allowed)
        self.assertIsNone(self.store.live_for('alice'))

    def test_logout_is_idempotent(self):
        session = self.gate.authenticate('alice', 'wonderland')
        self.gate.logout(session)
        self.gate.logout(session)
        self.gate.logout(session.key)
        self.gate.logout('never-issued')
        self.gate.logout(None)

    def test_logout_of_expired_session(self):
        session = self.gate.authenticate('alice', 'wonderland')
        self.clock.advance(hours=1)
        self.gate.authorize(self.request_with(session.key))

        self.gate.logout(session)

    def test_login_after_logout_creates_fresh_session(self):
        first = self.gate.authenticate('alice', 'wonderland')
        self.gate.logout(first)
        second = self.gate.authenticate('alice', 'wonderland')

        self.assertNotEqual(first.key, second.key)
        self.assertFalse(self.gate.authorize(self.request_with(first.key)).allowed)

    def test_purge_expired(self):
        self.gate.authenticate('alice', 'wonderland')
        self.clock.advance(minutes=10)
        self.gate.authenticate('bob', 'builder')
        self.clock.advance(minutes=25)

        self.assertEqual(self.gate.purge_expired(), 1)
        self.assertIsNone(self.store.live_for('alice'))
        self.assertIsNotNone(self.store.live_for('bob'))

    def test_deny_redirect_url(self):
        self.assertEqual(Deny('/login/').login_redirect(), '/login/')
        self.assertEqual(Deny('/login/').login_redirect('/'), '/login/?next=/')
        self.assertEqual(
            Deny('/login/', SessionExpired()).login_redirect('/'),
            '/login/?error=expired&next=/',
        )

    def test_lifecycle_is_audited(self):
        with self.assertLogs('hellogate.audit', level='INFO') as logs:
            first = self.gate.authenticate('alice', 'wonderland')
            self.gate.authenticate('alice', 'wonderland')
            with self.assertRaises(InvalidCredentials):
                self.gate.authenticate('alice', 'nope')
            self.gate.logout(self.store.live_for('alice'))

        output = '\n'.join(logs.output)
        self.assertIn('LOGIN_SUCCESS | user=alice', output)
        self.assertIn('SESSION_REPLACED | user=alice', output)
        self.assertIn('LOGIN_FAILED | username=alice', output)
        self.assertIn('reason=logout', output)
        self.assertNotIn(first.key, output)

    def test_expiry_is_audited_once_for_concurrent_requests(self):
        session = self.gate.authenticate('alice', 'wonderland')
        stale = self.store.get(session.key)
        self.clock.advance(hours=1)

        with self.assertLogs('hellogate.audit', level='INFO') as logs:
            first = self.gate.authorize(self.request_with(session.key))
            # The second request read the row before the first one expired it
            with mock.patch.object(self.store, 'get', return_value=stale):
                second = self.gate.authorize(self.request_with(session.key))

        self.assertIsInstance(first.error, SessionExpired)
        self.assertIsInstance(second.error, SessionExpired)
        ended = [line for line in logs.output if 'SESSION_ENDED' in line]
        self.assertEqual(len(ended), 1)
        self.assertIn('reason=expired', ended[0])

    def test_deny_error_is_an_auth_error(self):
        hints = typing.get_type_hints(Deny)
        self.assertEqual(hints['error'], typing.Optional[AuthError])

    # Django session backend

    def test_login_stores_principal_in_django_session(self):
        http_session = self.backend()
        session = self.gate.authenticate('alice', 'wonderland', http_session)

        self.assertEqual(http_session.session_key, session.key)
        stored = self.backend(session_key=session.key)
        self.assertEqual(stored[PRINCIPAL_SESSION_KEY], 'alice')
        self.assertEqual(stored.get_expiry_age(), 30 * 60)

    def test_login_flushes_presented_session(self):
        http_session = self.backend()
        http_session['theme'] = 'dark'
        http_session.save()
        presented = http_session.session_key

        session = self.gate.authenticate('alice', 'wonderland', http_session)

        self.assertNotEqual(session.key, presented)
        self.assertNotIn('theme', http_session)
        self.assertFalse(self.backend().exists(presented))

    def test_eviction_deletes_django_session(self):
        first = self.gate.authenticate('alice', 'wonderland')
        second = self.gate.authenticate('alice', 'wonderland')

        self.assertFalse(self.backend().exists(first.key))
        self.assertTrue(self.backend().exists(second.key))

    def test_logout_deletes_django_session(self):
        session = self.gate.authenticate('alice', 'wonderland')
        self.gate.logout(session)
        self.assertFalse(self.backend().exists(session.key))

    def test_session_without_principal_data_is_expired(self):
        session = self.gate.authenticate('alice', 'wonderland')
        self.backend(session_key=session.key).delete()

        decision = self.gate.authorize(self.request_with(session.key))

        self.assertIsInstance(decision.error, SessionExpired)
        self.assertIsNone(self.store.live_for('alice'))


class SlowMemorySessionStore(MemorySessionStore):
    """Memory store whose construction is slow enough to overlap threads."""

    instances = 0

    def __init__(self):
        time.sleep(0.2)
        type(self).instances += 1
        super().__init__()


class GateSingletonTest(SimpleTestCase):

    def setUp(self):
        reset_gate()
        SlowMemorySessionStore.instances = 0

    def tearDown(self):
        reset_gate()

    @override_settings(GATE_SESSION_STORE='gate.tests.SlowMemorySessionStore')
    def test_concurrent_first_requests_share_one_gate(self):
        barrier = threading.Barrier(4)
        gates = []

        def first_request():
            barrier.wait()
            gates.append(get_gate())

        threads = [threading.Thread(target=first_request) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(gates), 4)
        self.assertEqual(len({id(g) for g in gates}), 1)
        self.assertEqual(SlowMemorySessionStore.instances, 1)
        self.assertIs(get_gate(), gates[0])

    def test_settings_change_rebuilds_gate(self):
        before = get_gate()
        with override_settings(SESSION_COOKIE_AGE=60):
            during = get_gate()
            self.assertIsNot(during, before)
            self.assertEqual(during.max_age, timedelta(seconds=60))


class CredentialStoreTest(TestCase):

    @classmethod
    def setUpTestData(cls):
        User = get_user_model()
        User.objects.create_user(username='alice', password='Wonderland123!')
        User.objects.create_user(username='mallory', password='Wonderland123!', is_active=False)

    def test_django_store(self):
        store = DjangoCredentialStore()
        self.assertTrue(store.validate('alice', 'Wonderland123!'))
        self.assertFalse(store.validate('alice', 'wrong'))
        self.assertFalse(store.validate('nobody', 'Wonderland123!'))
        self.assertFalse(store.validate('mallory', 'Wonderland123!'))

    def test_static_store(self):
        store = StaticCredentialStore({'alice': 'pw'})
        self.assertTrue(store.validate('alice', 'pw'))
        self.assertFalse(store.validate('alice', 'PW'))
        self.assertFalse(store.validate('bob', 'pw'))


# ── HTTP flow ────────────────────────────────────────────────────────
class GateFlowTestBase(TestCase):
    """Shared fixtures for the login/logout flow through the test client."""

    password = 'Wonderland123!'

    @classmethod
    def setUpTestData(cls):
        User = get_user_model()
        User.objects.create_user(username='alice', password=cls.password)
        User.objects.create_user(username='bob', password=cls.password)

    def setUp(self):
        reset_gate()
        self.gate = get_gate()

    def login(self, client=None, username='alice', password=None, **extra):
        client = client or self.client
        data = {'username': username, 'password': password or self.password}
        data.update(extra)
        return client.post('/login/', data)

    def token(self, client=None):
        return (client or self.client).cookies[COOKIE].value


class LoginFlowTest(GateFlowTestBase):

    def test_login_page(self):
        r = self.client.get('/login/')
        self.assertEqual(r.status_code, 200)
        self.assertContains(r, 'Please sign in')
        self.assertContains(r, 'name="password"')

    def test_login_page_shows_error(self):
        r = self.client.get('/login/', {'error': 'expired'})
        self.assertContains(r, SessionExpired.message)

    def test_login_success(self):
        r = self.login()
        self.assertRedirects(r, '/', fetch_redirect_response=False)
        cookie = r.cookies[COOKIE]
        self.assertTrue(cookie['httponly'])
        self.assertEqual(cookie['samesite'], 'Lax')
        self.assertEqual(cookie['max-age'], settings.SESSION_COOKIE_AGE)
        self.assertEqual(self.gate.store.live_for('alice').key, cookie.value)
        self.assertEqual(self.client.session[PRINCIPAL_SESSION_KEY], 'alice')

    def test_login_failure(self):
        r = self.login(password='wrong')
        self.assertRedirects(r, '/login/?error=invalid', fetch_redirect_response=False)
        self.assertNotIn(COOKIE, r.cookies)
        self.assertEqual(len(self.gate.store), 0)

    def test_login_with_missing_fields(self):
        r = self.client.post('/login/', {'username': 'alice'})
        self.assertRedirects(r, '/login/?error=invalid', fetch_redirect_response=False)

    def test_login_returns_to_next(self):
        r = self.login(next='/?lang=en')
        self.assertRedirects(r, '/?lang=en', fetch_redirect_response=False)

    def test_login_ignores_offsite_next(self):
        r = self.login(next='https://evil.example/')
        self.assertRedirects(r, '/', fetch_redirect_response=False)

    def test_login_always_issues_new_session(self):
        self.login()
        old = self.token()
        self.login(username='bob')

        self.assertNotEqual(self.token(), old)
        self.assertIsNone(self.gate.store.get(old))
        self.assertEqual(self.gate.store.live_for('bob').key, self.token())

    def test_logout_page_only_accepts_post(self):
        self.assertEqual(self.client.get('/logout/').status_code, 405)


class AccessPolicyTest(GateFlowTestBase):

    def test_unauthenticated_request_is_redirected(self):
        r = self.client.get('/')
        self.assertRedirects(r, '/login/?next=/', fetch_redirect_response=False)

    def test_any_path_requires_a_session(self):
        r = self.client.get('/anything/')
        self.assertRedirects(r, '/login/?next=/anything/', fetch_redirect_response=False)

    def test_authenticated_request_reaches_handler(self):
        self.login()
        r = self.client.get('/')
        self.assertEqual(r.status_code, 200)

    def test_second_login_evicts_first_browser(self):
        first, second = Client(), Client()
        self.login(first)
        self.login(second)

        r = first.get('/')
        self.assertRedirects(
            r, '/login/?error=invalidated&next=/', fetch_redirect_response=False,
        )
        self.assertEqual(second.get('/').status_code, 200)

    def test_expired_session_is_redirected(self):
        self.login()
        self.gate.clock = lambda: timezone.now() + timedelta(seconds=self.gate.max_age.total_seconds() + 1)

        r = self.client.get('/')
        self.assertRedirects(r, '/login/?error=expired&next=/', fetch_redirect_response=False)
        self.assertEqual(r.cookies[COOKIE].value, '')

    def test_logout_denies_old_token(self):
        self.login()
        token = self.token()

        r = self.client.post('/logout/')
        self.assertRedirects(r, '/', fetch_redirect_response=False)
        self.assertEqual(r.cookies[COOKIE].value, '')

        replay = Client()
        replay.cookies[COOKIE] = token
        r = replay.get('/')
        self.assertRedirects(r, '/login/?next=/', fetch_redirect_response=False)

    def test_logout_without_session(self):
        r = self.client.post('/logout/')
        self.assertRedirects(r, '/', fetch_redirect_response=False)

    def test_logout_twice(self):
        self.login()
        token = self.token()
        self.client.post('/logout/')
        self.client.cookies[COOKIE] = token
        r = self.client.post('/logout/')
        self.assertEqual(r.status_code, 302)


@override_settings(
    GATE_SESSION_STORE='database',
    SESSION_ENGINE='django.contrib.sessions.backends.db',
)
class DatabaseStoreFlowTest(GateFlowTestBase):

    def expire_all(self):
        max_age = self.gate.max_age
        self.gate.clock = lambda: timezone.now() + max_age + timedelta(seconds=1)

    def test_uses_database_store(self):
        self.assertIsInstance(self.gate.store, DatabaseSessionStore)

    def test_single_live_session_per_user(self):
        first, second = Client(), Client()
        self.login(first)
        self.login(second)

        live = UserSession.objects.live().filter(principal='alice')
        self.assertEqual(live.count(), 1)
        self.assertEqual(live.get().session_key, self.token(second))
        self.assertRedirects(
            first.get('/'), '/login/?error=invalidated&next=/', fetch_redirect_response=False,
        )

    def test_login_writes_django_session_row(self):
        self.login()
        row = DjangoSession.objects.get(session_key=self.token())
        self.assertEqual(row.get_decoded()[PRINCIPAL_SESSION_KEY], 'alice')

    def test_eviction_deletes_django_session_row(self):
        first, second = Client(), Client()
        self.login(first)
        evicted = self.token(first)
        self.login(second)

        self.assertFalse(DjangoSession.objects.filter(session_key=evicted).exists())
        self.assertTrue(DjangoSession.objects.filter(session_key=self.token(second)).exists())

    def test_logout_removes_row(self):
        self.login()
        token = self.token()
        self.client.post('/logout/')
        self.assertFalse(UserSession.objects.filter(session_key=token).exists())
        self.assertFalse(DjangoSession.objects.filter(session_key=token).exists())

    def test_expired_session_is_redirected(self):
        self.login()
        token = self.token()
        self.expire_all()

        r = self.client.get('/')

        self.assertRedirects(r, '/login/?error=expired&next=/', fetch_redirect_response=False)
        self.assertEqual(r.cookies[COOKIE].value, '')
        self.assertFalse(UserSession.objects.filter(session_key=token).exists())
        self.assertFalse(DjangoSession.objects.filter(session_key=token).exists())

    def test_replaced_token_replayed_after_purge(self):
        first, second = Client(), Client()
        self.login(first)
        self.login(second)
        self.expire_all()

        call_command('purge_sessions', stdout=StringIO())

        self.assertEqual(UserSession.objects.count(), 0)
        r = first.get('/')
        self.assertRedirects(r, '/login/?next=/', fetch_redirect_response=False)


class CsrfSettingTest(GateFlowTestBase):

    def test_forgery_protection_off_by_default(self):
        client = Client(enforce_csrf_checks=True)
        self.assertEqual(self.login(client).status_code, 302)

    @override_settings(MIDDLEWARE=build_middleware(csrf_protection=True))
    def test_forgery_protection_when_enabled(self):
        client = Client(enforce_csrf_checks=True)
        self.assertEqual(self.login(client).status_code, 403)
        self.assertEqual(len(self.gate.store), 0)


# ── Management commands ──────────────────────────────────────────────
class CommandTest(GateFlowTestBase):

    def test_create_principal_with_password(self):
        out = StringIO()
        call_command('create_principal', '--username', 'carol', '--password', 'Carol12345!', stdout=out)

        self.assertIn('User created: carol', out.getvalue())
        self.assertTrue(DjangoCredentialStore().validate('carol', 'Carol12345!'))

    def test_create_principal_generates_password(self):
        out = StringIO()
        call_command('create_principal', '--username', 'dave', stdout=out)

        line = [l for l in out.getvalue().splitlines() if 'generated password' in l][0]
        password = line.rsplit(': ', 1)[1]
        self.assertEqual(len(password), 20)
        self.assertTrue(DjangoCredentialStore().validate('dave', password))

    def test_create_principal_existing_user(self):
        out = StringIO()
        call_command('create_principal', '--username', 'alice', stdout=out)
        self.assertIn('already exists', out.getvalue())

    def test_purge_sessions(self):
        self.login()
        self.gate.clock = lambda: timezone.now() + timedelta(days=1)

        out = StringIO()
        call_command('purge_sessions', stdout=out)

        self.assertIn('Purged 1 expired session(s).', out.getvalue())
        self.assertEqual(len(self.gate.store), 0)
