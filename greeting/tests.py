"""
Greeting tests: the handler itself and its place behind the access gate.
"""
from django.contrib.auth import get_user_model
from django.test import RequestFactory, SimpleTestCase, TestCase

from gate.gate import reset_gate
from greeting.views import GREETING, greeting


class GreetingViewTest(SimpleTestCase):

    def test_returns_fixed_text(self):
        response = greeting(RequestFactory().get('/'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content.decode(), 'Hello, World')
        self.assertEqual(response['Content-Type'], 'text/plain; charset=utf-8')

    def test_ignores_request_details(self):
        response = greeting(RequestFactory().post('/', {'name': 'someone'}))
        self.assertEqual(response.content.decode(), GREETING)

    def test_logs_diagnostic_record(self):
        with self.assertLogs('greeting.views', level='DEBUG') as logs:
            greeting(RequestFactory().get('/'))
        self.assertIn('[1, 2, 3, 4, 5]', logs.output[0])


class GreetingBehindGateTest(TestCase):

    @classmethod
    def setUpTestData(cls):
        get_user_model().objects.create_user(username='alice', password='Wonderland123!')

    def setUp(self):
        reset_gate()

    def test_anonymous_never_sees_greeting(self):
        r = self.client.get('/')
        self.assertEqual(r.status_code, 302)
        self.assertNotIn(GREETING.encode(), r.content)

    def test_authenticated_sees_exact_greeting(self):
        self.client.post('/login/', {'username': 'alice', 'password': 'Wonderland123!'})
        r = self.client.get('/')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.content, b'Hello, World')
