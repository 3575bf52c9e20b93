"""
Access gate middleware: composes the gate in front of every view.
"""
import logging

from django.conf import settings
from django.shortcuts import redirect
from django.urls import reverse

from gate.gate import get_gate

logger = logging.getLogger(__name__)


class AccessGateMiddleware:
    """
    Lets a request through only when it carries a live session.

    The login form and the logout endpoint are the only routes handled
    without a session. Denied requests are redirected to the login form with
    the original path in ``next``; a stale session is flushed so
    SessionMiddleware clears its cookie on the way out. Allowed requests get
    ``request.gate_session``.
    """

    def __init__(self, get_response, gate=None):
        self.get_response = get_response
        self._gate = gate

    @property
    def gate(self):
        return self._gate or get_gate()

    def is_exempt(self, path):
        return path in (settings.LOGIN_URL, reverse('logout'))

    def __call__(self, request):
        request.gate_session = None

        if self.is_exempt(request.path):
            return self.get_response(request)

        decision = self.gate.authorize(request)
        if not decision.allowed:
            if decision.error is not None:
                logger.info(
                    'Denied %s %s: %s', request.method, request.path, decision.error.code,
                )
            if request.session.session_key:
                # SessionMiddleware drops the cookie of an emptied session
                request.session.flush()
            return redirect(decision.login_redirect(request.get_full_path()))

        request.gate_session = decision.session
        return self.get_response(request)
