"""
Gate views: the login form and logout.
"""
import logging

from django.conf import settings
from django.shortcuts import redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_http_methods, require_POST

from gate.exceptions import ERRORS_BY_CODE, AuthError
from gate.forms import LoginForm
from gate.gate import Deny, get_gate

logger = logging.getLogger('hellogate.auth')


def _get_client_ip(request):
    """Extract real client IP, honouring X-Forwarded-For for proxied setups."""
    trusted = getattr(settings, 'TRUSTED_PROXIES', [])
    remote = request.META.get('REMOTE_ADDR', '')
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded and (not trusted or remote in trusted):
        return forwarded.split(',')[0].strip()
    return remote or None


def _safe_next(request, candidate):
    if candidate and url_has_allowed_host_and_scheme(
        candidate,
        allowed_hosts={request.get_host()},
        require_https=request.is_secure(),
    ):
        return candidate
    return '/'


@never_cache
@require_http_methods(['GET', 'POST'])
def login_view(request):
    """Render the login form (GET) or open a session for the principal (POST)."""
    gate = get_gate()

    if request.method == 'POST':
        form = LoginForm(request.POST)
        form.is_valid()
        username = form.cleaned_data.get('username', '')
        next_url = form.cleaned_data.get('next', '')
        try:
            session = gate.authenticate(
                username, form.cleaned_data.get('password', ''), request.session,
            )
        except AuthError as exc:
            logger.warning(
                "Failed login for '%s' from IP %s.", username, _get_client_ip(request),
            )
            return redirect(Deny(gate.login_url, exc).login_redirect(next_url))

        logger.info(
            "User '%s' logged in from IP %s.", session.principal, _get_client_ip(request),
        )
        # SessionMiddleware sets the cookie from the SESSION_COOKIE_* settings
        return redirect(_safe_next(request, next_url))

    error_code = request.GET.get('error')
    error = ERRORS_BY_CODE.get(error_code)
    context = {
        'form': LoginForm(initial={'next': request.GET.get('next', '')}),
        'error_message': error.message if error else '',
    }
    return render(request, 'gate/login.html', context)


@require_POST
def logout_view(request):
    """End the caller's session (if any) and send them to the landing page."""
    get_gate().logout(request.session.session_key)
    request.session.flush()
    return redirect('/')
