"""
Authentication errors raised by the access gate.

Every error is recoverable at the HTTP boundary: the middleware and the login
view turn it into a redirect to the login form carrying ``error=<code>``.
"""


class AuthError(Exception):
    """Base class for all access-gate failures."""

    code = 'error'
    message = 'Authentication required.'

    def __init__(self, message=None):
        super().__init__(message or self.message)


class InvalidCredentials(AuthError):
    code = 'invalid'
    message = 'Invalid username or password.'


class SessionExpired(AuthError):
    code = 'expired'
    message = 'Your session has expired. Please sign in again.'


class SessionInvalidated(AuthError):
    code = 'invalidated'
    message = (
        'This session has been ended because the same account '
        'signed in from somewhere else.'
    )


ERRORS_BY_CODE = {
    cls.code: cls for cls in (InvalidCredentials, SessionExpired, SessionInvalidated)
}
