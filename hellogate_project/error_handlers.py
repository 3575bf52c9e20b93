"""
Custom error handlers - plain-text bodies, no internals leaked.
"""
from django.http import HttpResponse


def _plain(message, status):
    return HttpResponse(message, status=status, content_type='text/plain; charset=utf-8')


def handler404(request, exception=None):
    return _plain('Not Found', 404)


def handler500(request):
    """Custom 500 error handler - never echoes the exception."""
    return _plain('Internal Server Error', 500)


def handler403(request, exception=None):
    return _plain('Forbidden', 403)


def handler400(request, exception=None):
    return _plain('Bad Request', 400)
