"""
Greeting view: the single protected page.
"""
import logging

from django.http import HttpResponse

logger = logging.getLogger(__name__)

GREETING = 'Hello, World'


def greeting(request):
    """Return the fixed greeting. Only reachable through the access gate."""
    data = [1, 2, 3, 4, 5]
    logger.debug('Hello from the greeting view %s', data)
    return HttpResponse(GREETING, content_type='text/plain; charset=utf-8')
