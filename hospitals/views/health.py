import logging

from channels.layers import get_channel_layer
from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    """Liveness check: database round-trip plus the configured channel layer backend."""
    layer = get_channel_layer()
    body = {'ok': True, 'channelLayer': type(layer).__name__ if layer else None}
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        body['db'] = bool(row and row[0] == 1)
    except DatabaseError as e:
        logger.warning('healthz database check failed: %s', e)
        return JsonResponse({**body, 'ok': False, 'db': False, 'error': str(e)}, status=500)
    return JsonResponse(body)
