"""
WebSocket feeds: connect-time authorisation and the snapshots pushed on
connect.
"""
import pytest
from asgiref.sync import async_to_sync
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser

from hospitals.services import broadcast
from hospitals.services.broadcast import notifications_group, publish_on_commit
from referralnet.asgi import websocket_urlpatterns

pytestmark = pytest.mark.django_db


def _app(user):
    router = URLRouter(websocket_urlpatterns)

    async def app(scope, receive, send):
        return await router({**scope, 'user': user}, receive, send)
    return app


async def _connect(user, path):
    communicator = WebsocketCommunicator(_app(user), path)
    connected, code = await communicator.connect()
    if not connected:
        return connected, code, None
    payload = await communicator.receive_json_from()
    await communicator.disconnect()
    return connected, code, payload


async def _refresh(user, message):
    communicator = WebsocketCommunicator(_app(user), '/ws/notifications/')
    await communicator.connect()
    await communicator.receive_json_from()
    await communicator.send_to(text_data=message)
    reply = await communicator.receive_json_from()
    await communicator.disconnect()
    return reply


def test_resource_feed_rejects_anonymous(receiver):
    connected, code, _ = async_to_sync(_connect)(AnonymousUser(), f'/ws/resources/{receiver.id}/')
    assert (connected, code) == (False, 4001)


def test_resource_feed_requires_a_bound_hospital(receiver, make_staff):
    unbound = make_staff('drifter')
    connected, code, _ = async_to_sync(_connect)(unbound, f'/ws/resources/{receiver.id}/')
    assert (connected, code) == (False, 4003)


def test_resource_feed_sends_snapshot_on_connect(receiver, sender_staff):
    connected, _, payload = async_to_sync(_connect)(sender_staff, f'/ws/resources/{receiver.id}/')
    assert connected
    assert payload['type'] == 'resources'
    assert payload['hospitalId'] == receiver.id
    assert payload['beds'] == {'total': 10, 'occupied': 8}


def test_resource_feed_unknown_hospital(sender_staff):
    connected, code, _ = async_to_sync(_connect)(sender_staff, '/ws/resources/MISSING/')
    assert (connected, code) == (False, 4004)


def test_notification_feed_requires_a_bound_hospital(make_staff):
    connected, code, _ = async_to_sync(_connect)(make_staff('drifter'), '/ws/notifications/')
    assert (connected, code) == (False, 4003)


def test_notification_feed_sends_inbox_on_connect(receiver_staff):
    connected, _, payload = async_to_sync(_connect)(receiver_staff, '/ws/notifications/')
    assert connected
    assert payload['type'] == 'notifications'
    assert payload['hospitalId'] == 'REG-A'
    assert payload['unread'] == 0


def test_notification_feed_answers_refresh_and_bad_frames(receiver_staff):
    assert async_to_sync(_refresh)(receiver_staff, '{"type": "refresh"}')['type'] == 'notifications'
    assert async_to_sync(_refresh)(receiver_staff, 'not json') == {'type': 'error', 'code': 4000, 'message': 'invalid_json'}


def test_group_names_are_layer_safe():
    assert notifications_group('REG A/1') == 'notifications.REG_A_1'
    assert len(notifications_group('x' * 200)) <= 90


def test_publish_waits_for_commit_and_survives_layer_failure(monkeypatch, django_capture_on_commit_callbacks):
    class _BrokenLayer:
        async def group_send(self, group, event):
            raise RuntimeError('layer down')

    warnings = []
    monkeypatch.setattr(broadcast, 'get_channel_layer', lambda: _BrokenLayer())
    monkeypatch.setattr(broadcast.logger, 'warning', lambda msg, *args, **kw: warnings.append(msg % args))
    with django_capture_on_commit_callbacks(execute=False) as callbacks:
        publish_on_commit('resources.REG-A', {'type': 'resources.changed'})
    assert len(callbacks) == 1
    assert warnings == []

    callbacks[0]()
    assert warnings == ['group_send to resources.REG-A failed']
