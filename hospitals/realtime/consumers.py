"""
Live notification inbox.

Each connection is subscribed to its hospital's ``notifications.<id>``
group.  The full ordered inbox is sent on connect and again on every
``notifications.changed`` event; clients never apply deltas.
"""
import json
import logging

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from hospitals.services.broadcast import notifications_group
from hospitals.services.notifications import inbox_snapshot

logger = logging.getLogger(__name__)


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Uniform error frame.
    App codes: 4xxx client errors, 5xxx server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


class NotificationsConsumer(AsyncWebsocketConsumer):
    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return

        self.hospital_id = getattr(user, "hospital_id", None)
        if not self.hospital_id:
            await self.close(code=4003)
            return

        self.group_name = notifications_group(self.hospital_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self._push_inbox()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return
        if not isinstance(data, dict) or data.get("type") != "refresh":
            await _ws_error(self, 4002, "unsupported_type")
            return
        await self._push_inbox()

    async def _push_inbox(self):
        try:
            payload = await sync_to_async(inbox_snapshot)(self.hospital_id)
        except Exception:
            logger.warning("could not load inbox for %s", self.hospital_id, exc_info=True)
            await _ws_error(self, 5000, "server_error")
            return
        await self.send(json.dumps(payload))

    # group_send handler for {"type": "notifications.changed", "hospitalId": ...}
    async def notifications_changed(self, event):
        await self._push_inbox()
