import json
import logging

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from hospitals.exceptions import NotFound
from hospitals.services.broadcast import resources_group
from hospitals.services.resources import get_snapshot

logger = logging.getLogger(__name__)


def _snapshot_payload(hospital_id: str) -> dict:
    return {"type": "resources", **get_snapshot(hospital_id).to_json()}


class ResourceConsumer(AsyncWebsocketConsumer):
    """Pushes a hospital's resource snapshot on connect and after each committed change."""

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return

        if not getattr(user, "hospital_id", None):
            await self.close(code=4003)
            return

        self.hospital_id = self.scope["url_route"]["kwargs"].get("hospital_id")
        try:
            payload = await sync_to_async(_snapshot_payload)(self.hospital_id)
        except NotFound:
            await self.close(code=4004)
            return

        self.group_name = resources_group(self.hospital_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps(payload))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def resources_changed(self, event):
        try:
            payload = await sync_to_async(_snapshot_payload)(self.hospital_id)
        except NotFound:
            await self.close(code=4004)
            return
        await self.send(json.dumps(payload))
