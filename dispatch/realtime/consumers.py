import json

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from dispatch.models import Driver, Hospital, User
from dispatch.services import events


def _groups_for(user) -> list[str]:
    """Event groups a user's socket listens on, by role."""
    if user.role == User.ROLE_USER:
        return [events.user_group(user.id)]
    if user.role == User.ROLE_HOSPITAL:
        hospital_id = Hospital.objects.filter(user=user, is_active=True).values_list('id', flat=True).first()
        return [events.hospital_group(hospital_id)] if hospital_id else []
    if user.role == User.ROLE_DRIVER:
        driver_id = Driver.objects.filter(user=user, is_active=True).values_list('id', flat=True).first()
        return [events.driver_group(driver_id)] if driver_id else []
    return []


class DispatchConsumer(AsyncWebsocketConsumer):
    """Push dispatch events to requesters, hospitals and drivers.

    Read-only: clients never send on this socket, every state change goes
    through the HTTP API and is fanned out here after commit.
    """

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return
        self.groups_joined = await sync_to_async(_groups_for)(user)
        if not self.groups_joined:
            await self.close(code=4003)
            return
        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "groups": self.groups_joined}))

    async def disconnect(self, close_code):
        for group in getattr(self, "groups_joined", []):
            await self.channel_layer.group_discard(group, self.channel_name)

    async def dispatch_event(self, event):
        # event: {"type": "dispatch.event", "event": "request.accepted", "ts": "...", "payload": {...}}
        await self.send(json.dumps({
            "type": event["event"],
            "ts": event.get("ts"),
            "payload": event.get("payload", {}),
        }))
