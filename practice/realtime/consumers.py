import json

from channels.generic.websocket import AsyncWebsocketConsumer

from practice.services.realtime import GROUP


class UpdatesConsumer(AsyncWebsocketConsumer):
    """Relays inbox and survey events to the desktop shell."""

    async def connect(self):
        await self.channel_layer.group_add(GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(GROUP, self.channel_name)

    # event: {"type": "inbox.message", "practitionerId": ..., "conversationId": ..., "messageId": ...}
    async def inbox_message(self, event):
        await self.send(json.dumps(event))

    # event: {"type": "survey.synced", "synced": int}
    async def survey_synced(self, event):
        await self.send(json.dumps(event))
