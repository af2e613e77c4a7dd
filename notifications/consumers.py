import json
import logging
from channels.generic.websocket import AsyncWebsocketConsumer
from channels.db import database_sync_to_async
from django.core.exceptions import ValidationError
from django.utils import timezone

from notifications.channels.inapp_handler import recipient_group

logger = logging.getLogger('notifications.consumers')


class NotificationConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer for real-time in-app notifications.

    Pushed entries carry the same shape as the feed API. Clients may send
    ``{"type": "mark_read", "id": <notification id>}``; everything else is ignored.
    """

    async def connect(self):
        self.user_id = self.scope.get('user_id')
        self.group_name = None

        if not self.user_id:
            logger.warning("WebSocket rejected: no authenticated user")
            await self.close(code=4001)  # Unauthorized
            return

        self.group_name = recipient_group(self.user_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"WebSocket connected for user {self.user_id}")

        await self.send(text_data=json.dumps({
            'type': 'connection_established',
            'user_id': self.user_id,
            'unread_count': await self.get_unread_count(),
            'timestamp': timezone.now().isoformat(),
        }))

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            logger.info(f"WebSocket disconnected for user {self.user_id}")

    async def receive(self, text_data=None, bytes_data=None):
        try:
            data = json.loads(text_data or '{}')
        except json.JSONDecodeError:
            await self.send(text_data=json.dumps({'type': 'error', 'message': 'Invalid JSON'}))
            return

        if data.get('type') == 'mark_read' and data.get('id'):
            found = await self.mark_read(data['id'])
            if not found:
                await self.send(text_data=json.dumps({'type': 'error', 'message': 'Notification not found'}))
        elif data.get('type') == 'ping':
            await self.send(text_data=json.dumps({'type': 'pong', 'timestamp': timezone.now().isoformat()}))

    async def notification_push(self, event):
        """Handler for ``notification.push`` group events"""
        await self.send(text_data=json.dumps({'type': 'notification', 'entry': event['entry']}))

    @database_sync_to_async
    def get_unread_count(self):
        from notifications.services.notification_service import unread_count
        return unread_count(self.user_id)

    @database_sync_to_async
    def mark_read(self, notification_id):
        from notifications.models import DeliveryRecord
        from notifications.services.notification_service import mark_read
        try:
            mark_read(notification_id, self.user_id)
            return True
        except (DeliveryRecord.DoesNotExist, ValidationError) as e:
            logger.warning(f"mark_read over websocket failed for {notification_id}: {str(e)}")
            return False
