from .base_handler import BaseHandler
from channels.layers import get_channel_layer
import logging

logger = logging.getLogger('notifications.channels.inapp')

PUSH_EVENT_TYPE = 'notification.push'


def recipient_group(recipient_id) -> str:
    return f"user_{recipient_id}"


class InAppHandler(BaseHandler):
    """
    Handler for in-app notifications.

    The delivery record itself is what the recipient's feed reads, so storing it is
    the delivery. The websocket push only shortcuts the next poll.
    """
    channel = 'in-app'

    async def publish(self, recipient_id: str, entry: dict) -> dict:
        channel_layer = get_channel_layer()
        if not channel_layer:
            logger.error("Channel layer not configured, push skipped")
            return {'success': False, 'error': 'Channel layer not configured', 'response': None}

        group_name = recipient_group(recipient_id)
        try:
            await channel_layer.group_send(group_name, {'type': PUSH_EVENT_TYPE, 'entry': entry})
        except Exception as e:
            logger.error(f"Failed to push to group {group_name}: {str(e)}")
            return {'success': False, 'error': str(e), 'response': None}

        logger.info(f"Pushed notification {entry.get('id')} to group {group_name}")
        return {'success': True, 'response': {'group': group_name, 'version': entry.get('version')}}

    async def send(self, recipient, content: dict, context: dict) -> dict:
        entry = context.get('entry')
        if entry is None:
            return self.failure(recipient, 'No feed entry to publish')
        return await self.publish(recipient.id, entry)
