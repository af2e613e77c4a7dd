import logging

logger = logging.getLogger('notifications.channels')


class BaseHandler:
    """
    A delivery medium. ``send`` never raises: it returns
    ``{'success': True, 'response': ...}`` or ``{'success': False, 'error': ...}``.
    """
    channel = None

    def __init__(self, credentials: dict = None):
        self.credentials = credentials or {}

    async def send(self, recipient, content: dict, context: dict) -> dict:
        """
        Args:
            recipient: RecipientIdentity of the addressee
            content: rendered notification (title, body, action_url, action_text, level, kind, summary)
            context: delivery metadata (notification_id, record_id, entry)
        """
        raise NotImplementedError

    def failure(self, recipient, error: str) -> dict:
        logger.error(f"{self.channel} delivery to {recipient.id} failed: {error}")
        return {'success': False, 'error': error, 'response': None}
