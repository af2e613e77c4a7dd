from abc import ABC, abstractmethod
from django.db import transaction
from typing import Dict, List, Any, Optional
import logging
from notifications.models import Channel, NotificationLevel
from notifications.payloads import NotificationKind, PayloadError
from notifications.targeting import TargetingError, TargetingSpec
from notifications.utils.exceptions import DirectoryUnavailableError, NotificationError

logger = logging.getLogger('notifications.events')


class BaseEventHandler(ABC):
    """Base class for all event handlers"""

    def __init__(self):
        self.supported_events = []
        self.default_channels = [Channel.INAPP, Channel.EMAIL]
        self.level = NotificationLevel.INFO
        self.kind = NotificationKind.GENERAL

    def can_handle(self, event_type: str) -> bool:
        return event_type in self.supported_events

    def get_default_channels(self, event_type: str) -> List[str]:
        return [channel.value for channel in self.default_channels]

    def get_recipient_ids(self, event_payload: Dict[str, Any]) -> List[str]:
        """Extract recipient ids from event payload"""
        ids = event_payload.get('recipient_ids') or [event_payload.get('user_id')]
        return [str(i) for i in ids if i]

    def get_targeting(self, event_payload: Dict[str, Any]):
        return TargetingSpec.by_user_ids(self.get_recipient_ids(event_payload))

    @abstractmethod
    def get_template_data(self, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        """Placeholder values extracted from the event payload"""

    def get_payload(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        """Kind-specific notification payload"""
        return {}

    @abstractmethod
    def get_content(self, event_type: str, context: Dict[str, Any]) -> Dict[str, Any]:
        """Default title, body and action link when no trigger template is configured"""

    def get_action(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, str]:
        return {}

    def process_event(self, event: Dict[str, Any], trigger=None):
        """Create and dispatch the notification for one event; returns it or None"""
        from notifications.services.notification_service import create_from_template, create_notification

        event_type = event['event_type']
        event_payload = event.get('payload') or {}
        if not self.can_handle(event_type):
            logger.info(f"Handler {self.__class__.__name__} cannot handle {event_type}")
            return None

        targeting = self.get_targeting(event_payload)
        context = self.get_template_data(event_payload)
        extra = {
            'kind': self.kind.value,
            'payload': self.get_payload(event_type, event_payload),
            'created_by': f"event:{event_type}",
            'send_now': True,
        }
        extra.update(self.get_action(event_type, event_payload))

        try:
            with transaction.atomic():
                if trigger is not None:
                    notification = create_from_template(
                        trigger.template, context, targeting, trigger.channels or self.get_default_channels(event_type),
                        level=trigger.level, **extra
                    )
                else:
                    content = self.get_content(event_type, context)
                    notification = create_notification(
                        content['title'], content['body'], targeting, self.get_default_channels(event_type),
                        level=self.level.value, **extra
                    )
        except DirectoryUnavailableError:
            logger.warning(f"Directory unavailable while processing {event_type}, event left for retry")
            raise
        except (NotificationError, PayloadError, TargetingError, ValueError) as e:
            logger.error(f"Error processing event {event_type}: {str(e)}")
            return None

        logger.info(f"Processed event {event_type}: notification {notification.id} ({notification.status})")
        return notification
