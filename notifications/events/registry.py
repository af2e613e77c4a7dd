from .session_handlers import SessionScheduledHandler, VerificationCallHandler
from .document_handlers import DocumentRejectedHandler
from .payment_handlers import PaymentProcessedHandler
from notifications.models import NotificationTrigger
from typing import Dict, List, Any, Optional
import logging

logger = logging.getLogger('notifications.events.registry')


class EventRegistry:
    """Registry for all event handlers"""

    def __init__(self):
        self.handlers = {}
        self._register_handlers()

    def _register_handlers(self):
        """Register all event handlers"""
        handlers = [
            SessionScheduledHandler(),
            VerificationCallHandler(),
            DocumentRejectedHandler(),
            PaymentProcessedHandler(),
        ]

        for handler in handlers:
            for event_type in handler.supported_events:
                self.handlers[event_type] = handler

        logger.info(f"Registered {len(self.handlers)} event types with {len(handlers)} handlers")

    def get_handler(self, event_type: str):
        return self.handlers.get(event_type)

    def get_supported_events(self) -> List[str]:
        return list(self.handlers.keys())

    @staticmethod
    def find_trigger(event_type: str, payload: Dict[str, Any]):
        """First active trigger for the event whose conditions match the payload"""
        triggers = NotificationTrigger.objects.filter(
            event=event_type, is_active=True, template__is_active=True, template__is_deleted=False,
        ).select_related('template')
        for trigger in triggers:
            if trigger.matches(payload):
                return trigger
        return None

    def process_event(self, event: Dict[str, Any]) -> Optional[Any]:
        """Process an event using appropriate handler"""
        event_type = event.get('event_type')
        if not event_type:
            logger.warning("Event missing event_type field")
            return None

        handler = self.get_handler(event_type)
        if not handler:
            logger.warning(f"No handler found for event type: {event_type}")
            return None

        trigger = self.find_trigger(event_type, event.get('payload') or {})
        if trigger:
            logger.info(f"Using trigger '{trigger.name}' for {event_type}")
        return handler.process_event(event, trigger=trigger)

    def get_event_info(self, event_type: str) -> Optional[Dict[str, Any]]:
        handler = self.get_handler(event_type)
        if not handler:
            return None

        return {
            'handler_class': handler.__class__.__name__,
            'default_channels': handler.get_default_channels(event_type),
            'kind': handler.kind.value,
            'supported': True
        }


# Global registry instance
event_registry = EventRegistry()
