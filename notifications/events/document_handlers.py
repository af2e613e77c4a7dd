from .base_handler import BaseEventHandler
from notifications.models import NotificationLevel
from notifications.payloads import NotificationKind
from typing import Dict, Any
import logging

logger = logging.getLogger('notifications.events.document')


class DocumentRejectedHandler(BaseEventHandler):
    """A teacher's verification document was rejected by an admin"""

    def __init__(self):
        super().__init__()
        self.supported_events = ['document.rejected']
        self.kind = NotificationKind.DOCUMENT_REJECTED
        self.level = NotificationLevel.ERROR

    def get_template_data(self, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'Name': event_payload.get('full_name', ''),
            'DocumentType': event_payload.get('document_type', ''),
            'Reason': event_payload.get('reason', ''),
        }

    def get_payload(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'document_type': event_payload.get('document_type'),
            'reason': event_payload.get('reason'),
        }

    def get_action(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, str]:
        return {'action_url': '/teacher/documents', 'action_text': 'Upload again'}

    def get_content(self, event_type: str, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'title': f"{context['DocumentType']} rejected",
            'body': f"Hi {context['Name']}, your {context['DocumentType']} was rejected: {context['Reason']}. "
                    f"Please upload a new copy.",
        }
