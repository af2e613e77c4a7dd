from .base_handler import BaseEventHandler
from notifications.models import NotificationLevel
from notifications.payloads import NotificationKind
from typing import Dict, Any
import logging

logger = logging.getLogger('notifications.events.payment')


class PaymentProcessedHandler(BaseEventHandler):
    """Guardian payments and teacher payouts"""

    def __init__(self):
        super().__init__()
        self.supported_events = ['payment.processed', 'payout.processed']
        self.kind = NotificationKind.PAYMENT
        self.level = NotificationLevel.SUCCESS

    def get_template_data(self, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'Name': event_payload.get('full_name', ''),
            'Amount': event_payload.get('amount', ''),
            'Currency': event_payload.get('currency', ''),
            'Reference': event_payload.get('reference', ''),
        }

    def get_payload(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'amount': event_payload.get('amount'),
            'currency': event_payload.get('currency'),
            'reference': event_payload.get('reference'),
        }

    def get_action(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, str]:
        if event_type == 'payout.processed':
            return {'action_url': '/teacher/earnings', 'action_text': 'View earnings'}
        return {'action_url': '/wallet', 'action_text': 'View wallet'}

    def get_content(self, event_type: str, context: Dict[str, Any]) -> Dict[str, Any]:
        if event_type == 'payout.processed':
            return {
                'title': 'Payout sent',
                'body': f"Hi {context['Name']}, a payout of {context['Amount']} {context['Currency']} "
                        f"is on its way (ref {context['Reference']}).",
            }
        return {
            'title': 'Payment received',
            'body': f"Hi {context['Name']}, we received your payment of {context['Amount']} {context['Currency']}.",
        }
