from .base_handler import BaseEventHandler
from notifications.models import Channel, NotificationLevel
from notifications.payloads import NotificationKind, parse_payload
from typing import Dict, Any, List
import logging

logger = logging.getLogger('notifications.events.session')


class SessionScheduledHandler(BaseEventHandler):
    """A tutoring session was booked; both teacher and student (or guardian) hear about it"""

    def __init__(self):
        super().__init__()
        self.supported_events = ['session.scheduled', 'session.rescheduled']
        self.kind = NotificationKind.BOOKING

    def get_recipient_ids(self, event_payload: Dict[str, Any]) -> List[str]:
        ids = [event_payload.get(key) for key in ('teacher_id', 'student_id', 'guardian_id')]
        return [str(i) for i in ids if i]

    def get_template_data(self, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'TeacherName': event_payload.get('teacher_name', ''),
            'StudentName': event_payload.get('student_name', ''),
            'Subject': event_payload.get('subject', ''),
            'SessionAt': event_payload.get('session_at', ''),
        }

    def get_payload(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'booking_id': event_payload.get('booking_id'),
            'session_at': event_payload.get('session_at'),
            'meeting_url': event_payload.get('meeting_url'),
        }

    def get_action(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, str]:
        return {'action_url': f"/bookings/{event_payload.get('booking_id')}", 'action_text': 'View booking'}

    def get_content(self, event_type: str, context: Dict[str, Any]) -> Dict[str, Any]:
        verb = 'rescheduled' if event_type == 'session.rescheduled' else 'scheduled'
        return {
            'title': f"Session {verb}",
            'body': f"Your {context['Subject'] or 'tutoring'} session between {context['TeacherName']} "
                    f"and {context['StudentName']} is {verb} for {context['SessionAt']}.",
        }


class VerificationCallHandler(BaseEventHandler):
    """A teacher's verification call was booked; the join link opens shortly before it starts"""

    def __init__(self):
        super().__init__()
        self.supported_events = ['verification_call.scheduled']
        self.kind = NotificationKind.VERIFICATION_CALL
        self.level = NotificationLevel.WARNING
        self.default_channels = [Channel.INAPP, Channel.EMAIL, Channel.SMS]

    def get_recipient_ids(self, event_payload: Dict[str, Any]) -> List[str]:
        return [str(event_payload['teacher_id'])] if event_payload.get('teacher_id') else []

    def get_template_data(self, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'Name': event_payload.get('teacher_name', ''),
            'ScheduledAt': event_payload.get('scheduled_at', ''),
            'Platform': event_payload.get('platform', ''),
        }

    def get_payload(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'scheduled_at': event_payload.get('scheduled_at'),
            'meeting_url': event_payload.get('meeting_url'),
            'platform': event_payload.get('platform'),
        }

    def get_action(self, event_type: str, event_payload: Dict[str, Any]) -> Dict[str, str]:
        if not event_payload.get('meeting_url'):
            return {}
        return {'action_url': event_payload['meeting_url'], 'action_text': 'Join verification call'}

    def get_content(self, event_type: str, context: Dict[str, Any]) -> Dict[str, Any]:
        payload = parse_payload(self.kind.value, {'scheduled_at': context['ScheduledAt']})
        platform = f" on {context['Platform']}" if context['Platform'] else ''
        return {
            'title': 'Verification call scheduled',
            'body': f"Hi {context['Name']}, your verification call is booked for "
                    f"{payload.scheduled_at:%b %d, %Y %H:%M} UTC{platform}. "
                    f"The join link becomes available 30 minutes before the call.",
        }
