from notifications.models import AuditLog
import logging

logger = logging.getLogger('notifications.orchestrator')

def log_event(event: str, notification_id, details: dict, request=None, user_id=None):
    if request is not None:
        user_id = getattr(request, 'user_id', None) or user_id

    AuditLog.objects.create(
        notification_id=notification_id,
        event=event,
        details=details,
        user_id=user_id or ''
    )
    logger.info(f"Audit: {event} for notification {notification_id} - {details}")
