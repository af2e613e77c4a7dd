# Tasks package

from .tasks import deliver_record_task, send_due_notifications_task, process_event_task

__all__ = [
    'deliver_record_task',
    'send_due_notifications_task',
    'process_event_task',
]
