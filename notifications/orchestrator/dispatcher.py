from django.db import transaction
from django.utils import timezone
import logging

from notifications.channels.email_handler import EmailHandler
from notifications.channels.inapp_handler import InAppHandler
from notifications.channels.sms_handler import SMSHandler
from notifications.models import (
    Channel, DeliveryRecord, DeliveryStatus, Notification, NotificationStatus, EDITABLE_STATUSES,
)
from notifications.orchestrator.logger import log_event
from notifications.orchestrator.tracker import DeliveryTracker
from notifications.orchestrator.validator import validate_channels, validate_schedule
from notifications.payloads import describe
from notifications.services.directory import get_directory
from notifications.targeting import resolve
from notifications.utils.exceptions import NotificationAlreadySentError

logger = logging.getLogger('notifications.orchestrator')

HANDLERS = {
    Channel.INAPP.value: InAppHandler,
    Channel.EMAIL.value: EmailHandler,
    Channel.SMS.value: SMSHandler,
}


def delivery_content(notification) -> dict:
    """The rendered message every channel adapter receives"""
    return {
        'title': notification.title,
        'body': notification.body,
        'action_url': notification.action_url,
        'action_text': notification.action_text,
        'level': notification.level,
        'kind': notification.kind,
        'summary': describe(notification.typed_payload),
    }


class Dispatcher:

    @staticmethod
    def get_handler(channel: str, credentials: dict = None):
        try:
            handler_cls = HANDLERS[channel]
        except KeyError:
            raise ValueError(f"Unsupported channel: {channel}")
        return handler_cls(credentials)

    @classmethod
    def dispatch(cls, notification, channels=None, scheduled_at=None, resend=False, directory=None, user_id=None):
        """
        Send ``notification`` now, or schedule it when ``scheduled_at`` is given.

        A schedule request must lie strictly in the future. Scheduling creates no
        delivery records: recipients are resolved when the sweep dispatches it.
        Immediate dispatch resolves recipients first, so a directory failure leaves
        nothing behind, then upserts one pending record per (recipient, channel)
        and enqueues the channel sends once the transaction commits.

        Returns the records that were (re)queued.
        """
        now = timezone.now()
        if scheduled_at is not None:
            validate_schedule(scheduled_at, now)
            return cls._schedule(notification, scheduled_at, user_id)

        if notification.status not in EDITABLE_STATUSES and not resend:
            raise NotificationAlreadySentError(
                f"Notification {notification.id} is {notification.status}; use resend to dispatch again"
            )
        channels = validate_channels(channels or notification.channels)

        resolution = resolve(notification.targeting_spec, directory or get_directory())

        with transaction.atomic():
            locked = Notification.objects.select_for_update().get(pk=notification.pk)
            if locked.status not in EDITABLE_STATUSES and not resend:
                raise NotificationAlreadySentError(f"Notification {notification.id} is {locked.status}")
            if resend:
                DeliveryTracker.reset_for_resend(locked)

            queued = []
            for recipient_id in sorted(resolution.recipient_ids):
                for channel in channels:
                    record, created = DeliveryRecord.objects.get_or_create(
                        notification=locked, recipient_id=recipient_id, channel=channel,
                    )
                    if record.status == DeliveryStatus.PENDING.value:
                        queued.append(record)

            locked.status = NotificationStatus.SENDING.value
            locked.channels = channels
            locked.save(update_fields=['status', 'channels', 'updated_at'])

            if not locked.deliveries.exists():
                Notification.objects.filter(pk=locked.pk).update(
                    status=NotificationStatus.SENT.value, sent_at=now,
                )
            elif not queued:
                DeliveryTracker.complete_notification(locked.pk)

            record_ids = [str(record.id) for record in queued]
            transaction.on_commit(lambda: cls._enqueue(record_ids))

        notification.refresh_from_db()
        log_event('resent' if resend else 'dispatched', notification.id, {
            'recipients': len(resolution.recipient_ids),
            'unknown_recipients': resolution.unknown_count,
            'channels': channels,
            'queued': len(queued),
        }, user_id=user_id)
        logger.info(f"Dispatched notification {notification.id}: {len(queued)} records queued on {channels}")
        return queued

    @staticmethod
    def _schedule(notification, scheduled_at, user_id=None):
        updated = Notification.objects.filter(pk=notification.pk, status__in=EDITABLE_STATUSES).update(
            status=NotificationStatus.SCHEDULED.value,
            scheduled_at=scheduled_at,
            updated_at=timezone.now(),
        )
        if not updated:
            raise NotificationAlreadySentError(f"Notification {notification.id} can no longer be scheduled")
        notification.refresh_from_db()
        log_event('scheduled', notification.id, {'scheduled_at': scheduled_at.isoformat()}, user_id=user_id)
        logger.info(f"Notification {notification.id} scheduled for {scheduled_at.isoformat()}")
        return []

    @staticmethod
    def _enqueue(record_ids):
        from notifications.tasks.tasks import deliver_record_task
        for record_id in record_ids:
            deliver_record_task.delay(record_id)
