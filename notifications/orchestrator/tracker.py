"""
Delivery record lifecycle.

Each record moves ``pending -> delivered -> read`` or ``pending -> failed``. A
transition is a single conditional UPDATE guarded by the set of states it may
leave from, so two workers racing on the same record resolve deterministically:
whichever commits first wins and the other updates zero rows.
"""
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone
import logging

from notifications.models import (
    DeliveryRecord, DeliveryStatus, Notification, NotificationStatus,
)

logger = logging.getLogger('notifications.tracker')

PENDING = DeliveryStatus.PENDING.value
DELIVERED = DeliveryStatus.DELIVERED.value
READ = DeliveryStatus.READ.value
FAILED = DeliveryStatus.FAILED.value


def open_rate(stats: dict) -> float:
    return round(stats['read'] / stats['total'], 4) if stats['total'] else 0.0


def failure_rate(stats: dict) -> float:
    return round(stats['failed'] / stats['total'], 4) if stats['total'] else 0.0


class DeliveryTracker:

    @staticmethod
    def _transition(record_id, allowed, **changes) -> bool:
        now = timezone.now()
        updated = DeliveryRecord.objects.filter(pk=record_id, status__in=allowed).update(
            version=F('version') + 1,
            updated_at=now,
            **changes,
        )
        if not updated:
            current = DeliveryRecord.objects.filter(pk=record_id).values_list('status', flat=True).first()
            logger.info(f"Transition to {changes['status']} ignored for record {record_id} (status {current})")
        return bool(updated)

    @classmethod
    def mark_delivered(cls, record_id) -> bool:
        done = cls._transition(record_id, [PENDING], status=DELIVERED, delivered_at=timezone.now())
        if done:
            cls.complete_notification(cls._notification_id(record_id))
        return done

    @classmethod
    def mark_failed(cls, record_id, reason: str) -> bool:
        done = cls._transition(record_id, [PENDING], status=FAILED, failure_reason=reason)
        if done:
            logger.warning(f"Delivery record {record_id} failed: {reason}")
            cls.complete_notification(cls._notification_id(record_id))
        return done

    @classmethod
    def mark_read(cls, record_id) -> bool:
        """Idempotent: an already-read record keeps its original read_at"""
        done = cls._transition(record_id, [PENDING, DELIVERED], status=READ, read_at=timezone.now())
        if done:
            cls.complete_notification(cls._notification_id(record_id))
        return done

    @staticmethod
    def hide(record_id) -> bool:
        """Recipient-side delete; the record is kept for analytics"""
        return bool(DeliveryRecord.objects.filter(pk=record_id, hidden_at__isnull=True).update(
            hidden_at=timezone.now(),
            version=F('version') + 1,
            updated_at=timezone.now(),
        ))

    @staticmethod
    def reset_for_resend(notification) -> int:
        """Failed records go back to pending; delivered and read ones are left alone"""
        return DeliveryRecord.objects.filter(notification=notification, status=FAILED).update(
            status=PENDING,
            failure_reason=None,
            version=F('version') + 1,
            updated_at=timezone.now(),
        )

    @staticmethod
    def _notification_id(record_id):
        return DeliveryRecord.objects.filter(pk=record_id).values_list('notification_id', flat=True).first()

    @staticmethod
    def aggregate(notification_id) -> dict:
        counts = DeliveryRecord.objects.filter(notification_id=notification_id).aggregate(
            total=Count('id'),
            pending=Count('id', filter=Q(status=PENDING)),
            delivered=Count('id', filter=Q(status=DELIVERED)),
            read=Count('id', filter=Q(status=READ)),
            failed=Count('id', filter=Q(status=FAILED)),
        )
        return {key: counts[key] or 0 for key in ('total', 'delivered', 'read', 'failed', 'pending')}

    @classmethod
    def complete_notification(cls, notification_id):
        """
        Move a sending notification to ``sent`` once no record is pending, or to
        ``failed`` when every record failed.
        """
        if notification_id is None:
            return None
        with transaction.atomic():
            stats = cls.aggregate(notification_id)
            if stats['pending'] or not stats['total']:
                return None
            status = NotificationStatus.FAILED.value if stats['failed'] == stats['total'] else NotificationStatus.SENT.value
            updated = Notification.objects.filter(
                pk=notification_id, status=NotificationStatus.SENDING.value
            ).update(status=status, sent_at=timezone.now(), updated_at=timezone.now())
        if updated:
            logger.info(f"Notification {notification_id} completed as {status}: {stats}")
            return status
        return None
