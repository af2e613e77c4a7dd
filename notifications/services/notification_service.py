"""
Notification operations shared by the admin API, the recipient feed, domain
event handlers and the scheduled sweep.
"""
from asgiref.sync import async_to_sync
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from datetime import timedelta
import logging

from notifications.channels.inapp_handler import InAppHandler
from notifications.models import (
    Channel, DeliveryRecord, DeliveryStatus, Notification, NotificationLevel,
    NotificationStatus, NotificationTemplate,
)
from notifications.orchestrator.dispatcher import Dispatcher
from notifications.orchestrator.logger import log_event
from notifications.orchestrator.tracker import DeliveryTracker, failure_rate, open_rate
from notifications.orchestrator.validator import validate_channels, validate_schedule
from notifications.payloads import NotificationKind, parse_payload, payload_to_dict
from notifications.targeting import TargetingSpec
from notifications.utils.exceptions import DirectoryUnavailableError, NotificationLockedError

logger = logging.getLogger('notifications.service')

CONTENT_FIELDS = ('title', 'body', 'kind', 'level', 'payload', 'action_url', 'action_text',
                  'image_url', 'targeting', 'channels')


def create_notification(title, body, targeting, channels, kind=NotificationKind.GENERAL.value,
                        payload=None, level=NotificationLevel.INFO.value, action_url='',
                        action_text='', image_url='', scheduled_at=None, template=None,
                        created_by='', send_now=False):
    """
    Create a notification from literal content.

    ``targeting`` is a TargetingSpec variant or its serialized form. The payload is
    validated against ``kind`` before anything is stored. With ``scheduled_at`` the
    notification is scheduled; with ``send_now`` it is dispatched immediately;
    otherwise it stays a draft.
    """
    if isinstance(targeting, dict):
        targeting = TargetingSpec.from_dict(targeting)
    channels = validate_channels(channels)
    typed_payload = parse_payload(kind, payload)
    if scheduled_at is not None:
        validate_schedule(scheduled_at)

    notification = Notification.objects.create(
        title=title,
        body=body,
        kind=NotificationKind(kind).value,
        level=NotificationLevel(level).value,
        payload=payload_to_dict(typed_payload),
        action_url=action_url or '',
        action_text=action_text or '',
        image_url=image_url or '',
        targeting=targeting.to_dict(),
        channels=channels,
        template=template,
        created_by=created_by or '',
    )
    log_event('created', notification.id, {'kind': notification.kind, 'channels': channels}, user_id=created_by)

    if scheduled_at is not None:
        Dispatcher.dispatch(notification, scheduled_at=scheduled_at, user_id=created_by)
    elif send_now:
        Dispatcher.dispatch(notification, user_id=created_by)
    return notification


def create_from_template(template, values, targeting, channels, **extra):
    """
    Render a template once with ``values`` and create the notification from it.
    ``template`` may be a NotificationTemplate or its name.
    """
    if isinstance(template, str):
        template = NotificationTemplate.objects.get(name=template, is_active=True)
    title, body, unresolved = template.render(values or {})
    if unresolved:
        logger.warning(f"Template '{template.name}' rendered with unresolved placeholders: {sorted(unresolved)}")
    extra.setdefault('kind', template.category if template.category in {k.value for k in NotificationKind}
                     else NotificationKind.GENERAL.value)
    return create_notification(title, body, targeting, channels, template=template, **extra)


def update_notification(notification, user_id=None, **changes):
    """Content edits are only allowed before sending starts"""
    if notification.is_locked:
        raise NotificationLockedError(f"Notification {notification.id} is {notification.status} and can no longer be edited")
    scheduled_at = changes.pop('scheduled_at', None)
    if 'targeting' in changes and not isinstance(changes['targeting'], dict):
        changes['targeting'] = changes['targeting'].to_dict()
    if 'channels' in changes:
        changes['channels'] = validate_channels(changes['channels'])
    if 'payload' in changes or 'kind' in changes:
        kind = changes.get('kind', notification.kind)
        changes['payload'] = payload_to_dict(parse_payload(kind, changes.get('payload', notification.payload)))

    for field in CONTENT_FIELDS:
        if field in changes:
            setattr(notification, field, changes[field])
    notification.save()
    log_event('updated', notification.id, {'fields': sorted(changes)}, user_id=user_id)

    if scheduled_at is not None:
        Dispatcher.dispatch(notification, scheduled_at=scheduled_at, user_id=user_id)
    return notification


def send_notification(notification, resend=False, user_id=None):
    return Dispatcher.dispatch(notification, resend=resend, user_id=user_id)


def schedule_notification(notification, scheduled_at, user_id=None):
    return Dispatcher.dispatch(notification, scheduled_at=scheduled_at, user_id=user_id)


def cancel_scheduled(notification, user_id=None):
    """Return a scheduled notification to draft"""
    updated = Notification.objects.filter(pk=notification.pk, status=NotificationStatus.SCHEDULED.value).update(
        status=NotificationStatus.DRAFT.value, scheduled_at=None, updated_at=timezone.now(),
    )
    if not updated:
        raise NotificationLockedError(f"Notification {notification.id} is not scheduled")
    notification.refresh_from_db()
    log_event('cancelled', notification.id, {}, user_id=user_id)
    return notification


def send_due_notifications(now=None):
    """
    Dispatch every scheduled notification whose time has come. A notification
    whose dispatch fails stays scheduled and is picked up by the next sweep.
    """
    now = now or timezone.now()
    due = Notification.objects.filter(
        status=NotificationStatus.SCHEDULED.value, scheduled_at__lte=now,
    ).order_by('scheduled_at')

    dispatched = 0
    for notification in due:
        try:
            Dispatcher.dispatch(notification)
            dispatched += 1
        except DirectoryUnavailableError as e:
            logger.error(f"Scheduled notification {notification.id} deferred, directory unavailable: {str(e)}")
    if dispatched:
        logger.info(f"Scheduled sweep dispatched {dispatched} notifications")
    return dispatched


def delete_notification(notification, user_id=None):
    """Refused while any delivery record is still pending or delivered"""
    open_records = notification.deliveries.filter(
        status__in=[DeliveryStatus.PENDING.value, DeliveryStatus.DELIVERED.value]
    ).count()
    if open_records:
        raise NotificationLockedError(
            f"Notification {notification.id} still has {open_records} open delivery records"
        )
    notification_id = notification.id
    notification.delete()
    log_event('deleted', notification_id, {}, user_id=user_id)


def notification_analytics(notification) -> dict:
    stats = DeliveryTracker.aggregate(notification.id)
    stats['open_rate'] = open_rate(stats)
    stats['failure_rate'] = failure_rate(stats)
    stats['by_channel'] = {
        row['channel']: {key: row[key] for key in ('total', 'delivered', 'read', 'failed', 'pending')}
        for row in notification.deliveries.values('channel').annotate(
            total=Count('id'),
            pending=Count('id', filter=Q(status=DeliveryStatus.PENDING.value)),
            delivered=Count('id', filter=Q(status=DeliveryStatus.DELIVERED.value)),
            read=Count('id', filter=Q(status=DeliveryStatus.READ.value)),
            failed=Count('id', filter=Q(status=DeliveryStatus.FAILED.value)),
        )
    }
    return stats


def overall_analytics(days=30) -> dict:
    since = timezone.now() - timedelta(days=days)
    notifications = Notification.objects.filter(created_at__gte=since)
    stats = DeliveryRecord.objects.filter(notification__created_at__gte=since).aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=DeliveryStatus.PENDING.value)),
        delivered=Count('id', filter=Q(status=DeliveryStatus.DELIVERED.value)),
        read=Count('id', filter=Q(status=DeliveryStatus.READ.value)),
        failed=Count('id', filter=Q(status=DeliveryStatus.FAILED.value)),
    )
    stats = {key: value or 0 for key, value in stats.items()}
    stats['open_rate'] = open_rate(stats)
    stats['failure_rate'] = failure_rate(stats)
    stats['notifications'] = {
        row['status']: row['count'] for row in notifications.values('status').annotate(count=Count('id'))
    }
    stats['days'] = days
    return stats


# Recipient side

def feed_queryset(recipient_id):
    return DeliveryRecord.objects.filter(
        recipient_id=str(recipient_id), channel=Channel.INAPP.value,
    ).select_related('notification').order_by('-notification__created_at')


def feed_for_recipient(recipient_id, since=None):
    """
    Entries changed at or after ``since`` (tombstones included), or every visible
    entry for a full fetch. Returns ``(records, cursor)``.
    """
    now = timezone.now()
    records = feed_queryset(recipient_id)
    if since is not None:
        records = records.filter(updated_at__gte=since)
    else:
        records = records.filter(hidden_at__isnull=True)
    records = list(records)
    cursor = max([record.updated_at for record in records] + [since or now])
    return records, cursor


def unread_count(recipient_id) -> int:
    return feed_queryset(recipient_id).filter(hidden_at__isnull=True).exclude(
        status=DeliveryStatus.READ.value
    ).count()


def _feed_record(notification_id, recipient_id):
    return feed_queryset(recipient_id).get(notification_id=notification_id)


def mark_read(notification_id, recipient_id):
    """Mark the recipient's in-app copy read. Email and SMS records keep their own lifecycle."""
    record = _feed_record(notification_id, recipient_id)
    if DeliveryTracker.mark_read(record.id):
        _publish(record)
    return record


def mark_all_read(recipient_id) -> int:
    unread = feed_queryset(recipient_id).filter(
        status__in=[DeliveryStatus.PENDING.value, DeliveryStatus.DELIVERED.value],
    ).values_list('id', flat=True)
    marked = sum(1 for record_id in list(unread) if DeliveryTracker.mark_read(record_id))
    if marked:
        log_event('read_all', None, {'records': marked}, user_id=recipient_id)
    return marked


def hide_for_recipient(notification_id, recipient_id):
    record = _feed_record(notification_id, recipient_id)
    if DeliveryTracker.hide(record.id):
        record.refresh_from_db()
        _publish(record)
    return record


def _publish(record):
    """Push the refreshed entry to the recipient's other open clients after commit"""
    from notifications.serializers import FeedEntrySerializer
    record.refresh_from_db()
    entry = dict(FeedEntrySerializer(record).data)
    transaction.on_commit(
        lambda: async_to_sync(InAppHandler().publish)(record.recipient_id, entry)
    )
