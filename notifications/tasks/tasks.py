from celery import shared_task
from asgiref.sync import async_to_sync
from django.db.models import F
from notifications.models import Channel, DeliveryRecord, DeliveryStatus, NotificationStatus
from notifications.orchestrator.dispatcher import Dispatcher, delivery_content
from notifications.orchestrator.logger import log_event
from notifications.orchestrator.tracker import DeliveryTracker
from notifications.services.directory import get_directory
from notifications.utils.exceptions import ChannelAdapterFailure, DirectoryUnavailableError
import logging

logger = logging.getLogger('notifications.tasks')


@shared_task(bind=True, max_retries=3)
def deliver_record_task(self, record_id: str):
    """Hand one delivery record to its channel adapter and record the outcome"""
    try:
        record = DeliveryRecord.objects.select_related('notification').get(id=record_id)
    except DeliveryRecord.DoesNotExist:
        logger.warning(f"Delivery record {record_id} no longer exists")
        return None

    notification = record.notification
    if record.status != DeliveryStatus.PENDING.value:
        logger.info(f"Delivery record {record_id} already {record.status}, skipping")
        return record.status
    if notification.status != NotificationStatus.SENDING.value:
        logger.info(f"Notification {notification.id} is {notification.status}, delivery of {record_id} skipped")
        return record.status

    try:
        recipient = get_directory().get(record.recipient_id)
    except DirectoryUnavailableError as exc:
        if self.request.retries >= self.max_retries:
            logger.error(f"Directory still unavailable after {self.request.retries} retries, failing {record_id}")
            _record_failure(record, 'directory_unavailable')
            return DeliveryStatus.FAILED.value
        logger.warning(f"Directory unavailable while delivering {record_id}, retrying")
        raise self.retry(countdown=60 * (2 ** self.request.retries), exc=exc)

    if recipient is None or not recipient.active:
        _record_failure(record, 'recipient_unavailable')
        return DeliveryStatus.FAILED.value

    DeliveryRecord.objects.filter(pk=record.pk).update(attempts=F('attempts') + 1)
    handler = Dispatcher.get_handler(record.channel)
    content = delivery_content(notification)
    context = {'notification_id': str(notification.id), 'record_id': str(record.id)}

    if record.channel == Channel.INAPP.value:
        # The stored record is the in-app delivery; the push only shortcuts the next poll.
        DeliveryTracker.mark_delivered(record.id)
        record.refresh_from_db()
        from notifications.serializers import FeedEntrySerializer
        context['entry'] = dict(FeedEntrySerializer(record).data)
        result = async_to_sync(handler.send)(recipient, content, context)
        if not result['success']:
            logger.warning(f"In-app push for {record_id} failed, recipient will see it on next poll: {result['error']}")
        return record.status

    result = async_to_sync(handler.send)(recipient, content, context)
    if result['success']:
        DeliveryTracker.mark_delivered(record.id)
        return DeliveryStatus.DELIVERED.value

    failure = ChannelAdapterFailure(record.channel, record.recipient_id, result['error'])
    _record_failure(record, failure.reason)
    return DeliveryStatus.FAILED.value


def _record_failure(record, reason):
    if DeliveryTracker.mark_failed(record.id, reason):
        log_event('delivery_failed', record.notification_id, {
            'record_id': str(record.id),
            'channel': record.channel,
            'recipient_id': record.recipient_id,
            'error': reason,
        })


@shared_task
def send_due_notifications_task():
    from notifications.services.notification_service import send_due_notifications
    return send_due_notifications()


@shared_task(bind=True, max_retries=3)
def process_event_task(self, event: dict):
    """Turn one domain event into a notification; a directory outage retries the whole event"""
    from notifications.events.registry import event_registry
    try:
        notification = event_registry.process_event(event)
    except DirectoryUnavailableError as exc:
        logger.warning(f"Directory unavailable for event {event.get('event_type')}, retrying")
        raise self.retry(countdown=60 * (2 ** self.request.retries), exc=exc)
    return str(notification.id) if notification else None
