"""Test data builders shared by the test modules"""
from datetime import timedelta

import jwt
from django.conf import settings
from django.utils import timezone

from notifications.models import (
    Channel, DeliveryRecord, Notification, NotificationTemplate, Recipient, RecipientRole,
)
from notifications.services.directory import RecipientDirectory
from notifications.targeting import TargetingSpec
from notifications.utils.exceptions import DirectoryUnavailableError

ADMIN_ID = "admin-1"


class UnavailableDirectory(RecipientDirectory):
    """Directory whose every call fails as if the auth service were down"""

    def lookup(self, ids):
        raise DirectoryUnavailableError("auth service down")

    def list_by_role(self, role):
        raise DirectoryUnavailableError("auth service down")

    def list_active(self):
        raise DirectoryUnavailableError("auth service down")


def make_token(user_id, role=RecipientRole.TEACHER.value, expires_in=timedelta(hours=1)):
    payload = {
        'user': {'id': user_id, 'role': role},
        'exp': timezone.now() + expires_in,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_recipient(user_id, role=RecipientRole.TEACHER.value, name=None, email=None, phone='', is_active=True):
    return Recipient.objects.create(
        user_id=user_id,
        name=name or f"User {user_id}",
        email=email if email is not None else f"{user_id}@example.com",
        phone=phone,
        role=role,
        is_active=is_active,
    )


def create_teachers(count=3, **kwargs):
    return [create_recipient(f"teacher-{i}", **kwargs) for i in range(1, count + 1)]


def create_notification(targeting=None, channels=None, **kwargs):
    data = {
        'title': 'Staff meeting',
        'body': 'The staff meeting moves to Friday.',
        'targeting': (targeting or TargetingSpec.by_roles(['teacher'])).to_dict(),
        'channels': channels or [Channel.INAPP.value, Channel.EMAIL.value],
    }
    data.update(kwargs)
    return Notification.objects.create(**data)


def create_template(name='Balance Reminder', title='Wallet balance', body='Hello [Name], your balance is [Amount]', **kwargs):
    from notifications.rendering import find_placeholders
    kwargs.setdefault('placeholders', find_placeholders(f"{title} {body}"))
    return NotificationTemplate.objects.create(name=name, title=title, body=body, **kwargs)


def create_record(notification, recipient_id, channel=Channel.INAPP.value, **kwargs):
    return DeliveryRecord.objects.create(
        notification=notification, recipient_id=recipient_id, channel=channel, **kwargs
    )


def verification_payload(starts_in=timedelta(hours=2), meeting_url='https://meet.example.com/abc'):
    return {
        'scheduled_at': (timezone.now() + starts_in).isoformat(),
        'meeting_url': meeting_url,
        'platform': 'Google Meet',
    }
