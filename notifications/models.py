from django.db import models
from django.utils import timezone
from django.core.exceptions import ValidationError
from enum import Enum
import uuid
from django.db.models import JSONField
import logging

from notifications.payloads import NotificationKind

logger = logging.getLogger('notifications')


class Channel(Enum):
    INAPP = 'in-app'
    EMAIL = 'email'
    SMS = 'sms'


class NotificationLevel(Enum):
    INFO = 'info'
    SUCCESS = 'success'
    WARNING = 'warning'
    ERROR = 'error'


class NotificationStatus(Enum):
    DRAFT = 'draft'
    SCHEDULED = 'scheduled'
    SENDING = 'sending'
    SENT = 'sent'
    FAILED = 'failed'


class DeliveryStatus(Enum):
    PENDING = 'pending'
    DELIVERED = 'delivered'
    READ = 'read'
    FAILED = 'failed'


class RecipientRole(Enum):
    SUPER_ADMIN = 'super-admin'
    ADMIN = 'admin'
    TEACHER = 'teacher'
    STUDENT = 'student'
    GUARDIAN = 'guardian'


EDITABLE_STATUSES = (NotificationStatus.DRAFT.value, NotificationStatus.SCHEDULED.value)
TERMINAL_DELIVERY_STATUSES = (DeliveryStatus.READ.value, DeliveryStatus.FAILED.value)


def _choices(enum_cls):
    return [(tag.value, tag.name) for tag in enum_cls]


class SoftDeleteQuerySet(models.query.QuerySet):
    def delete(self):
        self.update(is_deleted=True, deleted_at=timezone.now())


class SoftDeleteManager(models.Manager):
    def get_queryset(self):
        return SoftDeleteQuerySet(self.model, using=self._db).filter(is_deleted=False)

    def all_with_deleted(self):
        return super().get_queryset()


def validate_placeholder_names(value):
    from notifications.rendering import PLACEHOLDER_NAME
    if not isinstance(value, list):
        raise ValidationError("Placeholders must be a list of names.")
    for name in value:
        if not isinstance(name, str) or not PLACEHOLDER_NAME.fullmatch(name):
            raise ValidationError(f"Invalid placeholder name: {name!r}")
    return value


class Recipient(models.Model):
    """Local copy of the identity directory: who can be targeted and how to reach them"""
    user_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    role = models.CharField(max_length=20, choices=_choices(RecipientRole))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['role', 'is_active'], name='recipient_role_active_idx')]

    def __str__(self):
        return f"{self.name} ({self.role})"


class NotificationTemplate(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    title = models.CharField(max_length=255)
    body = models.TextField()
    category = models.CharField(max_length=50, default=NotificationKind.GENERAL.value)
    placeholders = JSONField(default=list, validators=[validate_placeholder_names])  # e.g. ['Name', 'Amount']
    is_active = models.BooleanField(default=True)
    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SoftDeleteManager()

    class Meta:
        indexes = [models.Index(fields=['category', 'is_active'], name='template_category_active_idx')]

    def __str__(self):
        return self.name

    def render(self, values):
        """Render title and body with the same values; returns (title, body, unresolved)"""
        from notifications.rendering import render
        title = render(self.title, values)
        body = render(self.body, values)
        return title.text, body.text, title.unresolved | body.unresolved


class Notification(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    body = models.TextField()
    kind = models.CharField(max_length=30, choices=_choices(NotificationKind), default=NotificationKind.GENERAL.value)
    level = models.CharField(max_length=10, choices=_choices(NotificationLevel), default=NotificationLevel.INFO.value)
    payload = JSONField(default=dict, blank=True)
    action_url = models.CharField(max_length=500, blank=True)
    action_text = models.CharField(max_length=100, blank=True)
    image_url = models.CharField(max_length=500, blank=True)
    targeting = JSONField(default=dict)  # {'mode': 'roles', 'roles': ['teacher']}
    channels = JSONField(default=list)  # ['in-app', 'email']
    scheduled_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=_choices(NotificationStatus), default=NotificationStatus.DRAFT.value)
    template = models.ForeignKey(NotificationTemplate, null=True, blank=True, on_delete=models.SET_NULL, related_name='notifications')
    created_by = models.CharField(max_length=64, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'scheduled_at'], name='notification_status_sched_idx'),
            models.Index(fields=['created_at'], name='notification_created_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} [{self.status}]"

    @property
    def is_locked(self):
        """Content is frozen once sending has started; only status may change afterwards"""
        return self.status not in EDITABLE_STATUSES

    @property
    def targeting_spec(self):
        from notifications.targeting import TargetingSpec
        return TargetingSpec.from_dict(self.targeting)

    @property
    def typed_payload(self):
        from notifications.payloads import parse_payload
        return parse_payload(self.kind, self.payload)


class DeliveryRecord(models.Model):
    """One per (notification, recipient, channel); the unit of delivery and read tracking"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    notification = models.ForeignKey(Notification, on_delete=models.CASCADE, related_name='deliveries')
    recipient_id = models.CharField(max_length=64)
    channel = models.CharField(max_length=10, choices=_choices(Channel))
    status = models.CharField(max_length=10, choices=_choices(DeliveryStatus), default=DeliveryStatus.PENDING.value)
    delivered_at = models.DateTimeField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=0)
    version = models.PositiveIntegerField(default=1)  # bumped on every change the recipient can observe
    hidden_at = models.DateTimeField(null=True, blank=True)  # recipient removed it from their list
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('notification', 'recipient_id', 'channel')]
        indexes = [
            models.Index(fields=['recipient_id', 'channel', 'updated_at'], name='delivery_feed_idx'),
            models.Index(fields=['notification', 'status'], name='delivery_notif_status_idx'),
        ]

    def __str__(self):
        return f"{self.channel} to {self.recipient_id}: {self.status}"

    @property
    def is_terminal(self):
        return self.status in TERMINAL_DELIVERY_STATUSES


class NotificationTrigger(models.Model):
    """Binds a domain event name to the template used when that event fires"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    event = models.CharField(max_length=100, db_index=True)  # e.g. 'payment.processed'
    template = models.ForeignKey(NotificationTemplate, on_delete=models.PROTECT, related_name='triggers')
    channels = JSONField(default=list)
    level = models.CharField(max_length=10, choices=_choices(NotificationLevel), default=NotificationLevel.INFO.value)
    conditions = JSONField(default=dict, blank=True)  # payload key -> required value
    is_active = models.BooleanField(default=True)
    created_by = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.event})"

    def matches(self, payload):
        return all(str(payload.get(key)) == str(value) for key, value in self.conditions.items())


class AuditLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    notification_id = models.UUIDField(null=True, blank=True)
    event = models.CharField(max_length=100)  # e.g., 'dispatched', 'delivery_failed', 'cancelled'
    details = JSONField(default=dict)
    timestamp = models.DateTimeField(auto_now_add=True)
    user_id = models.CharField(max_length=64, blank=True)  # Who triggered

    class Meta:
        indexes = [models.Index(fields=['notification_id', 'timestamp'], name='audit_notification_time_idx')]
        ordering = ['-timestamp']
