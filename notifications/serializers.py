import logging
from django.utils import timezone
from rest_framework import serializers
from notifications.models import (
    Channel, DeliveryRecord, Notification, NotificationLevel, NotificationTemplate,
    NotificationTrigger,
)
from notifications.payloads import NotificationKind, PayloadError, parse_payload, payload_to_dict
from notifications.rendering import find_placeholders, highlight_segments, render
from notifications.targeting import TargetingError, TargetingSpec

logger = logging.getLogger('notifications.api')

CHANNEL_CHOICES = [tag.value for tag in Channel]


class NotificationTemplateSerializer(serializers.ModelSerializer):

    class Meta:
        model = NotificationTemplate
        fields = ['id', 'name', 'title', 'body', 'category', 'placeholders', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        title = attrs.get('title', getattr(self.instance, 'title', ''))
        body = attrs.get('body', getattr(self.instance, 'body', ''))
        declared = attrs.get('placeholders', getattr(self.instance, 'placeholders', None))
        used = find_placeholders(title) + [name for name in find_placeholders(body) if name not in find_placeholders(title)]
        if declared is None:
            attrs['placeholders'] = used
        else:
            undeclared = [name for name in used if name not in declared]
            if undeclared:
                raise serializers.ValidationError({'placeholders': f"Undeclared placeholders used: {', '.join(undeclared)}"})
        return attrs


class TemplatePreviewSerializer(serializers.Serializer):
    title = serializers.CharField(allow_blank=True)
    body = serializers.CharField(allow_blank=True)
    values = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False, default=dict)

    def to_representation(self, instance):
        values = instance.get('values') or {}
        title = render(instance['title'], values)
        body = render(instance['body'], values)
        return {
            'title': title.text,
            'body': body.text,
            'unresolved': sorted(title.unresolved | body.unresolved),
            'title_segments': highlight_segments(title.text),
            'body_segments': highlight_segments(body.text),
        }


class TargetingField(serializers.JSONField):
    """Accepts and returns the serialized TargetingSpec"""

    def to_internal_value(self, data):
        data = super().to_internal_value(data)
        try:
            return TargetingSpec.from_dict(data)
        except (TargetingError, AttributeError) as e:
            raise serializers.ValidationError(str(e))

    def to_representation(self, value):
        return value


class NotificationSerializer(serializers.ModelSerializer):
    targeting = TargetingField()
    channels = serializers.ListField(child=serializers.ChoiceField(choices=CHANNEL_CHOICES), allow_empty=False)
    kind = serializers.ChoiceField(choices=[tag.value for tag in NotificationKind], default=NotificationKind.GENERAL.value)
    level = serializers.ChoiceField(choices=[tag.value for tag in NotificationLevel], default=NotificationLevel.INFO.value)
    template_name = serializers.CharField(write_only=True, required=False)
    values = serializers.DictField(write_only=True, required=False, default=dict)
    send_now = serializers.BooleanField(write_only=True, required=False, default=False)
    stats = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            'id', 'title', 'body', 'kind', 'level', 'payload', 'action_url', 'action_text', 'image_url',
            'targeting', 'channels', 'scheduled_at', 'status', 'template', 'created_by', 'sent_at',
            'created_at', 'updated_at', 'template_name', 'values', 'send_now', 'stats',
        ]
        read_only_fields = ['id', 'status', 'template', 'created_by', 'sent_at', 'created_at', 'updated_at']
        extra_kwargs = {
            'title': {'required': False},
            'body': {'required': False},
        }

    def get_stats(self, obj):
        from notifications.orchestrator.tracker import DeliveryTracker
        return DeliveryTracker.aggregate(obj.id)

    def validate_scheduled_at(self, value):
        if value is not None and value <= timezone.now():
            raise serializers.ValidationError("Scheduled time must be in the future.")
        return value

    def validate(self, attrs):
        if self.instance is not None and self.instance.is_locked:
            raise serializers.ValidationError(f"Notification is {self.instance.status} and can no longer be edited.")

        template_name = attrs.get('template_name')
        if template_name:
            if not NotificationTemplate.objects.filter(name=template_name, is_active=True).exists():
                raise serializers.ValidationError({'template_name': f"No active template named '{template_name}'."})
        elif self.instance is None and not (attrs.get('title') and attrs.get('body')):
            raise serializers.ValidationError("Either title and body or template_name is required.")

        if 'payload' in attrs or 'kind' in attrs:
            kind = attrs.get('kind', getattr(self.instance, 'kind', NotificationKind.GENERAL.value))
            payload = attrs.get('payload', getattr(self.instance, 'payload', {}))
            try:
                attrs['payload'] = payload_to_dict(parse_payload(kind, payload))
            except PayloadError as e:
                raise serializers.ValidationError({'payload': str(e)})
        return attrs


class NotificationTriggerSerializer(serializers.ModelSerializer):
    template = serializers.SlugRelatedField(slug_field='name', queryset=NotificationTemplate.objects.all())
    channels = serializers.ListField(child=serializers.ChoiceField(choices=CHANNEL_CHOICES), allow_empty=False)

    class Meta:
        model = NotificationTrigger
        fields = ['id', 'name', 'event', 'template', 'channels', 'level', 'conditions', 'is_active',
                  'created_by', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_by', 'created_at', 'updated_at']

    def validate_event(self, value):
        from notifications.events.registry import event_registry
        if value not in event_registry.get_supported_events():
            raise serializers.ValidationError(f"Unsupported event: {value}")
        return value


class FeedEntrySerializer(serializers.ModelSerializer):
    """One entry of a recipient's feed, keyed by notification id"""
    id = serializers.UUIDField(source='notification.id', read_only=True)
    type = serializers.CharField(source='notification.kind', read_only=True)
    kind = serializers.CharField(source='notification.kind', read_only=True)
    level = serializers.CharField(source='notification.level', read_only=True)
    title = serializers.CharField(source='notification.title', read_only=True)
    message = serializers.CharField(source='notification.body', read_only=True)
    action_url = serializers.CharField(source='notification.action_url', read_only=True)
    action_text = serializers.CharField(source='notification.action_text', read_only=True)
    image_url = serializers.CharField(source='notification.image_url', read_only=True)
    payload = serializers.JSONField(source='notification.payload', read_only=True)
    created_at = serializers.DateTimeField(source='notification.created_at', read_only=True)
    deleted = serializers.SerializerMethodField()

    class Meta:
        model = DeliveryRecord
        fields = [
            'id', 'type', 'kind', 'level', 'title', 'message', 'action_url', 'action_text', 'image_url',
            'payload', 'created_at', 'read_at', 'status', 'version', 'deleted',
        ]
        read_only_fields = fields

    def get_deleted(self, obj):
        return obj.hidden_at is not None
