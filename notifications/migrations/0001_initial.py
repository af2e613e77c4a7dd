# Generated initial migration for notification models

from django.db import migrations, models
import django.db.models.deletion
import notifications.models
import uuid
from django.db.models import JSONField


CHANNEL_CHOICES = [('in-app', 'INAPP'), ('email', 'EMAIL'), ('sms', 'SMS')]
LEVEL_CHOICES = [('info', 'INFO'), ('success', 'SUCCESS'), ('warning', 'WARNING'), ('error', 'ERROR')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Recipient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.CharField(max_length=64, unique=True)),
                ('name', models.CharField(max_length=255)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=32)),
                ('role', models.CharField(choices=[('super-admin', 'SUPER_ADMIN'), ('admin', 'ADMIN'), ('teacher', 'TEACHER'), ('student', 'STUDENT'), ('guardian', 'GUARDIAN')], max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'indexes': [models.Index(fields=['role', 'is_active'], name='recipient_role_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='NotificationTemplate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255, unique=True)),
                ('title', models.CharField(max_length=255)),
                ('body', models.TextField()),
                ('category', models.CharField(default='general', max_length=50)),
                ('placeholders', JSONField(default=list, validators=[notifications.models.validate_placeholder_names])),
                ('is_active', models.BooleanField(default=True)),
                ('is_deleted', models.BooleanField(default=False)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'indexes': [models.Index(fields=['category', 'is_active'], name='template_category_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('body', models.TextField()),
                ('kind', models.CharField(choices=[('general', 'GENERAL'), ('booking', 'BOOKING'), ('verification_call', 'VERIFICATION_CALL'), ('document_rejected', 'DOCUMENT_REJECTED'), ('payment', 'PAYMENT')], default='general', max_length=30)),
                ('level', models.CharField(choices=LEVEL_CHOICES, default='info', max_length=10)),
                ('payload', JSONField(blank=True, default=dict)),
                ('action_url', models.CharField(blank=True, max_length=500)),
                ('action_text', models.CharField(blank=True, max_length=100)),
                ('image_url', models.CharField(blank=True, max_length=500)),
                ('targeting', JSONField(default=dict)),
                ('channels', JSONField(default=list)),
                ('scheduled_at', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('draft', 'DRAFT'), ('scheduled', 'SCHEDULED'), ('sending', 'SENDING'), ('sent', 'SENT'), ('failed', 'FAILED')], default='draft', max_length=10)),
                ('created_by', models.CharField(blank=True, max_length=64)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='notifications.notificationtemplate')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'scheduled_at'], name='notification_status_sched_idx'),
                    models.Index(fields=['created_at'], name='notification_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DeliveryRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('recipient_id', models.CharField(max_length=64)),
                ('channel', models.CharField(choices=CHANNEL_CHOICES, max_length=10)),
                ('status', models.CharField(choices=[('pending', 'PENDING'), ('delivered', 'DELIVERED'), ('read', 'READ'), ('failed', 'FAILED')], default='pending', max_length=10)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('failure_reason', models.TextField(blank=True, null=True)),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('version', models.PositiveIntegerField(default=1)),
                ('hidden_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('notification', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='deliveries', to='notifications.notification')),
            ],
            options={
                'unique_together': {('notification', 'recipient_id', 'channel')},
                'indexes': [
                    models.Index(fields=['recipient_id', 'channel', 'updated_at'], name='delivery_feed_idx'),
                    models.Index(fields=['notification', 'status'], name='delivery_notif_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='NotificationTrigger',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('event', models.CharField(db_index=True, max_length=100)),
                ('channels', JSONField(default=list)),
                ('level', models.CharField(choices=LEVEL_CHOICES, default='info', max_length=10)),
                ('conditions', JSONField(blank=True, default=dict)),
                ('is_active', models.BooleanField(default=True)),
                ('created_by', models.CharField(blank=True, max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('template', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='triggers', to='notifications.notificationtemplate')),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('notification_id', models.UUIDField(blank=True, null=True)),
                ('event', models.CharField(max_length=100)),
                ('details', JSONField(default=dict)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('user_id', models.CharField(blank=True, max_length=64)),
            ],
            options={
                'ordering': ['-timestamp'],
                'indexes': [models.Index(fields=['notification_id', 'timestamp'], name='audit_notification_time_idx')],
            },
        ),
    ]
