from datetime import timedelta
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase
from notifications.models import (
    DeliveryRecord, DeliveryStatus, Notification, NotificationStatus, NotificationTemplate, NotificationTrigger,
)
from notifications.orchestrator.tracker import DeliveryTracker
from notifications.services import notification_service
from notifications.targeting import TargetingSpec
from tests.factories import ADMIN_ID, create_recipient, create_teachers, create_template, make_token


class AuthenticatedAPITestCase(APITestCase):

    def authenticate(self, user_id, role='teacher', client=None):
        client = client or self.client
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {make_token(user_id, role=role)}")
        return client

    def as_admin(self):
        return self.authenticate(ADMIN_ID, role='admin')


class PermissionTest(AuthenticatedAPITestCase):

    def test_feed_requires_token(self):
        response = self.client.get(reverse('notifications:feed'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_expired_token_rejected(self):
        token = make_token('teacher-1', expires_in=timedelta(minutes=-5))
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = self.client.get(reverse('notifications:feed'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_endpoints_require_admin_role(self):
        self.authenticate('teacher-1')

        response = self.client.get(reverse('notifications:admin-notification-list'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_super_admin_allowed(self):
        self.authenticate('root', role='super-admin')

        response = self.client.get(reverse('notifications:admin-notification-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class AdminNotificationAPITest(AuthenticatedAPITestCase):

    def setUp(self):
        create_teachers()
        self.as_admin()
        self.url = reverse('notifications:admin-notification-list')

    def payload(self, **overrides):
        data = {
            'title': 'Staff meeting',
            'body': 'The staff meeting moves to Friday.',
            'targeting': {'mode': 'roles', 'roles': ['teacher']},
            'channels': ['in-app', 'email'],
        }
        data.update(overrides)
        return data

    def test_create_draft(self):
        response = self.client.post(self.url, self.payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], NotificationStatus.DRAFT.value)
        self.assertEqual(response.data['created_by'], ADMIN_ID)
        self.assertEqual(response.data['stats']['total'], 0)
        self.assertFalse(DeliveryRecord.objects.exists())

    def test_create_and_send_now(self):
        response = self.client.post(self.url, self.payload(send_now=True), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], NotificationStatus.SENDING.value)
        self.assertEqual(response.data['stats']['pending'], 6)

    def test_past_schedule_is_a_field_error(self):
        past = (timezone.now() - timedelta(minutes=5)).isoformat()
        response = self.client.post(self.url, self.payload(scheduled_at=past), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('scheduled_at', response.data)
        self.assertFalse(Notification.objects.exists())

    def test_future_schedule(self):
        future = (timezone.now() + timedelta(days=1)).isoformat()
        response = self.client.post(self.url, self.payload(scheduled_at=future), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], NotificationStatus.SCHEDULED.value)
        self.assertFalse(DeliveryRecord.objects.exists())

    def test_create_from_template(self):
        create_template()
        data = self.payload(template_name='Balance Reminder', values={'Name': 'Aisha'})
        del data['title'], data['body']

        response = self.client.post(self.url, data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['body'], 'Hello Aisha, your balance is [Amount]')
        self.assertIsNotNone(response.data['template'])

    def test_unknown_template_rejected(self):
        data = self.payload(template_name='Missing')
        response = self.client.post(self.url, data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('template_name', response.data)

    def test_title_and_body_required_without_template(self):
        response = self.client.post(self.url, self.payload(title=''), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_targeting_rejected(self):
        response = self.client.post(self.url, self.payload(targeting={'mode': 'nobody'}), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('targeting', response.data)

    def test_payload_checked_against_kind(self):
        response = self.client.post(self.url, self.payload(kind='verification_call', payload={}), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('payload', response.data)

    def test_send_then_send_again_conflicts(self):
        notification_id = self.client.post(self.url, self.payload(), format='json').data['id']
        send_url = reverse('notifications:admin-notification-send', args=[notification_id])

        first = self.client.post(send_url)
        second = self.client.post(send_url)

        self.assertEqual(first.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(first.data['queued'], 6)
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)

    def test_resend_requeues_failed_records(self):
        notification_id = self.client.post(self.url, self.payload(send_now=True), format='json').data['id']
        for record in DeliveryRecord.objects.filter(notification_id=notification_id):
            DeliveryTracker.mark_failed(record.id, 'smtp_timeout')

        response = self.client.post(reverse('notifications:admin-notification-resend', args=[notification_id]))

        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(response.data['queued'], 6)
        self.assertEqual(response.data['status'], NotificationStatus.SENDING.value)

    def test_edit_locked_notification_conflicts(self):
        notification_id = self.client.post(self.url, self.payload(send_now=True), format='json').data['id']
        detail = reverse('notifications:admin-notification-detail', args=[notification_id])

        response = self.client.patch(detail, {'title': 'Changed'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_edit_draft(self):
        notification_id = self.client.post(self.url, self.payload(), format='json').data['id']
        detail = reverse('notifications:admin-notification-detail', args=[notification_id])

        response = self.client.patch(detail, {'title': 'Changed'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'Changed')

    def test_cancel_scheduled(self):
        future = (timezone.now() + timedelta(days=1)).isoformat()
        notification_id = self.client.post(self.url, self.payload(scheduled_at=future), format='json').data['id']

        response = self.client.post(reverse('notifications:admin-notification-cancel', args=[notification_id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], NotificationStatus.DRAFT.value)

    def test_delete_with_open_records_conflicts(self):
        notification_id = self.client.post(self.url, self.payload(send_now=True), format='json').data['id']
        detail = reverse('notifications:admin-notification-detail', args=[notification_id])

        response = self.client.delete(detail)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Notification.objects.filter(pk=notification_id).exists())

    def test_notification_analytics(self):
        notification_id = self.client.post(self.url, self.payload(send_now=True), format='json').data['id']
        records = DeliveryRecord.objects.filter(notification_id=notification_id)
        DeliveryTracker.mark_read(records.filter(channel='in-app').first().id)
        DeliveryTracker.mark_failed(records.filter(channel='email').first().id, 'bounced')

        response = self.client.get(reverse('notifications:admin-notification-analytics', args=[notification_id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 6)
        self.assertEqual(response.data['read'], 1)
        self.assertEqual(response.data['failed'], 1)
        self.assertEqual(response.data['open_rate'], round(1 / 6, 4))

    def test_overall_analytics(self):
        self.client.post(self.url, self.payload(send_now=True), format='json')

        response = self.client.get(reverse('notifications:admin-analytics'), {'days': 7})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 6)
        self.assertEqual(response.data['notifications'], {NotificationStatus.SENDING.value: 1})

    def test_list_filters_by_status(self):
        self.client.post(self.url, self.payload(), format='json')
        self.client.post(self.url, self.payload(send_now=True), format='json')

        response = self.client.get(self.url, {'status': NotificationStatus.DRAFT.value})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)


class TemplateAPITest(AuthenticatedAPITestCase):

    def setUp(self):
        self.as_admin()

    def test_create_template_fills_placeholders(self):
        response = self.client.post(reverse('notifications:admin-template-list'), {
            'name': 'Balance Reminder',
            'title': 'Wallet balance',
            'body': 'Hello [Name], your balance is [Amount]',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['placeholders'], ['Name', 'Amount'])

    def test_undeclared_placeholder_rejected(self):
        response = self.client.post(reverse('notifications:admin-template-list'), {
            'name': 'Balance Reminder',
            'title': 'Wallet balance',
            'body': 'Hello [Name], your balance is [Amount]',
            'placeholders': ['Name'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('placeholders', response.data)

    def test_preview_highlights_unresolved(self):
        response = self.client.post(reverse('notifications:admin-template-preview'), {
            'title': 'Wallet balance',
            'body': 'Hello [Name], your balance is [Amount]',
            'values': {'Name': 'Aisha'},
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['body'], 'Hello Aisha, your balance is [Amount]')
        self.assertEqual(response.data['unresolved'], ['Amount'])
        self.assertEqual(response.data['body_segments'][-1], {'text': '[Amount]', 'placeholder': True})

    def test_delete_is_soft(self):
        template = create_template()

        response = self.client.delete(reverse('notifications:admin-template-detail', args=[template.id]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(NotificationTemplate.objects.filter(pk=template.pk).exists())
        self.assertTrue(NotificationTemplate.objects.all_with_deleted().filter(pk=template.pk).exists())

    def test_create_trigger(self):
        create_template()

        response = self.client.post(reverse('notifications:admin-trigger-list'), {
            'name': 'Payment reminder',
            'event': 'payment.processed',
            'template': 'Balance Reminder',
            'channels': ['in-app'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(NotificationTrigger.objects.get().created_by, ADMIN_ID)

    def test_trigger_for_unknown_event_rejected(self):
        create_template()

        response = self.client.post(reverse('notifications:admin-trigger-list'), {
            'name': 'Mystery',
            'event': 'weather.changed',
            'template': 'Balance Reminder',
            'channels': ['in-app'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('event', response.data)


class FeedAPITest(AuthenticatedAPITestCase):

    def setUp(self):
        create_recipient('student-1', role='student')
        create_recipient('student-2', role='student')
        self.notification = notification_service.create_notification(
            'Session booked', 'Math with Ms. Lee on Monday.',
            TargetingSpec.by_roles(['student']), ['in-app', 'email'], send_now=True,
        )
        self.authenticate('student-1')

    def test_feed_lists_own_in_app_entries(self):
        response = self.client.get(reverse('notifications:feed'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
        entry = response.data['results'][0]
        self.assertEqual(entry['id'], str(self.notification.id))
        self.assertEqual(entry['title'], 'Session booked')
        self.assertEqual(entry['message'], 'Math with Ms. Lee on Monday.')
        self.assertFalse(entry['deleted'])
        self.assertEqual(response.data['unread_count'], 1)
        self.assertTrue(response.data['cursor'])

    def test_feed_rejects_bad_cursor(self):
        response = self.client.get(reverse('notifications:feed'), {'since': 'yesterday'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_read(self):
        response = self.client.post(reverse('notifications:mark-read', args=[self.notification.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], DeliveryStatus.READ.value)
        self.assertIsNotNone(response.data['read_at'])
        other = DeliveryRecord.objects.get(notification=self.notification, recipient_id='student-2', channel='in-app')
        self.assertEqual(other.status, DeliveryStatus.PENDING.value)

    def test_mark_read_twice_keeps_read_at(self):
        url = reverse('notifications:mark-read', args=[self.notification.id])
        first = self.client.post(url)
        second = self.client.post(url)

        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data['read_at'], second.data['read_at'])
        self.assertEqual(first.data['version'], second.data['version'])

    def test_mark_read_of_someone_elses_notification(self):
        other = notification_service.create_notification(
            'Private', 'Only for student-2', TargetingSpec.by_user_ids(['student-2']), ['in-app'], send_now=True,
        )

        response = self.client.post(reverse('notifications:mark-read', args=[other.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_hides_entry_and_leaves_tombstone(self):
        feed = self.client.get(reverse('notifications:feed'))
        cursor = feed.data['cursor']

        response = self.client.delete(reverse('notifications:feed-entry', args=[self.notification.id]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        full = self.client.get(reverse('notifications:feed'))
        self.assertEqual(full.data['results'], [])
        self.assertEqual(full.data['unread_count'], 0)

        changes = self.client.get(reverse('notifications:feed'), {'since': cursor})
        self.assertEqual(len(changes.data['results']), 1)
        self.assertTrue(changes.data['results'][0]['deleted'])

    def test_read_all(self):
        notification_service.create_notification(
            'Second', 'Body', TargetingSpec.by_user_ids(['student-1']), ['in-app'], send_now=True,
        )

        response = self.client.post(reverse('notifications:read-all'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['unread_count'], 0)
        self.assertEqual(response.data['marked'], 3)

    def test_unread_count(self):
        response = self.client.get(reverse('notifications:unread-count'))
        self.assertEqual(response.data, {'unread_count': 1})

    def test_other_recipients_are_isolated(self):
        client = self.authenticate('student-2', client=APIClient())
        client.post(reverse('notifications:mark-read', args=[self.notification.id]))

        response = self.client.get(reverse('notifications:unread-count'))
        self.assertEqual(response.data, {'unread_count': 1})
