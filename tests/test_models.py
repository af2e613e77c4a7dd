from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase
from notifications.models import (
    Channel, DeliveryStatus, Notification, NotificationStatus, NotificationTrigger,
    validate_placeholder_names,
)
from notifications.payloads import (
    BookingPayload, NotificationKind, PayloadError, PaymentPayload, VerificationCallPayload,
    describe, parse_payload, payload_to_dict, scheduled_event_at,
)
from notifications.rendering import find_placeholders, highlight_segments, render
from notifications.services.directory import ModelRecipientDirectory
from notifications.targeting import (
    AllRecipients, ByRoles, ByUserIds, TargetingError, TargetingSpec, resolve,
)
from notifications.utils.exceptions import DirectoryUnavailableError, UnknownRecipientWarning
from tests.factories import create_notification, create_recipient, create_record, create_teachers, create_template


class TemplateRenderingTest(SimpleTestCase):

    def test_partial_values_leave_placeholder_intact(self):
        result = render("Hello [Name], your balance is [Amount]", {'Name': 'Aisha'})

        self.assertEqual(result.text, "Hello Aisha, your balance is [Amount]")
        self.assertEqual(result.unresolved, frozenset({'Amount'}))

    def test_all_values_resolved(self):
        result = render("Hello [Name], your balance is [Amount]", {'Name': 'Aisha', 'Amount': '$40'})

        self.assertEqual(result.text, "Hello Aisha, your balance is $40")
        self.assertEqual(result.unresolved, frozenset())

    def test_rendering_is_idempotent_on_its_own_output(self):
        values = {'Name': 'Aisha'}
        once = render("Hello [Name], your balance is [Amount]", values)
        twice = render(once.text, values)

        self.assertEqual(once, twice)

    def test_value_looking_like_placeholder_is_not_rescanned(self):
        result = render("[Greeting] [Name]", {'Greeting': '[Name]', 'Name': 'Aisha'})

        self.assertEqual(result.text, "[Name] Aisha")
        self.assertEqual(result.unresolved, frozenset())

    def test_unknown_values_are_ignored(self):
        result = render("Hi [Name]", {'Name': 'Sam', 'Unused': 'x'})
        self.assertEqual(result.text, "Hi Sam")

    def test_find_placeholders_keeps_first_appearance_order(self):
        self.assertEqual(find_placeholders("[B] and [A] then [B]"), ['B', 'A'])

    def test_highlight_segments_marks_placeholders(self):
        segments = highlight_segments("Hello Aisha, your balance is [Amount]")

        self.assertEqual(segments, [
            {'text': 'Hello Aisha, your balance is ', 'placeholder': False},
            {'text': '[Amount]', 'placeholder': True},
        ])


class PayloadTest(SimpleTestCase):

    def test_verification_call_requires_scheduled_at(self):
        with self.assertRaises(PayloadError):
            parse_payload(NotificationKind.VERIFICATION_CALL.value, {'meeting_url': 'https://meet.example.com'})

    def test_verification_call_parses_timestamp(self):
        payload = parse_payload('verification_call', {'scheduled_at': '2026-03-01T10:00:00Z'})

        self.assertIsInstance(payload, VerificationCallPayload)
        self.assertEqual(payload.scheduled_at, datetime(2026, 3, 1, 10, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(scheduled_event_at(payload), payload.scheduled_at)

    def test_naive_timestamp_is_treated_as_utc(self):
        payload = parse_payload('booking', {'booking_id': 7, 'session_at': '2026-03-01T10:00:00'})

        self.assertIsInstance(payload, BookingPayload)
        self.assertEqual(payload.booking_id, '7')
        self.assertEqual(payload.session_at.tzinfo, dt_timezone.utc)

    def test_payment_amount_is_decimal_and_serializes_as_string(self):
        payload = parse_payload('payment', {'amount': 12.5, 'currency': 'USD'})

        self.assertIsInstance(payload, PaymentPayload)
        self.assertEqual(payload.amount, Decimal('12.5'))
        self.assertEqual(payload_to_dict(payload), {'amount': '12.5', 'currency': 'USD'})
        self.assertEqual(describe(payload), '12.5 USD')

    def test_invalid_amount_rejected(self):
        with self.assertRaises(PayloadError):
            parse_payload('payment', {'amount': 'lots', 'currency': 'USD'})

    def test_unknown_kind_rejected(self):
        with self.assertRaises(ValueError):
            parse_payload('carrier_pigeon', {})

    def test_general_payload_ignores_extra_keys(self):
        payload = parse_payload('general', {'anything': 1})
        self.assertEqual(payload_to_dict(payload), {})
        self.assertIsNone(scheduled_event_at(payload))


class TargetingSpecTest(SimpleTestCase):

    def test_from_dict_reads_only_active_mode(self):
        spec = TargetingSpec.from_dict({'mode': 'roles', 'roles': ['teacher'], 'user_ids': ['stale-1']})

        self.assertIsInstance(spec, ByRoles)
        self.assertEqual(spec.roles, frozenset({'teacher'}))

    def test_round_trip_of_each_mode(self):
        for spec in (TargetingSpec.all(), TargetingSpec.by_roles(['student', 'teacher']),
                     TargetingSpec.by_user_ids([3, 1])):
            self.assertEqual(TargetingSpec.from_dict(spec.to_dict()), spec)

    def test_unknown_mode_rejected(self):
        with self.assertRaises(TargetingError):
            TargetingSpec.from_dict({'mode': 'everyone'})

    def test_user_ids_are_normalized_to_strings(self):
        spec = TargetingSpec.by_user_ids([1, '1', 2])
        self.assertEqual(spec.user_ids, frozenset({'1', '2'}))


class RecipientResolutionTest(TestCase):

    def setUp(self):
        self.teachers = create_teachers()
        create_recipient('teacher-gone', is_active=False)
        create_recipient('student-1', role='student')
        self.directory = ModelRecipientDirectory()

    def test_roles_resolve_to_active_members_only(self):
        resolution = resolve(TargetingSpec.by_roles(['teacher']), self.directory)

        self.assertEqual(resolution.recipient_ids, {'teacher-1', 'teacher-2', 'teacher-3'})

    def test_empty_roles_resolve_to_nobody(self):
        resolution = resolve(TargetingSpec.by_roles([]), self.directory)
        self.assertEqual(resolution.recipient_ids, frozenset())

    def test_all_resolves_every_active_recipient(self):
        resolution = resolve(AllRecipients(), self.directory)
        self.assertEqual(resolution.recipient_ids, {'teacher-1', 'teacher-2', 'teacher-3', 'student-1'})

    def test_unknown_and_inactive_ids_are_dropped_with_warning(self):
        with self.assertWarns(UnknownRecipientWarning):
            resolution = resolve(
                TargetingSpec.by_user_ids(['teacher-1', 'teacher-gone', 'nobody']), self.directory
            )

        self.assertEqual(resolution.recipient_ids, {'teacher-1'})
        self.assertEqual(resolution.unknown_count, 2)

    def test_result_has_no_duplicates_across_roles(self):
        resolution = resolve(TargetingSpec.by_roles(['teacher', 'student', 'teacher']), self.directory)
        self.assertEqual(len(resolution.recipient_ids), 4)

    def test_directory_failure_propagates(self):
        class BrokenDirectory(ModelRecipientDirectory):
            def list_by_role(self, role):
                raise DirectoryUnavailableError("down")

        with self.assertRaises(DirectoryUnavailableError):
            resolve(TargetingSpec.by_roles(['teacher']), BrokenDirectory())

    def test_explicit_empty_list_does_not_hit_directory(self):
        resolution = resolve(ByUserIds(), None)
        self.assertEqual(resolution.recipient_ids, frozenset())


class NotificationModelsTest(TestCase):

    def test_notification_defaults(self):
        notification = create_notification()

        self.assertEqual(notification.status, NotificationStatus.DRAFT.value)
        self.assertFalse(notification.is_locked)
        self.assertIsInstance(notification.targeting_spec, ByRoles)

    def test_notification_locked_once_sending(self):
        notification = create_notification(status=NotificationStatus.SENDING.value)
        self.assertTrue(notification.is_locked)

    def test_delivery_record_defaults(self):
        record = create_record(create_notification(), 'teacher-1')

        self.assertEqual(record.status, DeliveryStatus.PENDING.value)
        self.assertEqual(record.version, 1)
        self.assertFalse(record.is_terminal)

    def test_one_record_per_recipient_and_channel(self):
        from django.db import IntegrityError, transaction
        notification = create_notification()
        create_record(notification, 'teacher-1', Channel.EMAIL.value)

        with self.assertRaises(IntegrityError), transaction.atomic():
            create_record(notification, 'teacher-1', Channel.EMAIL.value)

    def test_template_render_reports_unresolved(self):
        template = create_template()
        title, body, unresolved = template.render({'Name': 'Aisha'})

        self.assertEqual(title, 'Wallet balance')
        self.assertEqual(body, 'Hello Aisha, your balance is [Amount]')
        self.assertEqual(unresolved, {'Amount'})

    def test_template_soft_delete_hides_it(self):
        from notifications.models import NotificationTemplate
        create_template()
        NotificationTemplate.objects.all().delete()

        self.assertEqual(NotificationTemplate.objects.count(), 0)
        self.assertEqual(NotificationTemplate.objects.all_with_deleted().count(), 1)

    def test_placeholder_names_validated(self):
        self.assertEqual(validate_placeholder_names(['Name', 'Amount_2']), ['Name', 'Amount_2'])
        with self.assertRaises(ValidationError):
            validate_placeholder_names(['bad name'])
        with self.assertRaises(ValidationError):
            validate_placeholder_names('Name')

    def test_trigger_conditions_match_payload(self):
        trigger = NotificationTrigger(
            name='Large payouts', event='payout.processed', template=create_template(),
            conditions={'currency': 'USD'},
        )

        self.assertTrue(trigger.matches({'currency': 'USD', 'amount': 10}))
        self.assertFalse(trigger.matches({'currency': 'EUR'}))

    def test_notification_ordering_newest_first(self):
        first = create_notification(title='first')
        second = create_notification(title='second')
        Notification.objects.filter(pk=first.pk).update(created_at=second.created_at - timedelta(minutes=1))

        self.assertEqual(list(Notification.objects.values_list('title', flat=True)), ['second', 'first'])
