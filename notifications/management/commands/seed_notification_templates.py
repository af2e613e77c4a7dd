from django.core.management.base import BaseCommand
from notifications.models import Channel, NotificationLevel, NotificationTemplate, NotificationTrigger
from notifications.payloads import NotificationKind
from notifications.rendering import find_placeholders

TEMPLATES = [
    {
        'name': 'Session Scheduled',
        'category': NotificationKind.BOOKING.value,
        'title': 'New [Subject] session',
        'body': '[TeacherName] and [StudentName] have a [Subject] session on [SessionAt].',
        'event': 'session.scheduled',
        'channels': [Channel.INAPP.value, Channel.EMAIL.value],
        'level': NotificationLevel.INFO.value,
    },
    {
        'name': 'Verification Call Scheduled',
        'category': NotificationKind.VERIFICATION_CALL.value,
        'title': 'Your verification call is booked',
        'body': 'Hi [Name], your verification call is on [ScheduledAt] via [Platform]. '
                'The join link opens 30 minutes before the call.',
        'event': 'verification_call.scheduled',
        'channels': [Channel.INAPP.value, Channel.EMAIL.value, Channel.SMS.value],
        'level': NotificationLevel.WARNING.value,
    },
    {
        'name': 'Document Rejected',
        'category': NotificationKind.DOCUMENT_REJECTED.value,
        'title': '[DocumentType] needs attention',
        'body': 'Hi [Name], your [DocumentType] was rejected: [Reason]. Please upload a new copy.',
        'event': 'document.rejected',
        'channels': [Channel.INAPP.value, Channel.EMAIL.value],
        'level': NotificationLevel.ERROR.value,
    },
    {
        'name': 'Payment Received',
        'category': NotificationKind.PAYMENT.value,
        'title': 'Payment received',
        'body': 'Hi [Name], we received your payment of [Amount] [Currency].',
        'event': 'payment.processed',
        'channels': [Channel.INAPP.value, Channel.EMAIL.value],
        'level': NotificationLevel.SUCCESS.value,
    },
    {
        'name': 'Balance Reminder',
        'category': NotificationKind.GENERAL.value,
        'title': 'Wallet balance',
        'body': 'Hello [Name], your balance is [Amount]',
    },
]


class Command(BaseCommand):
    help = 'Create the default notification templates and, optionally, their event triggers'

    def add_arguments(self, parser):
        parser.add_argument(
            '--overwrite',
            action='store_true',
            help='Overwrite existing templates'
        )
        parser.add_argument(
            '--with-triggers',
            action='store_true',
            help='Also bind each event template to its event'
        )

    def handle(self, *args, **options):
        created = 0
        updated = 0
        triggers = 0

        for entry in TEMPLATES:
            defaults = {
                'title': entry['title'],
                'body': entry['body'],
                'category': entry['category'],
                'placeholders': find_placeholders(entry['title'] + ' ' + entry['body']),
                'is_active': True,
            }
            template = NotificationTemplate.objects.filter(name=entry['name']).first()
            if template is None:
                template = NotificationTemplate.objects.create(name=entry['name'], **defaults)
                created += 1
            elif options['overwrite']:
                for key, value in defaults.items():
                    setattr(template, key, value)
                template.save()
                updated += 1
            else:
                self.stdout.write(self.style.WARNING(f"Template '{entry['name']}' already exists, skipping"))

            if options['with_triggers'] and entry.get('event'):
                _, was_created = NotificationTrigger.objects.get_or_create(
                    event=entry['event'],
                    template=template,
                    defaults={
                        'name': entry['name'],
                        'channels': entry['channels'],
                        'level': entry['level'],
                        'created_by': 'seed',
                    }
                )
                triggers += int(was_created)

        self.stdout.write(
            self.style.SUCCESS(f'Template setup complete. Created: {created}, Updated: {updated}, Triggers: {triggers}')
        )
