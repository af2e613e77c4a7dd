from django.core.management.base import BaseCommand
from notifications.services.notification_service import send_due_notifications


class Command(BaseCommand):
    help = 'Dispatch scheduled notifications whose time has come'

    def handle(self, *args, **options):
        dispatched = send_due_notifications()
        self.stdout.write(self.style.SUCCESS(f'Dispatched {dispatched} scheduled notifications'))
