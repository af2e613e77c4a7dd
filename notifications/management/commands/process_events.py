import json
import logging
import sys
from django.core.management.base import BaseCommand, CommandError
from notifications.events.registry import event_registry
from notifications.utils.exceptions import DirectoryUnavailableError

logger = logging.getLogger('notifications.management')


class Command(BaseCommand):
    help = 'Process domain events given as JSON lines ({"event_type": ..., "payload": {...}})'

    def add_arguments(self, parser):
        parser.add_argument(
            'source',
            nargs='?',
            default='-',
            help='File with one JSON event per line, or - for stdin'
        )
        parser.add_argument(
            '--max-events',
            type=int,
            default=None,
            help='Maximum number of events to process'
        )

    def handle(self, *args, **options):
        source = options['source']
        max_events = options['max_events']

        try:
            stream = sys.stdin if source == '-' else open(source, encoding='utf-8')
        except OSError as e:
            raise CommandError(f'Cannot open {source}: {e}')

        processed_count = 0
        error_count = 0
        try:
            for line_number, line in enumerate(stream, start=1):
                if max_events and processed_count + error_count >= max_events:
                    self.stdout.write(self.style.SUCCESS(f'Reached max events limit ({max_events})'))
                    break
                line = line.strip()
                if not line:
                    continue

                try:
                    event_data = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.error(f'Invalid JSON on line {line_number}: {e}')
                    error_count += 1
                    continue

                self.stdout.write(f'Processing event: {event_data.get("event_type")}')
                try:
                    notification = event_registry.process_event(event_data)
                except DirectoryUnavailableError as e:
                    logger.error(f'Directory unavailable on line {line_number}: {e}')
                    notification = None
                if notification:
                    processed_count += 1
                    self.stdout.write(self.style.SUCCESS(f'✓ Notification {notification.id} ({notification.status})'))
                else:
                    error_count += 1
                    self.stdout.write(self.style.ERROR('✗ Failed to process event'))
        finally:
            if stream is not sys.stdin:
                stream.close()

        self.stdout.write(
            self.style.SUCCESS(f'Done. Processed: {processed_count}, Errors: {error_count}')
        )
