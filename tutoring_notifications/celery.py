import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'tutoring_notifications.settings')

app = Celery('tutoring_notifications')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
