from celery import Celery
from celery.schedules import crontab
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'django_config.settings')

app = Celery('storage_copy')
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks in storage_copy module
app.autodiscover_tasks(['storage_copy'])

app.conf.beat_schedule = {
    'cleanup-old-copy-operations': {
        'task': 'storage_copy.tasks.cleanup_old_copy_operations_task',
        'schedule': crontab(hour=3, minute=0),
    },
    'send-pending-copy-callbacks': {
        'task': 'storage_copy.tasks.send_pending_copy_callbacks_task',
        'schedule': crontab(minute='*/5'),
    },
}
