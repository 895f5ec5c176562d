import os
from celery import Celery
from celery.schedules import crontab

# set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'orgm.settings')

app = Celery('orgm')

# Keep celery related config under environment variables prefixed with CELERY_
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()


# Periodic task schedule
app.conf.beat_schedule = {
    'refresh-rnc-registry-monthly': {
        'task': 'rnc.tasks.refresh_rnc_registry',
        'schedule': crontab(
            day_of_month='1',           # First day of the month
            hour=4,                     # 4 AM
            minute=0,
        ),
        'options': {
            'expires': 3600 * 12,  # Task expires after 12 hours if not executed
        }
    },
}

# DGII publishes on Santo Domingo time
app.conf.timezone = 'America/Santo_Domingo'
