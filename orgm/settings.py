"""
Django settings for the orgm toolkit.

Everything environment-specific is read from ORGM_* variables so the same
settings module serves the CLI, the Celery worker and the test suite.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'orgm-local-insecure-key')
DEBUG = os.getenv('DJANGO_DEBUG', '').lower() in ('true', '1', 'yes')
ALLOWED_HOSTS = []

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'rnc',
    'divisa',
]

# Root of the per-user configuration tree; the RNC store lives under bd/
ORGM_CONFIG_PATH = Path(
    os.getenv('ORGM_CONFIG_PATH', Path.home() / '.config' / 'orgm')
).expanduser()

ORGM_URLS = {
    'dgii': os.getenv('ORGM_DGII_URL', ''),
    'apis': os.getenv('ORGM_API_URL', ''),
}

ORGM_CLOUDFLARE = {
    'CF_ACCESS_CLIENT_ID': os.getenv('CF_ACCESS_CLIENT_ID', ''),
    'CF_ACCESS_CLIENT_SECRET': os.getenv('CF_ACCESS_CLIENT_SECRET', ''),
}

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ORGM_CONFIG_PATH / 'orgm.db',
    },
    'rnc': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ORGM_CONFIG_PATH / 'bd' / 'dgii.db',
    },
}

DATABASE_ROUTERS = ['orgm.routers.RegistryRouter']

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

USE_TZ = True
TIME_ZONE = 'America/Santo_Domingo'
LANGUAGE_CODE = 'es'

# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', CELERY_BROKER_URL)
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_ACCEPT_CONTENT = ['json']

LOG_LEVEL = os.getenv('ORGM_LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'divisa': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
        },
    },
}
