"""Test settings: file-backed SQLite, eager Celery, locmem e-mail."""

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

# A file database lets concurrency tests open one connection per thread
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'test.sqlite3',
        'TEST': {'NAME': BASE_DIR / 'test_slot_booking.sqlite3'},
        'OPTIONS': {
            'timeout': 20,
            'transaction_mode': 'IMMEDIATE',
        },
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

PAYMENT_API_KEY = ''
PAYMENT_WEBHOOK_SECRET = 'test-webhook-secret'
PAYMENT_PRICE_REFS = {'50': 'price_test_50', '75.50': 'price_test_75_50', '0': 'price_test_free'}

CLIENT_URL = 'http://testserver'
