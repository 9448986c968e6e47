"""
Test settings: in-memory SQLite, local-only sync, fast password hashing.
"""
import os

# base.py refuses to start without a database URL
os.environ.setdefault('DATABASE_URL', 'sqlite://:memory:')

from .base import *

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    },
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

DOCUMENT_SYNC_BACKEND = 'core.sync.NullSync'

LOGGING['root']['level'] = 'WARNING'
