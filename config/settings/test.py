"""
Test settings for the Offers engine
Fast, isolated testing environment.
"""

import tempfile
from pathlib import Path

from .base import *  # noqa: F403

# ===============================================================================
# TEST FLAGS
# ===============================================================================

DEBUG = False
TESTING = True

# ===============================================================================
# TEST DATABASE (SQLite file so worker threads share it)
# ===============================================================================

# Concurrency tests run claims from a thread pool; each thread opens its own
# connection, which an in-memory database would not share.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': str(Path(tempfile.gettempdir()) / 'offers_dev.sqlite3'),
        'OPTIONS': {
            'timeout': 20,
            'transaction_mode': 'IMMEDIATE',
        },
        'TEST': {
            'NAME': str(Path(tempfile.gettempdir()) / 'offers_test.sqlite3'),
        },
    }
}

# ===============================================================================
# OFFERS ENGINE (Pinned for deterministic tests)
# ===============================================================================

OFFERS_DEFAULT_DELIVERY_FEE = '2.99'
OFFERS_LIST_PAGE_SIZE = 20
OFFERS_LIST_MAX_PAGE_SIZE = 50
OFFERS_DEFAULT_PLATFORM = 'web'

# ===============================================================================
# LOGGING (Minimal for tests)
# ===============================================================================

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'CRITICAL',
    },
}

# ===============================================================================
# SECURITY (Relaxed for tests)
# ===============================================================================

SECRET_KEY = 'django-test-key-not-secure'  # noqa: S105
ALLOWED_HOSTS = ['testserver', 'localhost', '127.0.0.1']
