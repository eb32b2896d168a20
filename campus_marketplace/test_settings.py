"""
Settings used by the test suite: in-memory SQLite, fast hashing, quiet logs.
"""

from .settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
        'CONN_MAX_AGE': 0,
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'DEFAULT_THROTTLE_RATES': {
        'login': '1000/minute',
    },
}

LOGGING['loggers']['core']['level'] = 'WARNING'  # noqa: F405
