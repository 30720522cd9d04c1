import os

os.environ.setdefault('JWT_SECRET', 'test-jwt-secret-key-with-enough-length-for-hs256')
os.environ.pop('DATABASE_URL', None)

from .settings import *  # noqa: E402,F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

OPENAI_API_KEY = ''
AAALIVE_API_KEY = 'test-key'
