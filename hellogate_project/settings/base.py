"""
Base Django settings for hellogate_project.
Common settings shared between development and production.
"""
import os
from pathlib import Path
import environ

# Build paths
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['*']),
    SESSION_STORE=(str, 'memory'),
    SESSION_ENGINE=(str, 'django.contrib.sessions.backends.cache'),
    SESSION_MAX_AGE=(int, 1800),
    SESSION_COOKIE_NAME=(str, 'sessionid'),
    CSRF_PROTECTION=(bool, False),
    LOG_LEVEL=(str, 'INFO'),
)
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('SECRET_KEY', default='django-insecure-change-me-in-production')

DEBUG = env('DEBUG')
ALLOWED_HOSTS = env('ALLOWED_HOSTS')

# Application definition
INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    # Project apps
    'gate.apps.GateConfig',
    'greeting.apps.GreetingConfig',
]

# ==========================================================================
# ACCESS GATE
# ==========================================================================
# 'memory' keeps the session table in-process; 'database' uses gate.UserSession
# and is required once more than one worker process serves requests.
GATE_SESSION_STORE = env('SESSION_STORE')
GATE_CREDENTIAL_STORE = 'gate.credentials.DjangoCredentialStore'
# Cross-site request forgery protection is off unless explicitly enabled;
# production.py always enables it.
GATE_CSRF_PROTECTION = env('CSRF_PROTECTION')


def build_middleware(csrf_protection):
    middleware = [
        'django.middleware.security.SecurityMiddleware',
        'django.contrib.sessions.middleware.SessionMiddleware',
        'django.middleware.common.CommonMiddleware',
    ]
    if csrf_protection:
        middleware.append('django.middleware.csrf.CsrfViewMiddleware')
    middleware += [
        'django.middleware.clickjacking.XFrameOptionsMiddleware',
        # Every route below this line requires a live session
        'gate.middleware.AccessGateMiddleware',
    ]
    return middleware


MIDDLEWARE = build_middleware(GATE_CSRF_PROTECTION)

# Session settings
# The cache engine keeps session data in process memory (LocMemCache);
# production.py switches to the database engine.
SESSION_ENGINE = env('SESSION_ENGINE')
# Sessions older than this (seconds since login) are invalidated.
SESSION_COOKIE_AGE = env('SESSION_MAX_AGE')
SESSION_COOKIE_NAME = env('SESSION_COOKIE_NAME')
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = 'Lax'

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'hellogate-sessions',
    },
}

ROOT_URLCONF = 'hellogate_project.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'hellogate_project.wsgi.application'

# The credential store: Django's user table behind ModelBackend
DATABASES = {
    'default': env.db('DATABASE_URL', default=f'sqlite:///{BASE_DIR / "db.sqlite3"}'),
}

AUTHENTICATION_BACKENDS = [
    'django.contrib.auth.backends.ModelBackend',
]

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
     'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
]

# Login URL
LOGIN_URL = '/login/'

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ==========================================================================
# LOGGING
# ==========================================================================
LOG_LEVEL = env('LOG_LEVEL').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} [{name}] {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'hellogate': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'gate': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'greeting': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
    },
}
