"""
Django settings for the task_planner project.

Every deployment knob is read from a PLANNER_* environment variable so the
project runs out of the box for local development and tests.
"""

import os
from pathlib import Path
from typing import List

BASE_DIR = Path(__file__).resolve().parent.parent

ENV_PREFIX = 'PLANNER'


def _k(suffix: str) -> str:
    """Build an env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = '') -> str:
    value = os.getenv(name)
    return default if value is None else value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {'1', 'true', 'yes', 'y', 'on'}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return list(default)
    return [p.strip() for p in raw.replace(',', ' ').split() if p.strip()]


# ==================== Core ====================

SECRET_KEY = _env(_k('SECRET_KEY'), 'insecure-dev-key-change-me')
DEBUG = _env_bool(_k('DEBUG'), True)
ALLOWED_HOSTS = _env_list(_k('ALLOWED_HOSTS'), ['localhost', '127.0.0.1', 'testserver'])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'drf_spectacular',
    'planner',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'task_planner.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'task_planner.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': _env(_k('DB_PATH'), str(BASE_DIR / 'db.sqlite3')),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = _env(_k('TIME_ZONE'), 'UTC')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

# ==================== REST framework ====================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'DEFAULT_THROTTLE_RATES': {
        'user': '600/min',
    },
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'Daily Task Planner API',
    'DESCRIPTION': 'Tasks, lists, labels, activity history, suggestions and analytics.',
    'VERSION': '1.0.0',
}

# ==================== Planner ====================

PLANNER = {
    # Minimum similarity (0-1) for a fuzzy search hit. 0.7 == 0.3 distance tolerance.
    'SEARCH_THRESHOLD': _env_float(_k('SEARCH_THRESHOLD'), 0.7),
    # Default number of suggested tasks.
    'SUGGESTION_COUNT': _env_int(_k('SUGGESTION_COUNT'), 3),
    'DEFAULT_LIST_NAME': _env(_k('DEFAULT_LIST_NAME'), 'Inbox'),
}

# ==================== Logging ====================

LOG_LEVEL = _env(_k('LOG_LEVEL'), 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
        },
        'planner': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': True,
        },
        # Diagnostic sink for activity-log writes that failed and were skipped.
        'planner.activity': {
            'level': 'INFO',
            'propagate': True,
        },
    },
}
