"""
Django settings for the fiscal submission service - Base Configuration.
"""

import os
from pathlib import Path

# ===============================================================================
# CORE DJANGO SETTINGS
# ===============================================================================

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "")

DEBUG = False

ALLOWED_HOSTS: list[str] = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "").split(",") if h]

# Application definition
DJANGO_APPS: list[str] = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS: list[str] = [
    "rest_framework",
    "rest_framework.authtoken",  # 🔐 Token authentication for API access
    "django_q",  # Async task processing
]

LOCAL_APPS: list[str] = [
    "apps.billing",
    "apps.einvoicing",
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "apps.common.middleware.RequestIDMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# ===============================================================================
# DATABASE
# ===============================================================================

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.environ.get("DB_NAME", "fiscal_submission"),
        "USER": os.environ.get("DB_USER", "fiscal_submission"),
        "PASSWORD": os.environ.get("DB_PASSWORD", ""),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ===============================================================================
# INTERNATIONALIZATION
# ===============================================================================

LANGUAGE_CODE = "es-co"
TIME_ZONE = "America/Bogota"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# ===============================================================================
# DJANGO REST FRAMEWORK 🔌
# ===============================================================================

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        # Token auth for the UI backend and internal services
        "rest_framework.authentication.TokenAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.UserRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "user": "1000/hour",
    },
}

# ===============================================================================
# DJANGO-Q2 ASYNC TASKS ⚡
# ===============================================================================

Q_CLUSTER_BASE = {
    "name": "fiscal-submission-cluster",
    "timeout": 120,  # Longer than the HTTP timeout of a single submission
    "retry": 300,
    "save_limit": 1000,  # Keep last 1000 task results
    "catch_up": False,  # Don't run missed scheduled tasks
    "orm": "default",
    "bulk": 10,
    "queue_limit": 100,
}

Q_CLUSTER = {
    **Q_CLUSTER_BASE,
    "workers": 2,
    "recycle": 500,
    "sync": False,
}

# ===============================================================================
# E-INVOICING (TAX AUTHORITY) 🧾
# ===============================================================================

# Absent credentials make every submission fail fast as "not configured"
EINVOICING_CLIENT_ID = os.environ.get("EINVOICING_CLIENT_ID", "")
EINVOICING_CLIENT_SECRET = os.environ.get("EINVOICING_CLIENT_SECRET", "")
EINVOICING_USERNAME = os.environ.get("EINVOICING_USERNAME", "")
EINVOICING_PASSWORD = os.environ.get("EINVOICING_PASSWORD", "")
EINVOICING_ENVIRONMENT = os.environ.get("EINVOICING_ENVIRONMENT", "sandbox")
EINVOICING_TIMEOUT_SECONDS = int(os.environ.get("EINVOICING_TIMEOUT_SECONDS", "30"))
EINVOICING_RETRY_DELAY_SECONDS = int(os.environ.get("EINVOICING_RETRY_DELAY_SECONDS", "300"))
EINVOICING_MAX_ATTEMPTS = int(os.environ.get("EINVOICING_MAX_ATTEMPTS", "5"))
EINVOICING_STALE_PROCESSING_MINUTES = int(os.environ.get("EINVOICING_STALE_PROCESSING_MINUTES", "30"))
