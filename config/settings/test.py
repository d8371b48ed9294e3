"""
Test settings for the fiscal submission service.
Fast, isolated testing environment.
"""

from .base import *  # noqa: F403

DEBUG = False

SECRET_KEY = "django-test-key-not-secure"  # noqa: S105

ALLOWED_HOSTS = ["testserver", "localhost"]

# ===============================================================================
# TEST DATABASE (In-memory for speed)
# ===============================================================================

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# ===============================================================================
# TEST CACHE
# ===============================================================================

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Execute queued tasks inline
Q_CLUSTER = {
    **Q_CLUSTER_BASE,  # noqa: F405
    "workers": 1,
    "sync": True,
}

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}

# ===============================================================================
# E-INVOICING TEST CREDENTIALS
# ===============================================================================

EINVOICING_CLIENT_ID = "test-client-id"
EINVOICING_CLIENT_SECRET = "test-client-secret"  # noqa: S105
EINVOICING_USERNAME = "sandbox@example.com"
EINVOICING_PASSWORD = "sandbox-password"  # noqa: S105
EINVOICING_ENVIRONMENT = "sandbox"

# ===============================================================================
# LOGGING (Silent in tests)
# ===============================================================================

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "null": {
            "class": "logging.NullHandler",
        },
    },
    "root": {
        "handlers": ["null"],
    },
}
