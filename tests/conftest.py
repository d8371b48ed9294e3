# ===============================================================================
# PYTEST CONFIGURATION FOR THE FISCAL SUBMISSION SERVICE
# ===============================================================================
"""
Global test configuration.

Test Structure:
- tests/ mirrors apps/ structure for app-specific tests
- Shared object builders live in tests/factories/

Run all tests: pytest tests/
"""

import os

import django


def pytest_configure():
    """Configure Django settings for pytest"""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.test')

    # Configure Django
    django.setup()


import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_credential_cache():
    """Tokens cached by one test must not leak into the next"""
    from apps.einvoicing.token_cache import credential_cache  # noqa: PLC0415

    credential_cache.invalidate()
    yield
    credential_cache.invalidate()
