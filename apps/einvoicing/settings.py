"""
e-Invoicing configurable settings.

All values are read from Django settings with sensible defaults, so a
deployment only has to provide the tax authority credentials.

Usage:
    from apps.einvoicing.settings import einvoicing_settings

    credentials = einvoicing_settings.credentials
    if not credentials.is_complete():
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Any

from django.conf import settings as django_settings

logger = logging.getLogger(__name__)


# ===============================================================================
# CONSTANTS - fixed by the tax authority schema
# ===============================================================================

# Fallback municipality when the customer has no fiscal municipality on file
DEFAULT_MUNICIPALITY_CODE = 980

# Standard VAT rate in the organization's jurisdiction
DEFAULT_TAX_RATE = Decimal("19.00")

REFERENCE_CODE_PREFIX = "INV-"

# Cash payment ("efectivo") in the authority's payment method table
DEFAULT_PAYMENT_METHOD_CODE = "10"


class EInvoicingEnvironment(StrEnum):
    """Tax authority API environments."""

    SANDBOX = "sandbox"
    PRODUCTION = "production"

    @classmethod
    def from_value(cls, value: str | None) -> EInvoicingEnvironment:
        if str(value or "").lower() in ("production", "prod"):
            return cls.PRODUCTION
        return cls.SANDBOX


@dataclass(frozen=True)
class AuthorityCredentials:
    """Client credentials used against the tax authority OAuth2 endpoint."""

    client_id: str
    client_secret: str
    username: str
    password: str
    environment: EInvoicingEnvironment = EInvoicingEnvironment.SANDBOX

    def is_complete(self) -> bool:
        """Check if configuration has required fields."""
        return bool(self.client_id and self.client_secret and self.username and self.password)


# ===============================================================================
# DEFAULT VALUES
# ===============================================================================

EINVOICING_DEFAULTS: dict[str, Any] = {
    "EINVOICING_CLIENT_ID": "",
    "EINVOICING_CLIENT_SECRET": "",
    "EINVOICING_USERNAME": "",
    "EINVOICING_PASSWORD": "",
    "EINVOICING_ENVIRONMENT": EInvoicingEnvironment.SANDBOX.value,
    "EINVOICING_SANDBOX_URL": "https://api-sandbox.factus.com.co",
    "EINVOICING_PRODUCTION_URL": "https://api.factus.com.co",
    "EINVOICING_TIMEOUT_SECONDS": 30,
    # Fixed backoff between failed attempts
    "EINVOICING_RETRY_DELAY_SECONDS": 300,
    "EINVOICING_MAX_ATTEMPTS": 5,
    "EINVOICING_RETRY_BATCH_SIZE": 50,
    # Jobs left in processing longer than this are treated as abandoned
    "EINVOICING_STALE_PROCESSING_MINUTES": 30,
    "EINVOICING_TOKEN_EXPIRY_SKEW_SECONDS": 60,
    "EINVOICING_DEFAULT_MUNICIPALITY_CODE": DEFAULT_MUNICIPALITY_CODE,
    "EINVOICING_DEFAULT_TAX_RATE": str(DEFAULT_TAX_RATE),
    "EINVOICING_REFERENCE_PREFIX": REFERENCE_CODE_PREFIX,
}


class EInvoicingSettings:
    """
    Type-safe access to e-Invoicing configuration.

    Values are looked up on every access so `override_settings` in tests
    and runtime reconfiguration are honored.
    """

    def _get_setting(self, key: str) -> Any:
        """Get setting with fallback chain: Django settings -> default."""
        value = getattr(django_settings, key, None)
        if value is None or value == "":
            return EINVOICING_DEFAULTS.get(key)
        return value

    def _get_string(self, key: str) -> str:
        value = self._get_setting(key)
        return str(value) if value is not None else ""

    def _get_int(self, key: str) -> int:
        value = self._get_setting(key)
        try:
            return int(value)
        except (ValueError, TypeError):
            logger.warning(f"⚠️ [e-Invoicing] Invalid integer for {key}: {value!r}, using default")
            return int(EINVOICING_DEFAULTS[key])

    # --- Credentials & environment ---

    @property
    def environment(self) -> EInvoicingEnvironment:
        return EInvoicingEnvironment.from_value(self._get_string("EINVOICING_ENVIRONMENT"))

    @property
    def credentials(self) -> AuthorityCredentials:
        return AuthorityCredentials(
            client_id=self._get_string("EINVOICING_CLIENT_ID"),
            client_secret=self._get_string("EINVOICING_CLIENT_SECRET"),
            username=self._get_string("EINVOICING_USERNAME"),
            password=self._get_string("EINVOICING_PASSWORD"),
            environment=self.environment,
        )

    def is_configured(self) -> bool:
        return self.credentials.is_complete()

    def base_url(self, environment: EInvoicingEnvironment | None = None) -> str:
        """Get the API base URL for an environment."""
        environment = environment or self.environment
        if environment == EInvoicingEnvironment.PRODUCTION:
            return self._get_string("EINVOICING_PRODUCTION_URL").rstrip("/")
        return self._get_string("EINVOICING_SANDBOX_URL").rstrip("/")

    # --- Transport & retry ---

    @property
    def timeout_seconds(self) -> int:
        return self._get_int("EINVOICING_TIMEOUT_SECONDS")

    @property
    def retry_delay_seconds(self) -> int:
        return self._get_int("EINVOICING_RETRY_DELAY_SECONDS")

    @property
    def max_attempts(self) -> int:
        return self._get_int("EINVOICING_MAX_ATTEMPTS")

    @property
    def retry_batch_size(self) -> int:
        return self._get_int("EINVOICING_RETRY_BATCH_SIZE")

    @property
    def stale_processing_minutes(self) -> int:
        return self._get_int("EINVOICING_STALE_PROCESSING_MINUTES")

    @property
    def token_expiry_skew_seconds(self) -> int:
        return self._get_int("EINVOICING_TOKEN_EXPIRY_SKEW_SECONDS")

    # --- Document defaults ---

    @property
    def default_municipality_code(self) -> int:
        return self._get_int("EINVOICING_DEFAULT_MUNICIPALITY_CODE")

    @property
    def default_tax_rate(self) -> Decimal:
        return Decimal(self._get_string("EINVOICING_DEFAULT_TAX_RATE"))

    @property
    def reference_prefix(self) -> str:
        return self._get_string("EINVOICING_REFERENCE_PREFIX")


# Module-level settings instance
einvoicing_settings = EInvoicingSettings()
