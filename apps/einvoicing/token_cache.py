"""
Process-wide bearer token cache for the tax authority API.

One token is kept per environment (sandbox/production) for the lifetime of
the process. Tokens are invalidated purely by time and are never persisted.
The cache is an explicit object so it can be injected into the service; the
module-level `credential_cache` instance is the one shared by the process.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.utils import timezone

from apps.common.types import Err, Ok, Result

from .client import AuthError, SubmissionClient, TokenResponse
from .settings import AuthorityCredentials, EInvoicingEnvironment, einvoicing_settings

logger = logging.getLogger(__name__)

Authenticator = Callable[[AuthorityCredentials], Result[TokenResponse, AuthError]]


@dataclass(frozen=True)
class CachedToken:
    access_token: str
    expires_at: datetime

    @property
    def is_valid(self) -> bool:
        return self.expires_at > timezone.now()


class CredentialCache:
    """
    Holds one access token per environment and refreshes it on demand.

    The check-then-set sequence runs under a lock so readers never observe
    a half-written entry. Two callers racing on an expired token may both
    end up waiting on the lock; the second one reuses the fresh token.
    """

    def __init__(self, authenticator: Authenticator | None = None):
        self._authenticator = authenticator
        self._tokens: dict[EInvoicingEnvironment, CachedToken] = {}
        self._lock = threading.Lock()

    def _authenticate(self, credentials: AuthorityCredentials) -> Result[TokenResponse, AuthError]:
        if self._authenticator is not None:
            return self._authenticator(credentials)
        with SubmissionClient() as client:
            return client.authenticate(credentials)

    def get_valid_token(self, credentials: AuthorityCredentials | None) -> Result[CachedToken, AuthError]:
        """
        Return a cached token for the credential's environment or authenticate.

        Args:
            credentials: Authority credentials; None or incomplete is an error

        Returns:
            Ok(CachedToken) or Err(AuthError)
        """
        if credentials is None or not credentials.is_complete():
            return Err(AuthError("e-Invoicing credentials are not configured"))

        environment = credentials.environment
        with self._lock:
            cached = self._tokens.get(environment)
            if cached is not None and cached.is_valid:
                return Ok(cached)

            result = self._authenticate(credentials)
            if result.is_err():
                logger.error(f"🔥 [e-Invoicing] Could not obtain token for {environment}: {result.unwrap_err().message}")
                return result

            token = result.unwrap()
            skew = einvoicing_settings.token_expiry_skew_seconds
            lifetime = max(token.expires_in - skew, 0)
            cached = CachedToken(
                access_token=token.access_token,
                expires_at=timezone.now() + timedelta(seconds=lifetime),
            )
            self._tokens[environment] = cached
            logger.info(f"🔐 [e-Invoicing] Cached token for {environment} until {cached.expires_at.isoformat()}")
            return Ok(cached)

    def invalidate(self, environment: EInvoicingEnvironment | None = None) -> None:
        """Drop the cached token for one environment, or all of them."""
        with self._lock:
            if environment is None:
                self._tokens.clear()
            else:
                self._tokens.pop(environment, None)


# Module-level cache shared by the process
credential_cache = CredentialCache()
