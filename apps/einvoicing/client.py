"""
Tax authority e-invoicing API client.

This client handles the two calls the submission pipeline needs:
- OAuth2 password-grant authentication (`POST /oauth/token`)
- Fiscal document creation and validation (`POST /v1/bills/validate`)

Each method performs exactly one HTTP request bounded by a timeout and
never retries: retry policy belongs to the job lifecycle so that every
attempt is individually auditable. Failures are returned as `Err` values,
never raised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import requests

from apps.common.types import Err, Ok, Result

from .settings import AuthorityCredentials, EInvoicingEnvironment, einvoicing_settings

if TYPE_CHECKING:
    from .mapper import FiscalDocument

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/token"  # noqa: S105
VALIDATE_BILL_PATH = "/v1/bills/validate"


@dataclass(frozen=True)
class TokenResponse:
    """OAuth2 token response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    refresh_token: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenResponse:
        return cls(
            access_token=data.get("access_token", ""),
            token_type=data.get("token_type", "Bearer"),
            expires_in=int(data.get("expires_in", 3600)),
            refresh_token=data.get("refresh_token", ""),
        )


@dataclass(frozen=True)
class AuthError:
    """Authentication against the tax authority failed or was impossible."""

    message: str
    status_code: int | None = None


class ClientErrorKind(StrEnum):
    REJECTED = "rejected"  # Authority answered with a rejection
    TRANSPORT = "transport"  # Timeout, connection failure, unreadable reply


@dataclass(frozen=True)
class SubmissionResult:
    """Identifiers returned by the authority for a validated document."""

    cufe: str
    qr: str
    number: str
    message: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response_data(cls, data: dict[str, Any]) -> SubmissionResult:
        details = data.get("data") if isinstance(data.get("data"), dict) else {}
        bill = details.get("bill") if isinstance(details.get("bill"), dict) else {}
        return cls(
            cufe=bill.get("cufe", ""),
            qr=bill.get("qr", ""),
            number=bill.get("number", ""),
            message=data.get("message", "Document validated"),
            raw_response=data,
        )


@dataclass(frozen=True)
class SubmissionError:
    """Raw failure from the transport or the authority's rejection."""

    kind: ClientErrorKind
    message: str
    status_code: int | None = None
    errors: dict[str, Any] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def rejected(cls, response: requests.Response) -> SubmissionError:
        data = _json_or_text(response)
        details = data.get("data") if isinstance(data.get("data"), dict) else {}
        errors = details.get("errors", {}) if details else {}
        if not isinstance(errors, dict):
            errors = {"errors": errors}
        message = data.get("message") or f"HTTP {response.status_code}: {response.text[:200]}"
        return cls(
            kind=ClientErrorKind.REJECTED,
            message=message,
            status_code=response.status_code,
            errors=errors,
            raw_response=data,
        )

    @classmethod
    def transport(cls, message: str) -> SubmissionError:
        return cls(kind=ClientErrorKind.TRANSPORT, message=message)


def _json_or_text(response: requests.Response) -> dict[str, Any]:
    try:
        data = response.json() if response.text else {}
    except (json.JSONDecodeError, ValueError):
        return {"raw_text": response.text[:2000]}
    return data if isinstance(data, dict) else {"data": data}


class SubmissionClient:
    """
    Client for the tax authority e-invoicing API.

    Usage:
        with SubmissionClient() as client:
            token = client.authenticate(credentials)
            result = client.submit(environment, token.unwrap().access_token, document)
    """

    def __init__(self, timeout: int | None = None, session: requests.Session | None = None):
        self._timeout = timeout
        self._session = session

    @property
    def timeout(self) -> int:
        return self._timeout or einvoicing_settings.timeout_seconds

    @property
    def session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(
                {
                    "Accept": "application/json",
                    "User-Agent": "FiscalSubmission/1.0",
                }
            )
        return self._session

    def close(self) -> None:
        """Close HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> SubmissionClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # --- Authentication ---

    def authenticate(self, credentials: AuthorityCredentials) -> Result[TokenResponse, AuthError]:
        """
        Exchange client credentials for a bearer token.

        Args:
            credentials: Client id/secret and username/password for one environment

        Returns:
            Ok(TokenResponse) or Err(AuthError)
        """
        if not credentials.is_complete():
            return Err(AuthError("e-Invoicing credentials are not configured"))

        data = {
            "grant_type": "password",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
            "username": credentials.username,
            "password": credentials.password,
        }
        url = f"{einvoicing_settings.base_url(credentials.environment)}{TOKEN_PATH}"

        try:
            response = self.session.post(url, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"🔥 [e-Invoicing] Authentication request failed: {e}")
            return Err(AuthError(f"Authentication request failed: {e}"))

        if response.status_code != 200:  # noqa: PLR2004
            logger.warning(f"⚠️ [e-Invoicing] Authentication rejected with HTTP {response.status_code}")
            return Err(AuthError(f"Authentication rejected (HTTP {response.status_code})", response.status_code))

        token = TokenResponse.from_dict(_json_or_text(response))
        if not token.access_token:
            return Err(AuthError("Authentication response did not contain an access token", response.status_code))

        logger.info(f"✅ [e-Invoicing] Obtained access token for {credentials.environment} (expires in {token.expires_in}s)")
        return Ok(token)

    # --- Document Operations ---

    def submit(
        self,
        environment: EInvoicingEnvironment,
        token: str,
        document: FiscalDocument,
    ) -> Result[SubmissionResult, SubmissionError]:
        """
        Create and validate a fiscal document.

        Args:
            environment: Authority environment to submit to
            token: Bearer access token
            document: Mapped fiscal document

        Returns:
            Ok(SubmissionResult) with the authority identifiers, or Err(SubmissionError)
        """
        url = f"{einvoicing_settings.base_url(environment)}{VALIDATE_BILL_PATH}"

        try:
            response = self.session.post(
                url,
                json=document.to_payload(),
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.error(f"🔥 [e-Invoicing] Submission timed out after {self.timeout}s: {e}")
            return Err(SubmissionError.transport(f"Request timed out after {self.timeout}s: {e}"))
        except requests.RequestException as e:
            logger.error(f"🔥 [e-Invoicing] Submission request failed: {e}")
            return Err(SubmissionError.transport(f"Request failed: {e}"))

        if not response.ok:
            error = SubmissionError.rejected(response)
            logger.warning(f"⚠️ [e-Invoicing] Document {document.reference_code} rejected: {error.message}")
            return Err(error)

        data = _json_or_text(response)
        if "raw_text" in data:
            return Err(SubmissionError.transport(f"Unreadable authority response (HTTP {response.status_code})"))
        if not isinstance(data.get("data"), dict):
            logger.error(f"🔥 [e-Invoicing] Malformed authority response for {document.reference_code}: {str(data)[:200]}")
            return Err(SubmissionError.transport(f"Malformed authority response (HTTP {response.status_code})"))

        result = SubmissionResult.from_response_data(data)
        logger.info(f"✅ [e-Invoicing] Document {document.reference_code} validated as {result.number}")
        return Ok(result)
