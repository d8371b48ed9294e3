"""
Tests for the per-environment credential cache.
"""

from datetime import timedelta
from unittest.mock import Mock, patch

from django.test import SimpleTestCase, override_settings
from django.utils import timezone

from apps.common.types import Err, Ok
from apps.einvoicing.client import AuthError, TokenResponse
from apps.einvoicing.settings import AuthorityCredentials, EInvoicingEnvironment
from apps.einvoicing.token_cache import CachedToken, CredentialCache

SANDBOX = AuthorityCredentials("c", "s", "u", "p", EInvoicingEnvironment.SANDBOX)
PRODUCTION = AuthorityCredentials("c", "s", "u", "p", EInvoicingEnvironment.PRODUCTION)


class CachedTokenTestCase(SimpleTestCase):
    def test_validity_is_strictly_future(self):
        self.assertTrue(CachedToken("a", timezone.now() + timedelta(seconds=30)).is_valid)
        self.assertFalse(CachedToken("a", timezone.now() - timedelta(seconds=1)).is_valid)


@override_settings(EINVOICING_TOKEN_EXPIRY_SKEW_SECONDS=60)
class CredentialCacheTestCase(SimpleTestCase):
    def setUp(self):
        self.authenticator = Mock(return_value=Ok(TokenResponse(access_token="tok-1", expires_in=3600)))
        self.cache = CredentialCache(authenticator=self.authenticator)

    def test_first_call_authenticates(self):
        result = self.cache.get_valid_token(SANDBOX)

        self.assertTrue(result.is_ok())
        self.assertEqual(result.unwrap().access_token, "tok-1")
        self.authenticator.assert_called_once_with(SANDBOX)

    def test_valid_token_is_reused_without_network(self):
        self.cache.get_valid_token(SANDBOX)
        self.cache.get_valid_token(SANDBOX)

        self.assertEqual(self.authenticator.call_count, 1)

    def test_expiry_applies_safety_skew(self):
        before = timezone.now()
        token = self.cache.get_valid_token(SANDBOX).unwrap()

        lifetime = (token.expires_at - before).total_seconds()
        self.assertGreater(lifetime, 3600 - 60 - 5)
        self.assertLessEqual(lifetime, 3600 - 60 + 5)

    def test_expired_token_is_refreshed(self):
        self.authenticator.side_effect = [
            Ok(TokenResponse(access_token="short", expires_in=30)),
            Ok(TokenResponse(access_token="tok-2", expires_in=3600)),
        ]

        # expires_in below the skew yields an already expired entry
        self.assertEqual(self.cache.get_valid_token(SANDBOX).unwrap().access_token, "short")
        self.assertEqual(self.cache.get_valid_token(SANDBOX).unwrap().access_token, "tok-2")
        self.assertEqual(self.authenticator.call_count, 2)

    def test_environments_are_cached_separately(self):
        self.cache.get_valid_token(SANDBOX)
        self.cache.get_valid_token(PRODUCTION)

        self.assertEqual(self.authenticator.call_count, 2)

    def test_missing_credentials(self):
        self.assertTrue(self.cache.get_valid_token(None).is_err())
        self.assertTrue(self.cache.get_valid_token(AuthorityCredentials("", "", "", "")).is_err())
        self.authenticator.assert_not_called()

    def test_auth_failure_is_not_cached(self):
        self.authenticator.side_effect = [
            Err(AuthError("Authentication rejected (HTTP 401)", 401)),
            Ok(TokenResponse(access_token="tok-ok", expires_in=3600)),
        ]

        first = self.cache.get_valid_token(SANDBOX)
        second = self.cache.get_valid_token(SANDBOX)

        self.assertTrue(first.is_err())
        self.assertEqual(first.unwrap_err().status_code, 401)
        self.assertEqual(second.unwrap().access_token, "tok-ok")

    def test_invalidate(self):
        self.cache.get_valid_token(SANDBOX)
        self.cache.invalidate(EInvoicingEnvironment.SANDBOX)
        self.cache.get_valid_token(SANDBOX)

        self.assertEqual(self.authenticator.call_count, 2)

    def test_default_authenticator_uses_submission_client(self):
        cache = CredentialCache()
        with patch("apps.einvoicing.token_cache.SubmissionClient") as client_cls:
            client = client_cls.return_value.__enter__.return_value
            client.authenticate.return_value = Ok(TokenResponse(access_token="from-client"))

            result = cache.get_valid_token(SANDBOX)

        self.assertEqual(result.unwrap().access_token, "from-client")
        client.authenticate.assert_called_once_with(SANDBOX)
