"""Tests for the retry helper and error taxonomy."""

import pytest
import requests

from dnsbridge.errors import (
    AuthenticationError,
    ConfigurationError,
    NotFoundError,
    ProviderError,
    RateLimitError,
    ValidationError,
)
from dnsbridge.utils import call_with_retry, format_domain_name, is_retryable_error, validate_domain_name


class Flaky:
    """Callable that raises the queued errors before returning a value."""

    def __init__(self, *errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestIsRetryable:
    @pytest.mark.parametrize("error,expected", [
        (RateLimitError("slow down"), True),
        (ProviderError("internal error"), True),
        (requests.Timeout("timed out"), True),
        (requests.ConnectionError("refused"), True),
        (AuthenticationError("bad key"), False),
        (ValidationError("bad content"), False),
        (NotFoundError("missing"), False),
        (ConfigurationError("no config"), False),
        (ValueError("boom"), False),
    ])
    def test_classification(self, error, expected):
        """Test which errors are eligible for another attempt."""
        assert is_retryable_error(error) is expected

    def test_auth_marker_in_provider_error(self):
        """Test provider errors whose message indicates an auth failure are not retried."""
        assert is_retryable_error(ProviderError("Unauthorized request")) is False


class TestCallWithRetry:
    def test_succeeds_after_transient_errors(self):
        """Test transient failures are retried until success."""
        func = Flaky(RateLimitError("slow"), ProviderError("oops"))
        assert call_with_retry(func, max_attempts=3, base_delay=0) == "ok"
        assert func.calls == 3

    def test_gives_up_after_max_attempts(self):
        """Test the last error is re-raised once attempts are exhausted."""
        func = Flaky(*[RateLimitError("slow")] * 5)
        with pytest.raises(RateLimitError):
            call_with_retry(func, max_attempts=3, base_delay=0)
        assert func.calls == 3

    def test_auth_error_attempted_once(self):
        """Test authentication errors are raised on the first attempt."""
        func = Flaky(AuthenticationError("bad key"))
        with pytest.raises(AuthenticationError):
            call_with_retry(func, max_attempts=5, base_delay=0)
        assert func.calls == 1

    def test_zero_attempts_still_calls_once(self):
        """Test a non-positive attempt count still performs one call."""
        func = Flaky()
        assert call_with_retry(func, max_attempts=0, base_delay=0) == "ok"
        assert func.calls == 1


class TestErrors:
    def test_str_includes_provider_and_code(self):
        """Test the error string joins message, provider and code."""
        error = ProviderError("failed", provider="aliyun", code="InternalError")
        assert str(error) == "failed | Provider: aliyun | Code: InternalError"

    def test_defaults(self):
        """Test default codes and status codes per error type."""
        assert AuthenticationError("x").status_code == 401
        assert RateLimitError("x").status_code == 429
        assert NotFoundError("x").code == "NOT_FOUND"
        assert ValidationError("x", field="ttl").field == "ttl"


class TestDomainNames:
    @pytest.mark.parametrize("raw,expected", [
        ("Example.COM", "example.com"),
        ("https://example.com/", "example.com"),
        ("  example.com.  ", "example.com"),
    ])
    def test_format_domain_name(self, raw, expected):
        """Test domain names are normalised for storage."""
        assert format_domain_name(raw) == expected

    def test_validate_domain_name(self):
        """Test domain name syntax checks."""
        assert validate_domain_name("example.com")
        assert not validate_domain_name("")
        assert not validate_domain_name("bad domain.com")
