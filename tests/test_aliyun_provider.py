"""Tests for the Aliyun DNS provider."""

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
from dnsbridge.providers.aliyun import AliyunDNSProvider
from dnsbridge.providers.aliyun_client import AliyunDNSClient, sign_parameters
from dnsbridge.types import DNSConfig, EmailSettings, RecordFilters, RecordInput


class TestConstruction:
    """Configuration checks happen before any network call."""

    def test_missing_secret(self, aliyun_backend):
        """Test a missing AccessKey secret fails at construction."""
        config = DNSConfig(provider="aliyun", aliyun_access_key_id="id", aliyun_domain_name="example.com")
        with pytest.raises(ConfigurationError):
            AliyunDNSProvider(config)
        assert aliyun_backend.calls == []

    def test_provider_mismatch(self, cf_config):
        """Test a Cloudflare config cannot build an Aliyun provider."""
        with pytest.raises(ConfigurationError):
            AliyunDNSProvider(cf_config)

    def test_safe_config_masks_secret(self, aliyun_provider):
        """Test the safe config never exposes the full secret."""
        safe = aliyun_provider.get_safe_config()
        assert safe["aliyun_access_key_secret"] == "***cret"
        assert safe["aliyun_domain_name"] == "example.com"


class TestRecordOperations:
    """CRUD against the in-memory backend."""

    def test_create_clamps_ttl(self, aliyun_provider, aliyun_backend):
        """Test a TTL below the Aliyun minimum is raised to 600."""
        response = aliyun_provider.create_dns_record(
            RecordInput(type="A", name="www.example.com", content="1.2.3.4", ttl=300))

        assert response.success
        assert response.result.ttl == 600
        action, params = aliyun_backend.calls[-1]
        assert action == "AddDomainRecord"
        assert params["TTL"] == 600
        assert params["RR"] == "www"
        assert params["DomainName"] == "example.com"

    def test_create_root_record(self, aliyun_provider, aliyun_backend):
        """Test the zone apex is sent as '@' and read back as the bare domain."""
        response = aliyun_provider.create_dns_record(
            RecordInput(type="TXT", name="example.com", content="v=spf1 -all"))
        assert aliyun_backend.calls[-1][1]["RR"] == "@"
        assert response.result.name == "example.com"

    def test_create_mx_splits_priority(self, aliyun_provider, aliyun_backend):
        """Test MX priority travels in its own parameter."""
        response = aliyun_provider.create_dns_record(
            RecordInput(type="MX", name="example.com", content="10 mail.example.com"))

        params = aliyun_backend.calls[-1][1]
        assert params["Value"] == "mail.example.com"
        assert params["Priority"] == 10
        assert response.result.content == "10 mail.example.com"

    def test_invalid_record_makes_no_call(self, aliyun_provider, aliyun_backend):
        """Test validation failures never reach the backend."""
        with pytest.raises(ValidationError):
            aliyun_provider.create_dns_record(RecordInput(type="A", name="www", content="999.1.1.1"))
        assert aliyun_backend.calls == []

    def test_proxied_is_dropped(self, aliyun_provider):
        """Test proxied is forced off because Aliyun has no proxy."""
        response = aliyun_provider.create_dns_record(
            RecordInput(type="A", name="www.example.com", content="1.2.3.4", proxied=True))
        assert response.result.proxied is False

    def test_round_trip(self, aliyun_provider):
        """Test a created record reads back with the same fields."""
        created = aliyun_provider.create_dns_record(
            RecordInput(type="MX", name="example.com", content="10 mail.example.com", ttl=3600)).result
        fetched = aliyun_provider.get_dns_record(created.id).result

        assert (fetched.type, fetched.name, fetched.content, fetched.ttl) == \
            ("MX", "example.com", "10 mail.example.com", 3600)
        assert fetched.priority == 10

    def test_update(self, aliyun_provider, aliyun_backend):
        """Test updating a record sends UpdateDomainRecord."""
        record_id = aliyun_backend.add("example.com", "www", "A", "1.1.1.1")
        response = aliyun_provider.update_dns_record(
            record_id, RecordInput(type="A", name="www.example.com", content="2.2.2.2", ttl=1200))

        assert response.result.content == "2.2.2.2"
        assert aliyun_backend.records[record_id]["Value"] == "2.2.2.2"
        assert aliyun_backend.records[record_id]["TTL"] == 1200

    def test_update_unchanged_skips_backend_write(self, aliyun_provider, aliyun_backend):
        """Test an identical update does not call UpdateDomainRecord."""
        record_id = aliyun_backend.add("example.com", "www", "A", "1.1.1.1", ttl=600)
        aliyun_provider.update_dns_record(record_id, RecordInput(type="A", name="www", content="1.1.1.1"))
        assert "UpdateDomainRecord" not in aliyun_backend.actions()

    def test_update_record_of_other_zone(self, aliyun_provider, aliyun_backend):
        """Test records outside the configured zone are reported as not found."""
        record_id = aliyun_backend.add("other.com", "www", "A", "1.1.1.1")
        with pytest.raises(NotFoundError):
            aliyun_provider.update_dns_record(record_id, RecordInput(type="A", name="www", content="2.2.2.2"))

    def test_delete_missing_record(self, aliyun_provider):
        """Test deleting an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            aliyun_provider.delete_dns_record("404")

    def test_delete(self, aliyun_provider, aliyun_backend):
        """Test deleting removes the record."""
        record_id = aliyun_backend.add("example.com", "www", "A", "1.1.1.1")
        assert aliyun_provider.delete_dns_record(record_id) is True
        assert record_id not in aliyun_backend.records


class TestListing:
    """Pagination and filtering."""

    def test_filters_are_forwarded(self, aliyun_provider, aliyun_backend):
        """Test type, name and content filters map to the keyword parameters."""
        aliyun_backend.add("example.com", "www", "A", "1.1.1.1")
        aliyun_backend.add("example.com", "mail", "A", "2.2.2.2")
        aliyun_backend.add("example.com", "www", "TXT", "hello")

        response = aliyun_provider.get_dns_records(RecordFilters(type="a", name="www.example.com"))

        params = aliyun_backend.calls[-1][1]
        assert params["TypeKeyWord"] == "A"
        assert params["RRKeyWord"] == "www"
        assert [record.content for record in response.result] == ["1.1.1.1"]

    def test_pagination_info(self, aliyun_provider, aliyun_backend):
        """Test result_info reflects the requested page."""
        for index in range(5):
            aliyun_backend.add("example.com", f"host{index}", "A", f"10.0.0.{index}")

        response = aliyun_provider.get_dns_records(RecordFilters(page=2, per_page=2))

        assert [record.name for record in response.result] == ["host2.example.com", "host3.example.com"]
        info = response.result_info
        assert (info.count, info.page, info.per_page, info.total_count) == (2, 2, 2, 5)

    def test_large_page_is_stitched_from_backend_pages(self, aliyun_provider, aliyun_backend):
        """Test per_page above the backend maximum spans several backend pages."""
        for index in range(1200):
            aliyun_backend.add("example.com", f"h{index}", "A", "10.0.0.1")

        response = aliyun_provider.get_dns_records(RecordFilters(page=1, per_page=1000))

        assert len(response.result) == 1000
        assert response.result_info.total_count == 1200
        page_sizes = {params["PageSize"] for action, params in aliyun_backend.calls}
        assert page_sizes == {500}

    def test_srv_with_non_numeric_priority_is_listed(self, aliyun_provider, aliyun_backend):
        """Test an SRV value whose first field is not a number is listed unchanged."""
        aliyun_backend.add("example.com", "_sip._tcp", "SRV", "x 5 5060 sip.example.com")
        aliyun_backend.add("example.com", "_xmpp._tcp", "SRV", "\u0661 5 5222 xmpp.example.com")

        records = aliyun_provider.get_dns_records(RecordFilters(type="SRV")).result

        assert [record.content for record in records] == ["x 5 5060 sip.example.com",
                                                          "\u0661 5 5222 xmpp.example.com"]
        assert [record.priority for record in records] == [None, None]


class TestErrorMapping:
    """Backend errors are normalised before leaving the provider."""

    @pytest.mark.parametrize("code,status,error_class", [
        ("InvalidAccessKeyId.NotFound", 404, AuthenticationError),
        ("SignatureDoesNotMatch", 400, AuthenticationError),
        ("Forbidden.RAM", 403, AuthenticationError),
        ("Throttling.User", 400, RateLimitError),
        ("DomainRecordNotBelongToUser", 400, NotFoundError),
        ("InvalidDomainName.NoExist", 400, NotFoundError),
        ("DomainRecordDuplicate", 400, ValidationError),
        ("InvalidRR.Format", 400, ValidationError),
        ("InternalError", 500, ProviderError),
    ])
    def test_error_codes(self, aliyun_backend, aliyun_config, code, status, error_class):
        """Test each backend error code maps to the expected error type."""
        provider = AliyunDNSProvider(aliyun_config, max_retries=1, retry_delay=0)
        aliyun_backend.fail("DescribeDomainRecords", code, status_code=status)

        with pytest.raises(error_class) as exc_info:
            provider.get_dns_records()
        assert exc_info.value.provider == "aliyun"

    def test_auth_error_attempted_once(self, aliyun_provider, aliyun_backend):
        """Test authentication failures are never retried."""
        aliyun_backend.fail("AddDomainRecord", "InvalidAccessKeyId.NotFound", status_code=404, times=3)

        with pytest.raises(AuthenticationError):
            aliyun_provider.create_dns_record(RecordInput(type="A", name="www", content="1.2.3.4"))
        assert aliyun_backend.actions().count("AddDomainRecord") == 1

    def test_throttling_is_retried(self, aliyun_provider, aliyun_backend):
        """Test rate limiting is retried until the call succeeds."""
        aliyun_backend.fail("AddDomainRecord", "Throttling.User", times=2)

        response = aliyun_provider.create_dns_record(RecordInput(type="A", name="www", content="1.2.3.4"))
        assert response.success
        assert aliyun_backend.actions().count("AddDomainRecord") == 3

    def test_timeout_becomes_provider_error(self, aliyun_config, monkeypatch):
        """Test request timeouts are reported as retryable provider errors."""
        calls = []

        def timeout(self, action, params=None):
            calls.append(action)
            raise requests.Timeout("read timed out")

        monkeypatch.setattr(AliyunDNSClient, "request", timeout)
        provider = AliyunDNSProvider(aliyun_config, max_retries=2, retry_delay=0)

        with pytest.raises(ProviderError) as exc_info:
            provider.get_domain_info()
        assert exc_info.value.code == "TIMEOUT"
        assert len(calls) == 2


class TestDomain:
    def test_domain_info(self, aliyun_provider, aliyun_backend):
        """Test domain info reports the record count and Aliyun name servers."""
        aliyun_backend.add("example.com", "www", "A", "1.1.1.1")
        info = aliyun_provider.get_domain_info()
        assert info.name == "example.com"
        assert info.record_count == 1
        assert info.name_servers == ["vip1.alidns.com", "vip2.alidns.com"]

    def test_validate_domain_false_on_error(self, aliyun_provider, aliyun_backend):
        """Test validate_domain returns False instead of raising."""
        aliyun_backend.fail("DescribeDomainRecords", "InvalidDomainName.NoExist")
        assert aliyun_provider.validate_domain() is False

    def test_email_forwarding_unsupported(self, aliyun_provider):
        """Test email forwarding reports unsupported."""
        result = aliyun_provider.configure_email_forwarding(EmailSettings(enabled=True))
        assert result.supported is False
        assert result.configured is False


class TestSigning:
    def test_signature_is_deterministic(self):
        """Test the signature depends only on parameters and secret."""
        params = {"Action": "DescribeDomainRecords", "DomainName": "example.com", "Timestamp": "2024-01-01T00:00:00Z"}
        assert sign_parameters(params, "secret") == sign_parameters(dict(params), "secret")
        assert sign_parameters(params, "secret") != sign_parameters(params, "other")

    def test_build_params_skips_empty_values(self):
        """Test empty parameters are not sent and a signature is attached."""
        client = AliyunDNSClient("id", "secret")
        params = client._build_params("DescribeDomainRecords", {"DomainName": "example.com", "RRKeyWord": None})
        assert "RRKeyWord" not in params
        assert params["AccessKeyId"] == "id"
        assert params["Signature"]
