"""Shared test fixtures for dnsbridge tests."""

import itertools
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import cloudflare
import httpx
import pytest

from dnsbridge.database import DomainDatabase
from dnsbridge.dns_manager import DNSManager
from dnsbridge.providers.aliyun import AliyunDNSProvider
from dnsbridge.providers.aliyun_client import AliyunAPIError, AliyunDNSClient
from dnsbridge.providers.cloudflare import CloudflareDNSProvider
from dnsbridge.registry import ProviderRegistry
from dnsbridge.types import DNSConfig


# ============================================================================
# Fake Aliyun RPC backend
# ============================================================================


class FakeAliyunBackend:
    """In-memory stand-in for the Aliyun DNS RPC API."""

    max_page_size = 500

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.errors: Dict[str, List[AliyunAPIError]] = {}
        self._ids = itertools.count(1000)

    def fail(self, action: str, code: str, message: str = "error", status_code: int = 400, times: int = 1):
        """Queue an error for the next ``times`` calls of ``action``."""
        self.errors.setdefault(action, []).extend(
            AliyunAPIError(message, code=code, status_code=status_code) for _ in range(times)
        )

    def add(self, domain: str, rr: str, record_type: str, value: str, ttl: int = 600,
            priority: Optional[int] = None) -> str:
        record_id = str(next(self._ids))
        self.records[record_id] = {
            "RecordId": record_id,
            "DomainName": domain,
            "RR": rr,
            "Type": record_type,
            "Value": value,
            "TTL": ttl,
            "Priority": priority,
            "Line": "default",
            "Status": "ENABLE",
            "Locked": False,
        }
        return record_id

    def actions(self) -> List[str]:
        return [action for action, _ in self.calls]

    def handle(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {key: value for key, value in params.items() if value is not None and value != ""}
        self.calls.append((action, params))

        queued = self.errors.get(action)
        if queued:
            raise queued.pop(0)

        return getattr(self, f"_{action}")(params)

    def _find(self, record_id: str) -> Dict[str, Any]:
        record = self.records.get(str(record_id))
        if record is None:
            raise AliyunAPIError("The record does not exist.", code="DomainRecordNotBelongToUser",
                                 status_code=400)
        return record

    def _AddDomainRecord(self, params):
        for record in self.records.values():
            if (record["DomainName"], record["RR"], record["Type"], record["Value"]) == \
                    (params["DomainName"], params["RR"], params["Type"], params["Value"]):
                raise AliyunAPIError("The DNS record already exists.", code="DomainRecordDuplicate",
                                     status_code=400)
        record_id = self.add(params["DomainName"], params["RR"], params["Type"], params["Value"],
                             ttl=params.get("TTL", 600), priority=params.get("Priority"))
        return {"RecordId": record_id, "RequestId": "req-add"}

    def _UpdateDomainRecord(self, params):
        record = self._find(params["RecordId"])
        record.update({
            "RR": params["RR"],
            "Type": params["Type"],
            "Value": params["Value"],
            "TTL": params.get("TTL", record["TTL"]),
            "Priority": params.get("Priority"),
        })
        return {"RecordId": record["RecordId"], "RequestId": "req-update"}

    def _DeleteDomainRecord(self, params):
        record = self._find(params["RecordId"])
        del self.records[record["RecordId"]]
        return {"RecordId": record["RecordId"], "RequestId": "req-delete"}

    def _DescribeDomainRecordInfo(self, params):
        return dict(self._find(params["RecordId"]))

    def _DescribeDomainRecords(self, params):
        page_size = int(params.get("PageSize", 20))
        if page_size > self.max_page_size:
            raise AliyunAPIError("PageSize is invalid.", code="InvalidPageSize", status_code=400)
        page_number = int(params.get("PageNumber", 1))

        matched = [
            dict(record) for record in self.records.values()
            if record["DomainName"] == params["DomainName"]
            and params.get("RRKeyWord", "") in record["RR"]
            and record["Type"] == params.get("TypeKeyWord", record["Type"])
            and params.get("ValueKeyWord", "") in record["Value"]
        ]
        start = (page_number - 1) * page_size
        return {
            "TotalCount": len(matched),
            "PageNumber": page_number,
            "PageSize": page_size,
            "DomainRecords": {"Record": matched[start:start + page_size]},
        }


@pytest.fixture
def aliyun_backend(monkeypatch) -> FakeAliyunBackend:
    """Route every AliyunDNSClient request to an in-memory backend."""
    backend = FakeAliyunBackend()
    monkeypatch.setattr(AliyunDNSClient, "request",
                        lambda self, action, params=None: backend.handle(action, dict(params or {})))
    return backend


# ============================================================================
# Fake Cloudflare SDK client
# ============================================================================


def make_cf_error(error_class, status: int, message: str = "error", code: int = 1000):
    """Build a cloudflare SDK status error the way the SDK raises it."""
    response = httpx.Response(status, request=httpx.Request("GET", "https://api.cloudflare.com/client/v4"))
    body = {"success": False, "errors": [{"code": code, "message": message}]}
    return error_class(message, response=response, body=body)


class FakeCloudflareRecords:
    """Stand-in for ``client.dns.records``."""

    def __init__(self, zone_name: str):
        self.zone_name = zone_name
        self.items: Dict[str, SimpleNamespace] = {}
        self.calls: List[tuple] = []
        self.errors: Dict[str, List[Exception]] = {}
        self._ids = itertools.count(1)

    def fail(self, method: str, error: Exception, times: int = 1):
        self.errors.setdefault(method, []).extend([error] * times)

    def _enter(self, method: str, kwargs: Dict[str, Any]):
        self.calls.append((method, kwargs))
        queued = self.errors.get(method)
        if queued:
            raise queued.pop(0)

    def _build(self, record_id: str, zone_id: str, data: Dict[str, Any]) -> SimpleNamespace:
        content = data.get("content")
        priority = data.get("priority")
        extra = data.get("data")
        if data["type"] == "SRV" and extra:
            content = f"{extra['weight']} {extra['port']} {extra['target']}"
            priority = extra["priority"]
        elif data["type"] == "CAA" and extra:
            content = f"{extra['flags']} {extra['tag']} \"{extra['value']}\""

        return SimpleNamespace(
            id=record_id,
            type=data["type"],
            name=data["name"],
            content=content,
            ttl=data.get("ttl", 1),
            priority=priority,
            proxied=data.get("proxied", False),
            proxiable=data["type"] in ("A", "AAAA", "CNAME"),
            comment=data.get("comment"),
            tags=data.get("tags", []),
            data=extra,
            zone_id=zone_id,
            zone_name=self.zone_name,
            created_on=None,
            modified_on=None,
        )

    def seed(self, zone_id: str, **data) -> SimpleNamespace:
        record_id = f"cf{next(self._ids):04d}"
        self.items[record_id] = self._build(record_id, zone_id, data)
        return self.items[record_id]

    def _get_existing(self, dns_record_id: str) -> SimpleNamespace:
        if dns_record_id not in self.items:
            raise make_cf_error(cloudflare.NotFoundError, 404, "Record not found", code=81044)
        return self.items[dns_record_id]

    def create(self, *, zone_id, **data):
        self._enter("create", dict(data, zone_id=zone_id))
        return self.seed(zone_id, **data)

    def edit(self, dns_record_id, *, zone_id, **data):
        self._enter("edit", dict(data, zone_id=zone_id, dns_record_id=dns_record_id))
        self._get_existing(dns_record_id)
        self.items[dns_record_id] = self._build(dns_record_id, zone_id, data)
        return self.items[dns_record_id]

    def delete(self, dns_record_id, *, zone_id):
        self._enter("delete", {"zone_id": zone_id, "dns_record_id": dns_record_id})
        self._get_existing(dns_record_id)
        del self.items[dns_record_id]
        return SimpleNamespace(id=dns_record_id)

    def get(self, dns_record_id, *, zone_id):
        self._enter("get", {"zone_id": zone_id, "dns_record_id": dns_record_id})
        return self._get_existing(dns_record_id)

    def list(self, *, zone_id, page=1, per_page=100, type=None, extra_query=None):
        self._enter("list", {"zone_id": zone_id, "page": page, "per_page": per_page, "type": type,
                             "extra_query": extra_query})
        extra_query = extra_query or {}
        matched = [
            item for item in self.items.values()
            if item.zone_id == zone_id
            and (type is None or item.type == type)
            and extra_query.get("name.contains", "") in item.name
            and extra_query.get("content.contains", "") in (item.content or "")
        ]
        start = (page - 1) * per_page
        result = matched[start:start + per_page]
        return SimpleNamespace(
            result=result,
            result_info=SimpleNamespace(page=page, per_page=per_page, count=len(result),
                                        total_count=len(matched)),
        )


class FakeCloudflareZones:
    def __init__(self, zone_id: str, zone_name: str):
        self.zone = SimpleNamespace(
            id=zone_id,
            name=zone_name,
            status="active",
            name_servers=["ada.ns.cloudflare.com", "bob.ns.cloudflare.com"],
            original_name_servers=["ns1.registrar.example"],
            original_registrar="example registrar",
            created_on=None,
            modified_on=None,
            activated_on=None,
        )
        self.errors: List[Exception] = []

    def get(self, *, zone_id):
        if self.errors:
            raise self.errors.pop(0)
        if zone_id != self.zone.id:
            raise make_cf_error(cloudflare.NotFoundError, 404, "Zone not found", code=1001)
        return self.zone


class FakeCloudflareClient:
    def __init__(self, zone_id: str = "zone123", zone_name: str = "example.com"):
        self.records = FakeCloudflareRecords(zone_name)
        self.dns = SimpleNamespace(records=self.records)
        self.zones = FakeCloudflareZones(zone_id, zone_name)
        self.init_kwargs: Dict[str, Any] = {}


@pytest.fixture
def cloudflare_api(monkeypatch) -> FakeCloudflareClient:
    """Replace the cloudflare SDK client class with an in-memory fake."""
    fake = FakeCloudflareClient()

    def build(**kwargs):
        fake.init_kwargs = kwargs
        return fake

    monkeypatch.setattr(cloudflare, "Cloudflare", build)
    return fake


# ============================================================================
# Config / provider fixtures
# ============================================================================


@pytest.fixture
def cf_config() -> DNSConfig:
    return DNSConfig(provider="cloudflare", cf_zone_id="zone123", cf_api_key="cf-global-key",
                     cf_email="admin@example.com")


@pytest.fixture
def aliyun_config() -> DNSConfig:
    return DNSConfig(provider="aliyun", aliyun_access_key_id="LTAIexample",
                     aliyun_access_key_secret="aliyun-secret", aliyun_domain_name="example.com")


@pytest.fixture
def cf_provider(cloudflare_api, cf_config) -> CloudflareDNSProvider:
    return CloudflareDNSProvider(cf_config, retry_delay=0)


@pytest.fixture
def aliyun_provider(aliyun_backend, aliyun_config) -> AliyunDNSProvider:
    return AliyunDNSProvider(aliyun_config, retry_delay=0)


@pytest.fixture
def manager() -> DNSManager:
    return DNSManager(ProviderRegistry(retry_delay=0), max_workers=4, pool_timeout=30)


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def db(tmp_path) -> DomainDatabase:
    return DomainDatabase(str(tmp_path / "domains.db"))


@pytest.fixture
def cf_domain(db, cf_config) -> int:
    """A stored domain currently served by Cloudflare."""
    return db.add_domain("example.com", "cloudflare", cf_config)
