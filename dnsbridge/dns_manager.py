"""
DNS管理器

在提供商注册表之上提供统一的记录操作入口，以及批量操作和跨提供商同步
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from .errors import ConfigurationError, DNSError, NotFoundError, SyncFailedError
from .providers.base import DNSProviderBase
from .registry import ProviderRegistry
from .types import (
    DNSConfig,
    DNSRecord,
    RecordInput,
    RecordResponse,
    RecordListResponse,
    RecordFilters,
    DomainInfo,
    EmailSettings,
    EmailForwardingResult,
)

DEFAULT_PAGE_SIZE = 100


@dataclass
class BatchItemResult:
    """批量操作中单个条目的结果，index 对应输入顺序"""

    index: int
    success: bool
    record: Optional[DNSRecord] = None
    record_id: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


@dataclass
class BatchSummary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0

    @classmethod
    def from_results(cls, results: Sequence[BatchItemResult]) -> 'BatchSummary':
        succeeded = sum(1 for item in results if item.success)
        return cls(total=len(results), succeeded=succeeded, failed=len(results) - succeeded)


@dataclass
class SyncResult:
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


class ThreadSafeStats:
    """线程安全的成功/失败计数器"""

    def __init__(self):
        self._lock = threading.Lock()
        self._success = 0
        self._failed = 0
        self._errors: List[str] = []

    def add_success(self):
        with self._lock:
            self._success += 1

    def add_failure(self, error: str):
        with self._lock:
            self._failed += 1
            self._errors.append(error)

    def to_sync_result(self) -> SyncResult:
        with self._lock:
            return SyncResult(success=self._success, failed=self._failed, errors=list(self._errors))


def describe_record_error(record: Any, error: BaseException) -> str:
    """格式化为 "<名称> (<类型>): <消息>" """
    message = getattr(error, 'message', None) or str(error)
    return f"{record.name} ({record.type}): {message}"


class DNSManager:
    """DNS管理器"""

    def __init__(self, registry: Optional[ProviderRegistry] = None, max_workers: int = 5,
                 pool_timeout: float = 300, **provider_options):
        """
        初始化DNS管理器

        Args:
            registry: 提供商注册表，为空时新建
            max_workers: 批量操作的最大并发线程数
            pool_timeout: 批量操作等待全部完成的超时时间（秒）
            **provider_options: 新建注册表时的重试与超时参数
        """
        self.registry = registry or ProviderRegistry(**provider_options)
        self.max_workers = max(1, max_workers)
        self.pool_timeout = pool_timeout
        self.default_provider: Optional[str] = None

    @classmethod
    def from_config(cls, config) -> 'DNSManager':
        """使用应用配置创建管理器"""
        registry = ProviderRegistry(
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            timeout=config.request_timeout,
        )
        return cls(registry, max_workers=config.max_concurrent_threads, pool_timeout=config.thread_pool_timeout)

    # ---- 提供商管理 ----

    def register_provider(self, key: str, config: DNSConfig, set_default: bool = False) -> DNSProviderBase:
        provider = self.registry.register(key, config)
        if set_default or self.default_provider is None:
            self.default_provider = key
        return provider

    def set_default_provider(self, key: str) -> None:
        self.registry.get(key)
        self.default_provider = key
        logger.debug(f"默认DNS提供商设置为: {key}")

    def remove_provider(self, key: str) -> bool:
        removed = self.registry.remove(key)
        if self.default_provider == key:
            self.default_provider = None
        return removed

    def get_provider(self, key: Optional[str] = None) -> DNSProviderBase:
        """
        获取提供商，未指定键时使用默认提供商

        Raises:
            ConfigurationError: 未指定键且没有默认提供商时
            ProviderNotRegisteredError: 键未注册时
        """
        key = key or self.default_provider
        if not key:
            raise ConfigurationError('未指定DNS提供商且没有设置默认提供商')
        return self.registry.get(key)

    def get_all_providers(self) -> List[Dict[str, Any]]:
        return [
            {
                'key': key,
                'provider': provider.get_provider_name(),
                'config': provider.get_safe_config(),
                'default': key == self.default_provider,
            }
            for key, provider in self.registry.items()
        ]

    def validate_all_providers(self) -> Dict[str, Dict[str, Any]]:
        return self.registry.validate_all()

    # ---- 单条操作 ----

    def create_dns_record(self, record: RecordInput, key: Optional[str] = None) -> RecordResponse:
        return self.get_provider(key).create_dns_record(record)

    def update_dns_record(self, record_id: str, record: RecordInput, key: Optional[str] = None) -> RecordResponse:
        return self.get_provider(key).update_dns_record(record_id, record)

    def delete_dns_record(self, record_id: str, key: Optional[str] = None) -> bool:
        return self.get_provider(key).delete_dns_record(record_id)

    def get_dns_records(self, filters: Optional[RecordFilters] = None,
                        key: Optional[str] = None) -> RecordListResponse:
        return self.get_provider(key).get_dns_records(filters)

    def get_dns_record(self, record_id: str, key: Optional[str] = None) -> RecordResponse:
        return self.get_provider(key).get_dns_record(record_id)

    def get_domain_info(self, key: Optional[str] = None) -> DomainInfo:
        return self.get_provider(key).get_domain_info()

    def validate_domain(self, key: Optional[str] = None) -> bool:
        return self.get_provider(key).validate_domain()

    def configure_email_forwarding(self, settings: EmailSettings,
                                   key: Optional[str] = None) -> EmailForwardingResult:
        return self.get_provider(key).configure_email_forwarding(settings)

    def get_all_dns_records(self, filters: Optional[RecordFilters] = None,
                            key: Optional[str] = None) -> List[DNSRecord]:
        """
        逐页读取全部DNS记录

        Args:
            filters: 过滤条件，page 字段会被忽略
            key: 提供商键

        Returns:
            全部记录
        """
        provider = self.get_provider(key)
        base = filters or RecordFilters()
        per_page = base.per_page or DEFAULT_PAGE_SIZE

        records: List[DNSRecord] = []
        page = 1
        while True:
            response = provider.get_dns_records(replace(base, page=page, per_page=per_page))
            records.extend(response.result)

            total = response.result_info.total_count if response.result_info else len(records)
            if not response.result or len(response.result) < per_page or page * per_page >= total:
                break
            page += 1

        logger.debug(f"共获取 {len(records)} 条DNS记录 ({provider.get_provider_name()})")
        return records

    # ---- 批量操作 ----

    def _run_batch(self, items: Sequence[Any], worker: Callable[[int, Any], BatchItemResult],
                   label: str) -> List[BatchItemResult]:
        results: List[Optional[BatchItemResult]] = [None] * len(items)
        if not items:
            return []

        max_threads = min(self.max_workers, len(items))
        logger.info(f"开始批量{label}: {len(items)} 条，使用 {max_threads} 个线程")

        executor = ThreadPoolExecutor(max_workers=max_threads)
        try:
            futures = {executor.submit(worker, index, item): index for index, item in enumerate(items)}
            try:
                for future in as_completed(futures, timeout=self.pool_timeout):
                    index = futures[future]
                    try:
                        results[index] = future.result()
                    except Exception as e:
                        logger.error(f"批量{label}第 {index + 1} 条异常: {e}")
                        results[index] = BatchItemResult(index=index, success=False, error=str(e),
                                                         error_type=type(e).__name__)
            except FuturesTimeoutError:
                logger.error(f"批量{label}超时（{self.pool_timeout} 秒）")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for index, result in enumerate(results):
            if result is None:
                results[index] = BatchItemResult(index=index, success=False, error='操作超时', error_type='Timeout')

        summary = BatchSummary.from_results(results)
        logger.info(f"批量{label}完成: 成功 {summary.succeeded}，失败 {summary.failed}")
        return results

    def batch_create_dns_records(self, records: Sequence[RecordInput],
                                 key: Optional[str] = None) -> List[BatchItemResult]:
        """
        批量创建DNS记录，单条失败不影响其他记录

        Returns:
            与输入顺序一致的结果列表
        """
        provider = self.get_provider(key)

        def create(index: int, record: RecordInput) -> BatchItemResult:
            try:
                response = provider.create_dns_record(record)
                return BatchItemResult(index=index, success=True, record=response.result,
                                       record_id=response.result.id if response.result else None)
            except DNSError as e:
                logger.warning(f"创建DNS记录失败: {describe_record_error(record, e)}")
                return BatchItemResult(index=index, success=False, error=describe_record_error(record, e),
                                       error_type=type(e).__name__)

        return self._run_batch(records, create, '创建DNS记录')

    def batch_delete_dns_records(self, record_ids: Sequence[str], key: Optional[str] = None,
                                 ignore_missing: bool = False) -> List[BatchItemResult]:
        """
        批量删除DNS记录

        Args:
            record_ids: 记录ID列表
            key: 提供商键
            ignore_missing: 记录不存在时视为删除成功
        """
        provider = self.get_provider(key)

        def delete(index: int, record_id: str) -> BatchItemResult:
            try:
                provider.delete_dns_record(record_id)
                return BatchItemResult(index=index, success=True, record_id=record_id)
            except NotFoundError as e:
                if ignore_missing:
                    logger.debug(f"DNS记录已不存在: {record_id}")
                    return BatchItemResult(index=index, success=True, record_id=record_id)
                return BatchItemResult(index=index, success=False, record_id=record_id, error=e.message,
                                       error_type=type(e).__name__)
            except DNSError as e:
                logger.warning(f"删除DNS记录失败 [{record_id}]: {e}")
                return BatchItemResult(index=index, success=False, record_id=record_id, error=e.message,
                                       error_type=type(e).__name__)

        return self._run_batch(record_ids, delete, '删除DNS记录')

    def sync_records_to_provider(self, from_key: str, to_key: str,
                                 filters: Optional[RecordFilters] = None) -> SyncResult:
        """
        将一个提供商的记录复制到另一个提供商（总是新建记录）

        Raises:
            SyncFailedError: 无法读取源记录时
        """
        target = self.get_provider(to_key)
        try:
            records = self.get_all_dns_records(filters, from_key)
        except DNSError as e:
            raise SyncFailedError(f"获取源记录失败: {e.message}", provider=e.provider) from e

        stats = ThreadSafeStats()

        def copy(index: int, record: DNSRecord) -> BatchItemResult:
            try:
                response = target.create_dns_record(record.to_input())
                stats.add_success()
                return BatchItemResult(index=index, success=True, record=response.result)
            except DNSError as e:
                stats.add_failure(describe_record_error(record, e))
                return BatchItemResult(index=index, success=False, error=e.message, error_type=type(e).__name__)

        self._run_batch(records, copy, f"同步DNS记录 {from_key} -> {to_key}")
        result = stats.to_sync_result()
        logger.info(f"同步完成: 成功 {result.success}，失败 {result.failed}")
        return result
