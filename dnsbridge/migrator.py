"""
DNS迁移器

将存储中某个域名的全部DNS记录从当前提供商复制到目标提供商，
统计成功/失败数量，可选验证，并在迁移完成后更新存储中的提供商配置
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from .database import DomainDatabase
from .dns_manager import DNSManager, describe_record_error
from .errors import AuthenticationError, DNSError, DomainNotFoundError, InvalidConfigError
from .providers.factory import ProviderFactory
from .types import ALIYUN, CLOUDFLARE, DNSConfig, DNSRecord


class MigrationState(Enum):
    INITIALIZED = 'initialized'
    SOURCE_RESOLVED = 'source_resolved'
    VALIDATED = 'validated'
    DRY_RUN_REPORTED = 'dry_run_reported'
    MIGRATING = 'migrating'
    MIGRATED = 'migrated'
    VERIFIED = 'verified'
    VERIFICATION_SKIPPED = 'verification_skipped'
    ROLLED_BACK = 'rolled_back'
    FAILED = 'failed'


@dataclass
class MigrationOptions:
    dry_run: bool = False
    batch_size: int = 10
    continue_on_error: bool = False
    verify_after_migration: bool = True
    # 每成功迁移 throttle_every 条记录暂停 throttle_delay 秒
    throttle_every: int = 5
    throttle_delay: float = 1.0


@dataclass
class MigrationResult:
    """
    单个域名的迁移结果

    migrated_records + failed_records <= total_records；
    提前中止时只计入导致中止的那条失败记录。
    """

    success: bool = False
    total_records: int = 0
    migrated_records: int = 0
    failed_records: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    execution_time: int = 0
    state: MigrationState = MigrationState.INITIALIZED
    created_record_ids: List[str] = field(default_factory=list)
    aborted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'total_records': self.total_records,
            'migrated_records': self.migrated_records,
            'failed_records': self.failed_records,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'execution_time': self.execution_time,
            'state': self.state.value,
            'created_record_ids': list(self.created_record_ids),
            'aborted': self.aborted,
        }


@dataclass
class DomainMigrationResult:
    domain_id: Any
    domain_name: str
    success: bool
    result: MigrationResult


def build_stored_config(domain: Dict[str, Any], provider: Optional[str] = None) -> DNSConfig:
    """根据存储中的域名行构建提供商配置，阿里云域名名称缺省为域名本身"""
    config = DNSConfig.from_dict(domain, provider=provider or domain.get('dns_provider') or CLOUDFLARE)
    if config.provider == ALIYUN and not config.aliyun_domain_name:
        config = config.with_updates(aliyun_domain_name=domain.get('domain_name'))
    return config


class Migrator:
    """DNS迁移器"""

    def __init__(self, dns_manager: DNSManager, database: DomainDatabase):
        """
        Args:
            dns_manager: 用于注册临时提供商并执行记录操作的管理器
            database: 域名存储
        """
        self.dns_manager = dns_manager
        self.database = database

    @staticmethod
    def _transition(result: MigrationResult, state: MigrationState, domain_label: str) -> None:
        logger.debug(f"迁移状态 [{domain_label}]: {result.state.value} -> {state.value}")
        result.state = state

    def _fail(self, result: MigrationResult, domain_label: str, message: str) -> MigrationResult:
        result.success = False
        result.errors.append(message)
        self._transition(result, MigrationState.FAILED, domain_label)
        logger.error(f"❌ 迁移失败 [{domain_label}]: {message}")
        return result

    def migrate_domain(self, domain_id: Any, target_provider: str, target_config: Optional[DNSConfig] = None,
                       options: Optional[MigrationOptions] = None) -> DomainMigrationResult:
        """
        迁移单个域名的全部DNS记录

        Args:
            domain_id: 存储中的域名ID
            target_provider: 目标提供商
            target_config: 目标提供商配置，阿里云域名名称为空时使用存储中的域名
            options: 迁移选项

        Returns:
            迁移结果，所有可预期的失败都以 success=False 返回而不抛出异常
        """
        options = options or MigrationOptions()
        target_provider = target_provider.lower()
        started = time.monotonic()
        result = MigrationResult()

        domain = self.database.get_domain_by_id(domain_id)
        if not domain:
            self._fail(result, str(domain_id), DomainNotFoundError(domain_id).message)
            result.execution_time = int((time.monotonic() - started) * 1000)
            return DomainMigrationResult(domain_id=domain_id, domain_name='', success=False, result=result)

        domain_name = domain['domain_name']
        source_provider = domain.get('dns_provider') or CLOUDFLARE
        self._transition(result, MigrationState.SOURCE_RESOLVED, domain_name)
        logger.info(f"🔄 开始迁移 {domain_name}: {source_provider} -> {target_provider}"
                    f"{' (预览模式)' if options.dry_run else ''}")

        target_config = self._prepare_target_config(domain, target_provider, target_config)
        valid, config_errors = ProviderFactory.validate_provider_config(target_config)
        if not valid:
            error = InvalidConfigError(f"目标提供商配置无效: {'; '.join(config_errors)}", provider=target_provider)
            self._fail(result, domain_name, error.message)
            result.execution_time = int((time.monotonic() - started) * 1000)
            return DomainMigrationResult(domain_id=domain_id, domain_name=domain_name, success=False, result=result)

        self._transition(result, MigrationState.VALIDATED, domain_name)

        nonce = uuid.uuid4().hex[:8]
        source_key = f"source_{source_provider}_{domain_name}_{nonce}"
        target_key = f"target_{target_provider}_{domain_name}_{nonce}"

        try:
            self.dns_manager.register_provider(source_key, build_stored_config(domain))
            self.dns_manager.register_provider(target_key, target_config)

            try:
                records = self.dns_manager.get_all_dns_records(key=source_key)
            except DNSError as e:
                self._fail(result, domain_name, f"获取源记录失败: {e.message}")
                return self._finish(domain_id, domain_name, result, started)

            result.total_records = len(records)

            if options.dry_run:
                result.success = True
                result.warnings.append(f"预览模式：将迁移 {len(records)} 条记录")
                self._transition(result, MigrationState.DRY_RUN_REPORTED, domain_name)
                logger.info(f"预览模式 [{domain_name}]: 共 {len(records)} 条记录待迁移")
                return self._finish(domain_id, domain_name, result, started)

            self._transition(result, MigrationState.MIGRATING, domain_name)
            self._execute_migration(records, target_key, options, result, domain_name)

            if result.aborted:
                # 中止的迁移不切换存储中的提供商配置
                self._transition(result, MigrationState.FAILED, domain_name)
                logger.error(f"❌ 迁移已中止 [{domain_name}]: 成功 {result.migrated_records}，失败 {result.failed_records}")
            else:
                self._transition(result, MigrationState.MIGRATED, domain_name)
                if options.verify_after_migration:
                    self._verify_counts(target_key, result, domain_name)
                else:
                    self._transition(result, MigrationState.VERIFICATION_SKIPPED, domain_name)

                # 与记录创建不在同一个事务中
                self.database.update_domain_provider_config(domain_id, target_provider, target_config)
                result.success = result.failed_records == 0

            self.database.record_migration(domain_id, source_provider, target_provider, result.to_dict())
            return self._finish(domain_id, domain_name, result, started)

        except DNSError as e:
            return self._finish(domain_id, domain_name, self._fail(result, domain_name, str(e)), started)
        finally:
            self.dns_manager.remove_provider(source_key)
            self.dns_manager.remove_provider(target_key)

    @staticmethod
    def _prepare_target_config(domain: Dict[str, Any], target_provider: str,
                               target_config: Optional[DNSConfig]) -> DNSConfig:
        config = target_config or DNSConfig(provider=target_provider)
        if config.provider != target_provider:
            config = config.with_updates(provider=target_provider)
        if target_provider == ALIYUN and not config.aliyun_domain_name:
            config = config.with_updates(
                aliyun_domain_name=domain.get('aliyun_domain_name') or domain['domain_name'])
        if target_provider == CLOUDFLARE and not config.cf_zone_id and domain.get('cf_zone_id'):
            config = config.with_updates(cf_zone_id=domain['cf_zone_id'])
        return config

    @staticmethod
    def _finish(domain_id: Any, domain_name: str, result: MigrationResult, started: float) -> DomainMigrationResult:
        result.execution_time = int((time.monotonic() - started) * 1000)
        if result.success:
            logger.info(f"✅ 迁移完成 [{domain_name}]: 成功 {result.migrated_records}/{result.total_records}，"
                        f"耗时 {result.execution_time}ms")
        return DomainMigrationResult(domain_id=domain_id, domain_name=domain_name, success=result.success,
                                     result=result)

    def _execute_migration(self, records: Sequence[DNSRecord], target_key: str, options: MigrationOptions,
                           result: MigrationResult, domain_name: str) -> None:
        """逐条在目标提供商创建记录，continue_on_error=False 时遇到第一条失败即中止"""
        target = self.dns_manager.get_provider(target_key)
        batch_size = max(1, options.batch_size)
        throttle_every = max(1, options.throttle_every)

        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            logger.debug(f"迁移批次 [{domain_name}]: 第 {start + 1}-{start + len(batch)} 条")

            for record in batch:
                try:
                    response = target.create_dns_record(record.to_input())
                except DNSError as e:
                    result.failed_records += 1
                    result.errors.append(describe_record_error(record, e))
                    logger.warning(f"记录迁移失败 [{domain_name}]: {describe_record_error(record, e)}")

                    if isinstance(e, AuthenticationError) or not options.continue_on_error:
                        result.aborted = True
                        return
                    continue

                result.migrated_records += 1
                if response.result and response.result.id:
                    result.created_record_ids.append(response.result.id)

                if options.throttle_delay > 0 and result.migrated_records % throttle_every == 0:
                    time.sleep(options.throttle_delay)

    def _verify_counts(self, target_key: str, result: MigrationResult, domain_name: str) -> None:
        try:
            target_records = self.dns_manager.get_all_dns_records(key=target_key)
        except DNSError as e:
            result.warnings.append(f"迁移验证失败: {e.message}")
            self._transition(result, MigrationState.VERIFICATION_SKIPPED, domain_name)
            return

        if len(target_records) != result.total_records:
            result.warnings.append(f"记录数量不匹配：源 {result.total_records}，目标 {len(target_records)}")
            logger.warning(f"⚠️ 记录数量不匹配 [{domain_name}]: 源 {result.total_records}，目标 {len(target_records)}")
        self._transition(result, MigrationState.VERIFIED, domain_name)

    def migrate_multiple_domains(self, domain_ids: Sequence[Any], target_provider: str,
                                 target_config: Optional[DNSConfig] = None,
                                 options: Optional[MigrationOptions] = None) -> List[DomainMigrationResult]:
        """
        依次迁移多个域名，continue_on_error=False 时在第一个失败的域名后停止
        """
        options = options or MigrationOptions()
        if target_config is not None and len(domain_ids) > 1:
            # 每个域名使用自己的阿里云域名名称和 Zone ID
            target_config = target_config.with_updates(aliyun_domain_name=None, cf_zone_id=None)

        results = []
        for domain_id in domain_ids:
            outcome = self.migrate_domain(domain_id, target_provider, target_config, options)
            results.append(outcome)
            if not outcome.success and not options.continue_on_error:
                logger.warning(f"域名 {outcome.domain_name or domain_id} 迁移失败，停止后续迁移")
                break

        succeeded = sum(1 for item in results if item.success)
        logger.info(f"批量迁移完成: 成功 {succeeded}/{len(domain_ids)} 个域名")
        return results

    def migrate_all_dns_domains(self, target_provider: str, target_config: Optional[DNSConfig] = None,
                                options: Optional[MigrationOptions] = None) -> List[DomainMigrationResult]:
        """迁移所有启用了DNS功能的域名"""
        domains = self.database.get_domains_by_feature('enable_dns')
        logger.info(f"找到 {len(domains)} 个启用DNS的域名")
        return self.migrate_multiple_domains([domain['id'] for domain in domains], target_provider,
                                             target_config, options)

    def verify_migration(self, domain_id: Any, target_provider: str) -> Dict[str, Any]:
        """
        使用存储中的配置验证目标提供商上的域名

        Returns:
            {'valid': bool, 'errors': [str]}，域名可访问且至少有一条记录时有效
        """
        domain = self.database.get_domain_by_id(domain_id)
        if not domain:
            return {'valid': False, 'errors': ['域名不存在']}

        key = f"verify_{target_provider}_{domain['domain_name']}_{uuid.uuid4().hex[:8]}"
        try:
            self.dns_manager.register_provider(key, build_stored_config(domain, provider=target_provider))
            if not self.dns_manager.validate_domain(key):
                return {'valid': False, 'errors': ['域名验证失败']}

            records = self.dns_manager.get_dns_records(key=key)
            return {'valid': bool(records.success and records.result), 'errors': []}
        except DNSError as e:
            return {'valid': False, 'errors': [e.message]}
        finally:
            self.dns_manager.remove_provider(key)

    def rollback_migration(self, domain_id: Any, result: MigrationResult, previous_config: DNSConfig,
                           target_config: Optional[DNSConfig] = None) -> MigrationResult:
        """
        删除迁移在目标提供商上创建的记录，并恢复存储中的提供商配置

        Args:
            domain_id: 域名ID
            result: 要回滚的迁移结果
            previous_config: 迁移前的提供商配置
            target_config: 目标提供商配置，为空时使用存储中当前的配置

        Returns:
            描述清理过程的结果，已不存在的记录视为删除成功
        """
        started = time.monotonic()
        rollback = MigrationResult(total_records=len(result.created_record_ids))

        domain = self.database.get_domain_by_id(domain_id)
        if not domain:
            self._fail(rollback, str(domain_id), DomainNotFoundError(domain_id).message)
            return rollback

        domain_name = domain['domain_name']
        config = target_config or build_stored_config(domain)
        key = f"rollback_{config.provider}_{domain_name}_{uuid.uuid4().hex[:8]}"
        logger.info(f"🔄 开始回滚 {domain_name}: 删除 {len(result.created_record_ids)} 条记录")

        try:
            self.dns_manager.register_provider(key, config)
            outcomes = self.dns_manager.batch_delete_dns_records(result.created_record_ids, key=key,
                                                                 ignore_missing=True)
        except DNSError as e:
            self._fail(rollback, domain_name, str(e))
            return rollback
        finally:
            self.dns_manager.remove_provider(key)

        for outcome in outcomes:
            if outcome.success:
                rollback.migrated_records += 1
            else:
                rollback.failed_records += 1
                rollback.errors.append(f"{outcome.record_id}: {outcome.error}")

        self.database.update_domain_provider_config(domain_id, previous_config.provider, previous_config)
        rollback.success = rollback.failed_records == 0
        rollback.execution_time = int((time.monotonic() - started) * 1000)
        self._transition(rollback, MigrationState.ROLLED_BACK if rollback.success else MigrationState.FAILED,
                         domain_name)
        logger.info(f"回滚完成 [{domain_name}]: 删除 {rollback.migrated_records}，失败 {rollback.failed_records}")
        return rollback
