"""
数据库管理模块

保存域名及其DNS提供商配置，并记录迁移历史（SQLite）
"""

import json
import os
import sqlite3
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from .types import CLOUDFLARE, DNSConfig
from .utils import format_domain_name

# 与 DNSConfig 字段一一对应的列
PROVIDER_COLUMNS = (
    'cf_zone_id',
    'cf_api_key',
    'cf_email',
    'cf_api_token',
    'aliyun_access_key_id',
    'aliyun_access_key_secret',
    'aliyun_region',
    'aliyun_domain_name',
)

# 旧版本数据库可能缺少的列
UPGRADE_COLUMNS = {
    'dns_provider': "TEXT DEFAULT 'cloudflare'",
    'enable_dns': 'BOOLEAN DEFAULT TRUE',
    'cf_api_token': 'TEXT',
    'aliyun_access_key_id': 'TEXT',
    'aliyun_access_key_secret': 'TEXT',
    'aliyun_region': "TEXT DEFAULT 'cn-hangzhou'",
    'aliyun_domain_name': 'TEXT',
}


class DomainDatabase:
    """域名数据库管理器"""

    def __init__(self, db_path: str):
        """
        初始化数据库连接

        Args:
            db_path: SQLite数据库文件路径
        """
        self.db_path = db_path
        self.ensure_db_directory()
        self.create_tables()
        self._upgrade_schema()

    def ensure_db_directory(self):
        """确保数据库目录存在"""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

    def get_connection(self) -> sqlite3.Connection:
        """获取数据库连接"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def create_tables(self) -> None:
        """创建数据库表结构"""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS domains (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    domain_name TEXT UNIQUE NOT NULL,
                    dns_provider TEXT DEFAULT 'cloudflare',
                    enable_dns BOOLEAN DEFAULT TRUE,
                    cf_zone_id TEXT,
                    cf_api_key TEXT,
                    cf_email TEXT,
                    cf_api_token TEXT,
                    aliyun_access_key_id TEXT,
                    aliyun_access_key_secret TEXT,
                    aliyun_region TEXT DEFAULT 'cn-hangzhou',
                    aliyun_domain_name TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS migrations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    domain_id INTEGER NOT NULL,
                    source_provider TEXT,
                    target_provider TEXT NOT NULL,
                    dry_run BOOLEAN DEFAULT FALSE,
                    success BOOLEAN DEFAULT FALSE,
                    state TEXT,
                    total_records INTEGER DEFAULT 0,
                    migrated_records INTEGER DEFAULT 0,
                    failed_records INTEGER DEFAULT 0,
                    errors TEXT,
                    execution_time INTEGER DEFAULT 0,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            cursor.execute('CREATE INDEX IF NOT EXISTS idx_domain_name ON domains(domain_name)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_migration_domain ON migrations(domain_id)')

            conn.commit()
            logger.debug("数据库表结构创建完成")

    def _upgrade_schema(self) -> None:
        """为旧版本数据库补充缺失的列"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA table_info(domains)")
            columns = {column[1] for column in cursor.fetchall()}

            added = []
            for name, definition in UPGRADE_COLUMNS.items():
                if name not in columns:
                    logger.info(f"数据库迁移：添加 {name} 列...")
                    cursor.execute(f"ALTER TABLE domains ADD COLUMN {name} {definition}")
                    added.append(name)

            # 旧表在补充 enable_dns 列之后才能建索引
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_enable_dns ON domains(enable_dns)')
            conn.commit()
            if added:
                logger.info("数据库迁移完成")

    def add_domain(self, domain_name: str, dns_provider: str = CLOUDFLARE,
                   config: Optional[Union[DNSConfig, Dict[str, Any]]] = None, enable_dns: bool = True) -> int:
        """
        添加域名到数据库

        Args:
            domain_name: 域名
            dns_provider: 当前DNS提供商
            config: 提供商配置
            enable_dns: 是否启用DNS管理

        Returns:
            插入记录的ID

        Raises:
            sqlite3.IntegrityError: 如果域名已存在
        """
        domain_name = format_domain_name(domain_name)
        values = self._config_columns(config)
        columns = ['domain_name', 'dns_provider', 'enable_dns'] + list(values)
        params = [domain_name, dns_provider.lower(), enable_dns] + list(values.values())

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO domains ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                params,
            )
            domain_id = cursor.lastrowid
            conn.commit()

        logger.info(f"添加域名到数据库: {domain_name} (ID: {domain_id})")
        return domain_id

    @staticmethod
    def _config_columns(config: Optional[Union[DNSConfig, Dict[str, Any]]]) -> Dict[str, Any]:
        if config is None:
            return {}
        data = config.to_dict() if isinstance(config, DNSConfig) else dict(config)
        return {name: data[name] for name in PROVIDER_COLUMNS if data.get(name) is not None}

    def get_domain_by_id(self, domain_id: int) -> Optional[Dict]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM domains WHERE id = ?', (domain_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_domain_by_name(self, domain_name: str) -> Optional[Dict]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM domains WHERE domain_name = ?', (format_domain_name(domain_name),))
            row = cursor.fetchone()
            return dict(row) if row else None

    def list_all_domains(self, provider_filter: Optional[str] = None) -> List[Dict]:
        """
        列出所有域名

        Args:
            provider_filter: 按DNS提供商过滤

        Returns:
            域名列表
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            if provider_filter:
                cursor.execute('SELECT * FROM domains WHERE dns_provider = ? ORDER BY id ASC',
                               (provider_filter.lower(),))
            else:
                cursor.execute('SELECT * FROM domains ORDER BY id ASC')
            return [dict(row) for row in cursor.fetchall()]

    def get_domains_by_feature(self, feature: str) -> List[Dict]:
        """
        获取启用了指定功能的域名

        Args:
            feature: 功能列名，目前支持 enable_dns
        """
        if feature not in ('enable_dns',):
            raise ValueError(f"不支持的域名功能: {feature}")

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT * FROM domains WHERE {feature} = TRUE ORDER BY id ASC')
            return [dict(row) for row in cursor.fetchall()]

    def update_domain_provider_config(self, domain_id: int, provider: str,
                                      config: Union[DNSConfig, Dict[str, Any]]) -> None:
        """
        将域名切换到新的DNS提供商并保存其配置

        其他提供商的凭据保持不变，便于回滚。

        Args:
            domain_id: 域名ID
            provider: 新的DNS提供商
            config: 新提供商的配置
        """
        values = self._config_columns(config)
        assignments = ['dns_provider = ?'] + [f"{name} = ?" for name in values] + ['updated_at = CURRENT_TIMESTAMP']
        params = [provider.lower()] + list(values.values()) + [domain_id]

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"UPDATE domains SET {', '.join(assignments)} WHERE id = ?", params)
            conn.commit()

        logger.info(f"域名 {domain_id} 的DNS提供商已更新为 {provider}")

    def record_migration(self, domain_id: int, source_provider: Optional[str], target_provider: str,
                         result: Dict[str, Any], dry_run: bool = False) -> int:
        """
        记录一次迁移的结果

        Args:
            domain_id: 域名ID
            source_provider: 源提供商
            target_provider: 目标提供商
            result: 迁移结果字典（success / state / 计数 / errors / execution_time）
            dry_run: 是否为预览模式

        Returns:
            迁移记录ID
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO migrations (domain_id, source_provider, target_provider, dry_run, success, state,
                                        total_records, migrated_records, failed_records, errors, execution_time)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                domain_id,
                source_provider,
                target_provider,
                dry_run,
                bool(result.get('success')),
                result.get('state'),
                result.get('total_records', 0),
                result.get('migrated_records', 0),
                result.get('failed_records', 0),
                json.dumps(result.get('errors') or [], ensure_ascii=False),
                result.get('execution_time', 0),
            ))
            migration_id = cursor.lastrowid
            conn.commit()
            return migration_id

    def list_migrations(self, domain_id: Optional[int] = None) -> List[Dict]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            if domain_id is None:
                cursor.execute('SELECT * FROM migrations ORDER BY id ASC')
            else:
                cursor.execute('SELECT * FROM migrations WHERE domain_id = ? ORDER BY id ASC', (domain_id,))

            migrations = []
            for row in cursor.fetchall():
                item = dict(row)
                item['errors'] = json.loads(item['errors']) if item['errors'] else []
                migrations.append(item)
            return migrations
