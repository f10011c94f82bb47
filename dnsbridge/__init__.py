"""
DNS Bridge - 多平台DNS记录管理与迁移工具
"""

from .dns_manager import DNSManager
from .errors import (
    DNSError,
    ConfigurationError,
    InvalidConfigError,
    ProviderNotRegisteredError,
    ValidationError,
    AuthenticationError,
    RateLimitError,
    NotFoundError,
    DomainNotFoundError,
    ProviderError,
    SyncFailedError,
)
from .migrator import Migrator, MigrationOptions, MigrationResult, MigrationState, DomainMigrationResult
from .registry import ProviderRegistry
from .types import DNSConfig, DNSRecord, RecordInput, RecordFilters

__version__ = '0.1.0'
