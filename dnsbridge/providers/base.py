"""
DNS提供商抽象基类

定义了所有DNS提供商必须实现的接口
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, TypeVar

from loguru import logger

from ..errors import ConfigurationError
from ..types import (
    DNSConfig,
    RecordInput,
    RecordResponse,
    RecordListResponse,
    RecordFilters,
    DomainInfo,
    EmailSettings,
    EmailForwardingResult,
)
from ..utils import call_with_retry
from ..validators import validate_record, clamp_ttl

T = TypeVar('T')


class DNSProviderBase(ABC):
    """DNS提供商抽象基类"""

    # 子类覆盖：提供商标识和TTL合法范围
    provider_name: str = ''
    min_ttl: int = 1
    max_ttl: int = 86400
    default_ttl: int = 600

    def __init__(self, config: DNSConfig, max_retries: int = 3, retry_delay: float = 1,
                 timeout: float = 10):
        """
        初始化提供商，缺少必需配置时立即失败（在任何网络调用之前）

        Args:
            config: DNS配置
            max_retries: 单次操作最大尝试次数
            retry_delay: 首次重试等待时间（秒），之后指数翻倍
            timeout: 每个外部请求的超时时间（秒）

        Raises:
            ConfigurationError: 配置缺失或提供商类型不匹配时
        """
        if config.provider != self.provider_name:
            raise ConfigurationError(
                f"配置的提供商类型 {config.provider} 与 {self.provider_name} 不匹配",
                provider=self.provider_name,
            )
        missing = config.missing_fields()
        if missing:
            raise ConfigurationError(
                f"{self.provider_name} 配置不完整: {', '.join(missing)} 未配置",
                provider=self.provider_name,
            )

        self.config = config
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    @abstractmethod
    def create_dns_record(self, record: RecordInput) -> RecordResponse:
        """
        创建DNS记录

        Args:
            record: 记录内容

        Returns:
            包含提供商分配ID的记录

        Raises:
            ValidationError: 记录格式错误（不发起网络请求）
            AuthenticationError / RateLimitError / ProviderError: 后端调用失败
        """

    @abstractmethod
    def update_dns_record(self, record_id: str, record: RecordInput) -> RecordResponse:
        """
        更新DNS记录

        Raises:
            NotFoundError: 记录不属于当前区域时
        """

    @abstractmethod
    def delete_dns_record(self, record_id: str) -> bool:
        """删除DNS记录，记录已不存在时抛出 NotFoundError，由调用方决定是否视为成功"""

    @abstractmethod
    def get_dns_records(self, filters: Optional[RecordFilters] = None) -> RecordListResponse:
        """获取DNS记录列表（分页）"""

    @abstractmethod
    def get_dns_record(self, record_id: str) -> RecordResponse:
        """获取单个DNS记录"""

    @abstractmethod
    def get_domain_info(self) -> DomainInfo:
        """获取域名信息"""

    @abstractmethod
    def configure_email_forwarding(self, settings: EmailSettings) -> EmailForwardingResult:
        """配置邮件转发，不支持的提供商返回 supported=False"""

    def validate_domain(self) -> bool:
        """
        验证域名是否托管在当前平台

        Returns:
            域名可访问返回True，否则False
        """
        try:
            self.get_domain_info()
            return True
        except Exception as e:
            logger.warning(f"{self.provider_name} 域名验证失败: {e}")
            return False

    def get_provider_name(self) -> str:
        return self.provider_name

    def get_safe_config(self) -> dict:
        """获取配置信息（隐藏敏感信息）"""
        return self.config.safe_dict()

    def prepare_record(self, record: RecordInput) -> RecordInput:
        """校验记录并钳制TTL，返回提交给后端的记录"""
        normalized = validate_record(record)
        normalized.ttl = clamp_ttl(normalized.ttl, self.min_ttl, self.max_ttl, self.default_ttl)
        if record.ttl is not None and normalized.ttl != record.ttl:
            logger.debug(f"TTL {record.ttl} 超出 {self.provider_name} 范围，已调整为 {normalized.ttl}")
        return normalized

    def with_retry(self, operation: Callable[[], T]) -> T:
        """使用提供商的重试策略执行后端调用"""
        return call_with_retry(operation, max_attempts=self.max_retries, base_delay=self.retry_delay)
