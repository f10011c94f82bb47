"""
DNS错误类型定义

所有提供商的后端错误在离开提供商边界前都会被归一化为以下类型之一
"""

from typing import Optional


class DNSError(Exception):
    """DNS操作错误基类"""

    retryable = False

    def __init__(self, message: str, code: Optional[str] = None,
                 provider: Optional[str] = None, status_code: Optional[int] = None):
        """
        初始化错误

        Args:
            message: 错误消息
            code: 错误代码（后端原始代码或内部代码）
            provider: 提供商名称
            status_code: HTTP状态码
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.provider = provider
        self.status_code = status_code

    def __str__(self):
        error_parts = [self.message]
        if self.provider:
            error_parts.append(f"Provider: {self.provider}")
        if self.code:
            error_parts.append(f"Code: {self.code}")
        return " | ".join(error_parts)


class ConfigurationError(DNSError):
    """配置缺失或无效，致命错误，不重试"""

    def __init__(self, message: str, code: str = 'CONFIGURATION_ERROR', **kwargs):
        super().__init__(message, code=code, **kwargs)


class InvalidConfigError(ConfigurationError):
    """迁移目标配置不完整"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code='INVALID_CONFIG', **kwargs)


class ProviderNotRegisteredError(ConfigurationError):
    """提供商未注册（调用方错误）"""

    def __init__(self, key: str):
        super().__init__(f"提供商 {key} 未注册", code='PROVIDER_NOT_FOUND')
        self.key = key


class ValidationError(DNSError):
    """记录格式或内容无效"""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        kwargs.setdefault('code', 'VALIDATION_ERROR')
        super().__init__(message, **kwargs)
        self.field = field


class AuthenticationError(DNSError):
    """提供商拒绝凭据，永不重试"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('code', 'AUTHENTICATION_ERROR')
        kwargs.setdefault('status_code', 401)
        super().__init__(message, **kwargs)


class RateLimitError(DNSError):
    """后端限流，可退避重试"""

    retryable = True

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        kwargs.setdefault('code', 'RATE_LIMIT_ERROR')
        kwargs.setdefault('status_code', 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class NotFoundError(DNSError):
    """记录或区域不存在"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('code', 'NOT_FOUND')
        kwargs.setdefault('status_code', 404)
        super().__init__(message, **kwargs)


class DomainNotFoundError(NotFoundError):
    """存储中找不到域名"""

    def __init__(self, domain_id):
        super().__init__(f"域名 {domain_id} 不存在", code='DOMAIN_NOT_FOUND')
        self.domain_id = domain_id


class ProviderError(DNSError):
    """其他后端错误，保留原始代码和消息用于诊断"""

    retryable = True

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('code', 'PROVIDER_ERROR')
        super().__init__(message, **kwargs)


class SyncFailedError(DNSError):
    """同步时无法获取源记录"""

    def __init__(self, message: str = '获取源记录失败', **kwargs):
        super().__init__(message, code='SYNC_FAILED', **kwargs)
