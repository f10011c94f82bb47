"""
DNS提供商注册表

按键保存已创建的提供商实例，供管理器和迁移器按键查找
"""

import threading
from typing import Any, Dict, List, Tuple

from loguru import logger

from .errors import ProviderNotRegisteredError
from .providers.base import DNSProviderBase
from .providers.factory import ProviderFactory
from .types import DNSConfig


class ProviderRegistry:
    """线程安全的提供商注册表，同一个键重复注册时后写入者生效"""

    def __init__(self, max_retries: int = 3, retry_delay: float = 1, timeout: float = 10):
        """
        Args:
            max_retries: 新建提供商的最大尝试次数
            retry_delay: 新建提供商的首次重试等待时间（秒）
            timeout: 新建提供商的请求超时时间（秒）
        """
        self._lock = threading.Lock()
        self._providers: Dict[str, DNSProviderBase] = {}
        self.provider_options = {
            'max_retries': max_retries,
            'retry_delay': retry_delay,
            'timeout': timeout,
        }

    def register(self, key: str, config: DNSConfig) -> DNSProviderBase:
        """
        根据配置创建提供商并注册到指定键，替换已有的同名条目

        Raises:
            ConfigurationError: 提供商不支持或配置不完整时
        """
        provider = ProviderFactory.create_provider(config, **self.provider_options)
        with self._lock:
            replaced = key in self._providers
            self._providers[key] = provider

        logger.debug(f"{'替换' if replaced else '注册'}DNS提供商: {key} ({config.provider})")
        return provider

    def get(self, key: str) -> DNSProviderBase:
        with self._lock:
            provider = self._providers.get(key)
        if provider is None:
            raise ProviderNotRegisteredError(key)
        return provider

    def remove(self, key: str) -> bool:
        with self._lock:
            removed = self._providers.pop(key, None) is not None
        if removed:
            logger.debug(f"移除DNS提供商: {key}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._providers.clear()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._providers.keys())

    def items(self) -> List[Tuple[str, DNSProviderBase]]:
        with self._lock:
            return list(self._providers.items())

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._providers

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)

    def validate_all(self) -> Dict[str, Dict[str, Any]]:
        """
        验证所有已注册提供商的域名是否可访问

        Returns:
            键 -> {'valid': bool, 'message': str | None}
        """
        results = {}
        for key, provider in self.items():
            valid = provider.validate_domain()
            results[key] = {
                'valid': valid,
                'message': None if valid else f"{provider.get_provider_name()} 域名验证失败",
            }
        return results
