"""
DNS提供商工厂

根据配置中的 provider 字段创建对应的DNS提供商实例
"""

from typing import Any, Dict, List, Tuple, Type

from loguru import logger

from .aliyun import AliyunDNSProvider
from .base import DNSProviderBase
from .cloudflare import CloudflareDNSProvider
from ..errors import ConfigurationError
from ..types import ALIYUN, CLOUDFLARE, DNSConfig, REQUIRED_FIELDS


class ProviderFactory:
    """DNS提供商工厂类"""

    # 注册的提供商类
    _providers: Dict[str, Type[DNSProviderBase]] = {
        CLOUDFLARE: CloudflareDNSProvider,
        ALIYUN: AliyunDNSProvider,
    }

    @classmethod
    def create_provider(cls, config: DNSConfig, **options: Any) -> DNSProviderBase:
        """
        创建DNS提供商实例

        Args:
            config: DNS配置
            **options: 传给提供商的重试与超时参数（max_retries / retry_delay / timeout）

        Returns:
            DNS提供商实例

        Raises:
            ConfigurationError: 提供商不支持或配置不完整时
        """
        provider_name = (config.provider or '').lower()

        if provider_name not in cls._providers:
            raise ConfigurationError(
                f"不支持的DNS提供商: {provider_name}. 支持的提供商: {cls.get_supported_providers()}",
                provider=provider_name or None,
            )

        logger.debug(f"正在创建 {provider_name} 提供商实例...")
        return cls._providers[provider_name](config, **options)

    @classmethod
    def register_provider(cls, name: str, provider_class: Type[DNSProviderBase]) -> None:
        """
        注册新的DNS提供商

        Args:
            name: 提供商名称
            provider_class: 提供商类
        """
        name = name.lower()
        cls._providers[name] = provider_class
        logger.info(f"注册DNS提供商: {name}")

    @classmethod
    def get_supported_providers(cls) -> List[str]:
        return list(cls._providers.keys())

    @classmethod
    def is_provider_supported(cls, provider_name: str) -> bool:
        return (provider_name or '').lower() in cls._providers

    @classmethod
    def validate_provider_config(cls, config: DNSConfig) -> Tuple[bool, List[str]]:
        """
        检查配置是否可以用于创建提供商（不发起网络请求）

        Returns:
            (是否有效, 错误信息列表)
        """
        if not cls.is_provider_supported(config.provider):
            return False, [f"不支持的DNS提供商: {config.provider}"]
        errors = [f"{label} 未配置" for label in config.missing_fields()]
        return not errors, errors

    @classmethod
    def get_provider_config_requirements(cls, provider_name: str) -> Dict[str, str]:
        """
        获取指定提供商的配置要求

        Args:
            provider_name: 提供商名称

        Returns:
            配置字段 -> 说明
        """
        requirements = {}
        for requirement, label in REQUIRED_FIELDS.get((provider_name or '').lower(), []):
            if isinstance(requirement, tuple):
                key = ' | '.join('+'.join(group) for group in requirement)
            else:
                key = requirement
            requirements[key] = label
        return requirements
