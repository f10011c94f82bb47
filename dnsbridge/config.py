"""
配置管理模块

实现环境变量 + 配置文件混合配置方案
配置优先级：命令行参数 > 环境变量 > 配置文件 > 默认值
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from dotenv import load_dotenv
from loguru import logger

from .types import ALIYUN, CLOUDFLARE, DNSConfig

SECRET_KEYS = ('cloudflare_api_key', 'cloudflare_api_token', 'aliyun_access_key_secret')

# 配置属性 -> 环境变量名
ENV_KEYS = {
    'cloudflare_api_key': 'CLOUDFLARE_API_KEY',
    'cloudflare_email': 'CLOUDFLARE_EMAIL',
    'cloudflare_api_token': 'CLOUDFLARE_API_TOKEN',
    'cloudflare_zone_id': 'CLOUDFLARE_ZONE_ID',
    'aliyun_access_key_id': 'ALIYUN_ACCESS_KEY_ID',
    'aliyun_access_key_secret': 'ALIYUN_ACCESS_KEY_SECRET',
    'aliyun_region': 'ALIYUN_REGION',
    'aliyun_domain_name': 'ALIYUN_DOMAIN_NAME',
    'database_path': 'DATABASE_PATH',
    'log_level': 'LOG_LEVEL',
    'log_file': 'LOG_FILE',
    'max_retries': 'MAX_RETRIES',
    'retry_delay': 'RETRY_DELAY',
    'request_timeout': 'REQUEST_TIMEOUT',
    'max_concurrent_threads': 'MAX_CONCURRENT_THREADS',
    'thread_pool_timeout': 'THREAD_POOL_TIMEOUT',
    'migration_batch_size': 'MIGRATION_BATCH_SIZE',
    'throttle_every': 'THROTTLE_EVERY',
    'throttle_delay': 'THROTTLE_DELAY',
}


class Config:
    """配置管理器"""

    def __init__(self, config_file: Optional[str] = None, use_dotenv: bool = True):
        """
        初始化配置管理器

        Args:
            config_file: 配置文件路径，如果为None则使用默认路径
            use_dotenv: 是否加载当前目录下的 .env 文件
        """
        self.config_file = config_file or str(Path() / 'config.json')
        self.config_dir = Path(self.config_file).parent

        if use_dotenv:
            load_dotenv()

        self._init_config_properties()
        self.load_config()

    def _init_config_properties(self):
        """初始化配置属性"""
        # CloudFlare配置
        self.cloudflare_api_key: Optional[str] = None
        self.cloudflare_email: Optional[str] = None
        self.cloudflare_api_token: Optional[str] = None
        self.cloudflare_zone_id: Optional[str] = None

        # 阿里云配置
        self.aliyun_access_key_id: Optional[str] = None
        self.aliyun_access_key_secret: Optional[str] = None
        self.aliyun_region: str = 'cn-hangzhou'
        self.aliyun_domain_name: Optional[str] = None

        # 数据库配置
        self.database_path: str = "./domains.db"

        # 日志配置
        self.log_level: str = "INFO"
        self.log_file: Optional[str] = None

        # 重试与超时配置
        self.max_retries: int = 3
        self.retry_delay: float = 1
        self.request_timeout: float = 10

        # 多线程配置
        self.max_concurrent_threads: int = 5
        self.thread_pool_timeout: int = 300

        # 迁移配置
        self.migration_batch_size: int = 10
        self.throttle_every: int = 5
        self.throttle_delay: float = 1.0

        self.dry_run: bool = False
        self.verbose: bool = False

    def _read(self, name: str, file_config: Dict[str, Any], cast: Callable[[Any], Any] = str) -> None:
        """按 环境变量 > 配置文件 > 默认值 读取一个配置项"""
        raw = os.getenv(ENV_KEYS[name])
        if raw in (None, ''):
            raw = file_config.get(name)
        if raw in (None, ''):
            return

        try:
            setattr(self, name, cast(raw))
        except (TypeError, ValueError):
            logger.warning(f"无效的{ENV_KEYS[name]}值: {raw}，使用默认值")

    def load_config(self) -> None:
        """加载配置，按优先级顺序：环境变量 > 配置文件 > 默认值"""
        file_config = self._load_from_file()

        for name in ('cloudflare_api_key', 'cloudflare_email', 'cloudflare_api_token', 'cloudflare_zone_id',
                     'aliyun_access_key_id', 'aliyun_access_key_secret', 'aliyun_region', 'aliyun_domain_name',
                     'database_path', 'log_level', 'log_file'):
            self._read(name, file_config)

        for name in ('max_retries', 'max_concurrent_threads', 'thread_pool_timeout',
                     'migration_batch_size', 'throttle_every'):
            self._read(name, file_config, int)

        for name in ('retry_delay', 'request_timeout', 'throttle_delay'):
            self._read(name, file_config, float)

        logger.debug("配置加载完成")

    def _load_from_file(self) -> Dict[str, Any]:
        """从配置文件加载配置"""
        if not os.path.exists(self.config_file):
            logger.debug(f"配置文件不存在: {self.config_file}")
            return {}

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = json.load(f)
                logger.debug(f"从配置文件加载配置: {self.config_file}")
                return config
        except (json.JSONDecodeError, IOError) as e:
            logger.error(f"加载配置文件失败: {e}")
            return {}

    def save_config(self) -> None:
        """保存配置到文件"""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        config_data = {name: getattr(self, name) for name in ENV_KEYS}
        config_data = {k: v for k, v in config_data.items() if v is not None}

        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=2, ensure_ascii=False)
                logger.info(f"配置已保存到: {self.config_file}")
        except IOError as e:
            logger.error(f"保存配置文件失败: {e}")

    def build_provider_config(self, provider: str, domain_name: Optional[str] = None) -> DNSConfig:
        """
        使用已加载的凭据构建提供商配置

        Args:
            provider: 提供商名称
            domain_name: 阿里云域名名称，为空时使用 ALIYUN_DOMAIN_NAME

        Returns:
            DNS配置（可能不完整，由调用方校验）
        """
        provider = provider.lower()
        if provider == CLOUDFLARE:
            return DNSConfig(
                provider=CLOUDFLARE,
                cf_zone_id=self.cloudflare_zone_id,
                cf_api_key=self.cloudflare_api_key,
                cf_email=self.cloudflare_email,
                cf_api_token=self.cloudflare_api_token,
            )
        return DNSConfig(
            provider=provider,
            aliyun_access_key_id=self.aliyun_access_key_id,
            aliyun_access_key_secret=self.aliyun_access_key_secret,
            aliyun_region=self.aliyun_region,
            aliyun_domain_name=domain_name or self.aliyun_domain_name,
        )

    def validate_config(self, providers: Iterable[str] = ()) -> List[str]:
        """
        验证配置的完整性

        Args:
            providers: 需要检查凭据的提供商

        Returns:
            错误信息列表，如果为空则表示配置有效
        """
        errors = []

        for provider in providers:
            provider = provider.lower()
            if provider == CLOUDFLARE:
                if not (self.cloudflare_api_key and self.cloudflare_email) and not self.cloudflare_api_token:
                    errors.append("缺少CloudFlare认证配置 (需要API Key+Email 或 API Token)")
                if self.cloudflare_api_key and not self.cloudflare_email:
                    errors.append("使用CloudFlare API Key时必须配置Email")
            elif provider == ALIYUN:
                if not self.aliyun_access_key_id:
                    errors.append("缺少阿里云 AccessKey ID 配置 (ALIYUN_ACCESS_KEY_ID)")
                if not self.aliyun_access_key_secret:
                    errors.append("缺少阿里云 AccessKey Secret 配置 (ALIYUN_ACCESS_KEY_SECRET)")
            else:
                errors.append(f"不支持的DNS提供商: {provider}")

        if not self.database_path:
            errors.append("缺少数据库路径配置")

        valid_log_levels = ['TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL']
        if self.log_level.upper() not in valid_log_levels:
            errors.append(f"无效的日志级别: {self.log_level}")

        if self.max_retries < 1:
            errors.append("max_retries必须大于0")
        if self.retry_delay < 0:
            errors.append("retry_delay不能为负数")
        if self.request_timeout <= 0:
            errors.append("request_timeout必须大于0")
        if self.max_concurrent_threads < 1:
            errors.append("max_concurrent_threads必须大于0")
        if self.thread_pool_timeout < 0:
            errors.append("thread_pool_timeout不能为负数")
        if self.migration_batch_size < 1:
            errors.append("migration_batch_size必须大于0")
        if self.throttle_every < 1:
            errors.append("throttle_every必须大于0")
        if self.throttle_delay < 0:
            errors.append("throttle_delay不能为负数")

        return errors

    def is_valid(self, providers: Iterable[str] = ()) -> bool:
        return len(self.validate_config(providers)) == 0

    def get_config_summary(self) -> Dict[str, Any]:
        """获取配置摘要（隐藏敏感信息）"""
        summary = {name: getattr(self, name) for name in ENV_KEYS}
        for name in SECRET_KEYS:
            summary[name] = '***' if summary[name] else None
        summary['config_file'] = self.config_file
        return summary

    def update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """从字典更新配置"""
        for key, value in config_dict.items():
            if hasattr(self, key):
                setattr(self, key, value)
                logger.debug(f"更新配置: {key} = {value}")
