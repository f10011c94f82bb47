"""
工具函数模块

包含重试机制、日志设置等辅助功能
"""

import re
import sys
from typing import Callable, TypeVar

import requests
from loguru import logger
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from .errors import DNSError, AuthenticationError

T = TypeVar('T')

AUTH_FAILURE_MARKERS = ('authentication', 'unauthorized', 'invalidaccesskeyid', 'signaturedoesnotmatch', '认证失败')


def is_retryable_error(error: BaseException) -> bool:
    """
    判断错误是否可以重试

    认证错误永远不重试；校验、未找到、配置错误同样不重试。
    限流和通用提供商错误可以重试，除非消息表明是认证失败。
    """
    if isinstance(error, AuthenticationError):
        return False
    if isinstance(error, DNSError):
        if not error.retryable:
            return False
        message = str(error).lower()
        return not any(marker in message for marker in AUTH_FAILURE_MARKERS)
    return isinstance(error, (requests.ConnectionError, requests.Timeout))


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception()
    logger.warning(f"第{retry_state.attempt_number}次尝试失败，准备重试: {error}")


def call_with_retry(func: Callable[[], T], max_attempts: int = 3, base_delay: float = 1,
                    max_delay: float = 30) -> T:
    """
    带指数退避的有限次数重试

    Args:
        func: 无参可调用对象
        max_attempts: 最大尝试次数（含第一次）
        base_delay: 首次重试前的等待时间（秒），之后每次翻倍
        max_delay: 单次等待上限（秒）

    Returns:
        func 的返回值
    """
    retryer = Retrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=base_delay, min=0, max=max_delay),
        retry=retry_if_exception(is_retryable_error),
        before_sleep=_log_retry,
        reraise=True,
    )
    return retryer(func)


def setup_logging(config) -> None:
    """
    设置loguru日志配置

    Args:
        config: 配置对象
    """
    # 移除默认handler
    logger.remove()

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stdout,
        level=config.log_level.upper(),
        format=console_format,
        colorize=True
    )

    if config.log_file:
        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss} | "
            "{level: <8} | "
            "{name}:{function}:{line} - "
            "{message}"
        )

        logger.add(
            config.log_file,
            level="DEBUG",
            format=file_format,
            rotation="10 MB",
            retention="30 days",
            compression="zip",
            encoding="utf-8"
        )

        logger.info(f"日志文件输出已启用: {config.log_file}")

    logger.debug(f"日志系统初始化完成，级别: {config.log_level}")


def format_domain_name(domain: str) -> str:
    """
    格式化域名，确保格式正确

    Args:
        domain: 原始域名

    Returns:
        格式化后的域名
    """
    domain = domain.strip().lower()

    # 移除协议前缀
    if domain.startswith('http://'):
        domain = domain[7:]
    elif domain.startswith('https://'):
        domain = domain[8:]

    return domain.rstrip('/').rstrip('.')


def validate_domain_name(domain: str) -> bool:
    """
    验证域名格式是否正确

    Args:
        domain: 域名

    Returns:
        是否有效
    """
    pattern = r'^[a-zA-Z0-9_]([a-zA-Z0-9\-_]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9_]([a-zA-Z0-9\-_]{0,61}[a-zA-Z0-9])?)*$'

    if not domain or len(domain) > 253:
        return False

    return bool(re.match(pattern, domain))
