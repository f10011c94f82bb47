"""
DNS providers package - DNS提供商模块

包含 CloudFlare 和阿里云DNS的实现
"""

from .base import DNSProviderBase
from .aliyun import AliyunDNSProvider
from .cloudflare import CloudflareDNSProvider
from .factory import ProviderFactory

__all__ = ['DNSProviderBase', 'AliyunDNSProvider', 'CloudflareDNSProvider', 'ProviderFactory']
