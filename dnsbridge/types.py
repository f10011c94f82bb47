"""
DNS提供商通用类型定义

包含配置、记录、过滤条件和响应等共享数据结构
"""

from dataclasses import dataclass, field, asdict, fields, replace
from typing import Optional, List, Dict, Any


CLOUDFLARE = 'cloudflare'
ALIYUN = 'aliyun'

SUPPORTED_RECORD_TYPES = ['A', 'AAAA', 'CNAME', 'MX', 'TXT', 'NS', 'SRV', 'CAA', 'PTR']

# 需要优先级的记录类型
PRIORITY_RECORD_TYPES = ('MX', 'SRV')

# 每个提供商必需的配置字段，元组表示"任选一组"
REQUIRED_FIELDS: Dict[str, List[Any]] = {
    CLOUDFLARE: [
        ('cf_zone_id', 'Cloudflare Zone ID'),
        ((('cf_api_key', 'cf_email'), ('cf_api_token',)), 'Cloudflare API Key + Email 或 API Token'),
    ],
    ALIYUN: [
        ('aliyun_access_key_id', '阿里云 AccessKey ID'),
        ('aliyun_access_key_secret', '阿里云 AccessKey Secret'),
        ('aliyun_domain_name', '阿里云域名名称'),
    ],
}

_SECRET_FIELDS = ('cf_api_key', 'cf_api_token', 'aliyun_access_key_secret')


@dataclass(frozen=True)
class DNSConfig:
    """DNS提供商配置，构造提供商后不可修改"""

    provider: str
    cf_zone_id: Optional[str] = None
    cf_api_key: Optional[str] = None
    cf_email: Optional[str] = None
    cf_api_token: Optional[str] = None
    aliyun_access_key_id: Optional[str] = None
    aliyun_access_key_secret: Optional[str] = None
    aliyun_region: Optional[str] = 'cn-hangzhou'
    aliyun_domain_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], provider: Optional[str] = None) -> 'DNSConfig':
        """从字典（如数据库行）构建配置，忽略无关键"""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        if provider:
            values['provider'] = provider
        values['provider'] = (values.get('provider') or CLOUDFLARE).lower()
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def with_updates(self, **changes) -> 'DNSConfig':
        return replace(self, **changes)

    def missing_fields(self) -> List[str]:
        """
        检查当前提供商缺失的必需字段

        Returns:
            缺失字段的描述列表，不支持的提供商返回空列表
        """
        missing = []
        for requirement, label in REQUIRED_FIELDS.get(self.provider, []):
            if isinstance(requirement, tuple):
                satisfied = any(all(getattr(self, name) for name in group) for group in requirement)
            else:
                satisfied = bool(getattr(self, requirement))
            if not satisfied:
                missing.append(label)
        return missing

    def safe_dict(self) -> Dict[str, Any]:
        """获取配置信息（隐藏敏感信息）"""
        data = self.to_dict()
        for name in _SECRET_FIELDS:
            if data.get(name):
                data[name] = '***' + data[name][-4:]
        return data


@dataclass
class RecordInput:
    """创建/更新记录时提交的字段"""

    type: str
    name: str
    content: str
    ttl: Optional[int] = None
    priority: Optional[int] = None
    comment: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    proxied: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecordInput':
        return cls(
            type=(data.get('type') or '').upper(),
            name=data.get('name') or '',
            content=data.get('content') or '',
            ttl=data.get('ttl'),
            priority=data.get('priority'),
            comment=data.get('comment'),
            tags=list(data.get('tags') or []),
            proxied=data.get('proxied'),
        )


@dataclass
class DNSRecord:
    """提供商返回的标准化DNS记录，id由提供商分配且不可跨提供商复用"""

    id: str
    type: str
    name: str
    content: str
    ttl: int
    priority: Optional[int] = None
    comment: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    proxied: bool = False
    proxiable: bool = False
    zone_id: Optional[str] = None
    zone_name: Optional[str] = None
    created_on: Optional[str] = None
    modified_on: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_input(self) -> RecordInput:
        """去掉提供商自有字段（id、zone、时间戳），用于在其他提供商重建"""
        return RecordInput(
            type=self.type,
            name=self.name,
            content=self.content,
            ttl=self.ttl,
            priority=self.priority,
            comment=self.comment or None,
            tags=list(self.tags),
            proxied=self.proxied,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RecordFilters:
    """记录列表过滤条件"""

    type: Optional[str] = None
    name: Optional[str] = None
    content: Optional[str] = None
    page: int = 1
    per_page: int = 100


@dataclass
class ResultInfo:
    count: int
    page: int
    per_page: int
    total_count: int


@dataclass
class RecordResponse:
    success: bool
    result: Optional[DNSRecord] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class RecordListResponse:
    success: bool
    result: List[DNSRecord] = field(default_factory=list)
    result_info: Optional[ResultInfo] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DomainInfo:
    id: str
    name: str
    status: str
    name_servers: List[str] = field(default_factory=list)
    original_name_servers: List[str] = field(default_factory=list)
    original_registrar: Optional[str] = None
    created_on: Optional[str] = None
    modified_on: Optional[str] = None
    activated_on: Optional[str] = None
    record_count: Optional[int] = None


@dataclass
class EmailSettings:
    enabled: bool
    catch_all: Optional[str] = None
    rules: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class EmailForwardingResult:
    """邮件转发配置结果，不支持的提供商返回 supported=False"""

    supported: bool
    configured: bool
    message: str = ''
