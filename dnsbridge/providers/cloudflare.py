"""
CloudFlare DNS提供商实现

基于官方 cloudflare SDK 管理区域内的DNS记录
"""

from typing import Any, Dict, List, Optional

import cloudflare
from loguru import logger

from .base import DNSProviderBase
from ..errors import (
    DNSError,
    AuthenticationError,
    RateLimitError,
    NotFoundError,
    ValidationError,
    ProviderError,
)
from ..types import (
    CLOUDFLARE,
    DNSConfig,
    DNSRecord,
    RecordInput,
    RecordResponse,
    RecordListResponse,
    RecordFilters,
    ResultInfo,
    DomainInfo,
    EmailSettings,
    EmailForwardingResult,
)
from ..utils import AUTH_FAILURE_MARKERS

# 只有这些类型可以开启代理
PROXIABLE_TYPES = ('A', 'AAAA', 'CNAME')
AUTO_TTL = 1


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return str(value)


def _error_details(error: cloudflare.APIStatusError) -> tuple:
    """从SDK错误的响应体中取出第一个错误码和消息"""
    body = getattr(error, 'body', None)
    if isinstance(body, dict):
        errors = body.get('errors') or []
        if errors and isinstance(errors[0], dict):
            first = errors[0]
            return str(first.get('code')) if first.get('code') is not None else None, first.get('message')
    return None, None


class CloudflareDNSProvider(DNSProviderBase):
    """CloudFlare DNS提供商实现"""

    provider_name = CLOUDFLARE
    min_ttl = 60
    max_ttl = 86400
    default_ttl = AUTO_TTL

    def __init__(self, config: DNSConfig, client: Optional[cloudflare.Cloudflare] = None, **options):
        """
        初始化CloudFlare DNS提供商

        Args:
            config: DNS配置，需包含 Zone ID 以及 Global API Key + Email 或 API Token
            client: 可选的SDK客户端实例
            **options: 重试与超时参数，见 DNSProviderBase
        """
        super().__init__(config, **options)

        self.zone_id = config.cf_zone_id
        if client is not None:
            self.cf = client
            self.auth_method = 'custom'
        elif config.cf_api_key and config.cf_email:
            # 重试由 with_retry 统一处理，关闭SDK自带重试
            self.cf = cloudflare.Cloudflare(
                api_key=config.cf_api_key,
                api_email=config.cf_email,
                timeout=self.timeout,
                max_retries=0,
            )
            self.auth_method = 'global_api_key'
        else:
            self.cf = cloudflare.Cloudflare(
                api_token=config.cf_api_token,
                timeout=self.timeout,
                max_retries=0,
            )
            self.auth_method = 'api_token'

        logger.debug(f"CloudFlare DNS提供商初始化完成 ({self.auth_method}): {self.zone_id}")

    def _map_error(self, error: Exception, operation: str) -> DNSError:
        """将SDK错误归一化为标准错误类型"""
        if isinstance(error, cloudflare.APITimeoutError):
            return ProviderError(f"CloudFlare {operation} 请求超时", code='TIMEOUT', provider=CLOUDFLARE)
        if isinstance(error, cloudflare.APIConnectionError):
            return ProviderError(f"CloudFlare {operation} 网络请求失败: {error}",
                                 code='NETWORK_ERROR', provider=CLOUDFLARE)
        if not isinstance(error, cloudflare.APIStatusError):
            return ProviderError(f"CloudFlare {operation} 失败: {error}", provider=CLOUDFLARE)

        code, detail = _error_details(error)
        message = f"CloudFlare {operation} 失败: {detail or error}"
        kwargs = {'provider': CLOUDFLARE, 'status_code': error.status_code}
        if code:
            kwargs['code'] = code

        if isinstance(error, (cloudflare.AuthenticationError, cloudflare.PermissionDeniedError)):
            return AuthenticationError(message, **kwargs)
        if isinstance(error, cloudflare.RateLimitError):
            retry_after = error.response.headers.get('retry-after')
            return RateLimitError(message, retry_after=float(retry_after) if retry_after else None, **kwargs)
        if isinstance(error, cloudflare.NotFoundError):
            return NotFoundError(message, **kwargs)
        if isinstance(error, (cloudflare.BadRequestError, cloudflare.UnprocessableEntityError)):
            # CloudFlare 对无效凭据有时返回 400
            if any(marker in message.lower() for marker in AUTH_FAILURE_MARKERS):
                return AuthenticationError(message, **kwargs)
            return ValidationError(message, **kwargs)
        return ProviderError(message, **kwargs)

    def _call(self, operation: str, func, **kwargs):
        def attempt():
            try:
                return func(**kwargs)
            except cloudflare.APIError as e:
                raise self._map_error(e, operation) from e
        return self.with_retry(attempt)

    def prepare_record(self, record: RecordInput) -> RecordInput:
        prepared = super().prepare_record(record)

        if prepared.proxied and prepared.type not in PROXIABLE_TYPES:
            logger.warning(f"{prepared.type} 记录不支持代理，记录 {prepared.name} 的 proxied 已强制为 False")
            prepared.proxied = False
        prepared.proxied = bool(prepared.proxied)

        # TTL=1 表示自动，代理记录的TTL固定为自动
        if record.ttl == AUTO_TTL or prepared.proxied:
            prepared.ttl = AUTO_TTL
        return prepared

    def _to_wire(self, record: RecordInput) -> Dict[str, Any]:
        """将标准记录转换为CloudFlare请求参数"""
        data: Dict[str, Any] = {
            'type': record.type,
            'name': record.name,
            'ttl': record.ttl,
            'proxied': record.proxied,
        }

        if record.type == 'MX':
            data['content'] = record.content.split()[1]
            data['priority'] = record.priority
        elif record.type == 'SRV':
            priority, weight, port, target = record.content.split()
            data['data'] = {
                'priority': int(priority),
                'weight': int(weight),
                'port': int(port),
                'target': target,
            }
        elif record.type == 'CAA':
            flags, tag, value = record.content.split(None, 2)
            data['data'] = {'flags': int(flags), 'tag': tag, 'value': value.strip('"')}
        else:
            data['content'] = record.content

        if record.comment:
            data['comment'] = record.comment
        if record.tags:
            data['tags'] = list(record.tags)
        return data

    def _from_wire(self, item: Any) -> DNSRecord:
        """将SDK返回的记录对象转换为标准格式"""
        record_type = getattr(item, 'type', '')
        content = getattr(item, 'content', '') or ''
        priority = getattr(item, 'priority', None)
        data = getattr(item, 'data', None)
        if data is not None and not isinstance(data, dict):
            data = data.model_dump() if hasattr(data, 'model_dump') else vars(data)

        if record_type == 'MX' and priority is not None and len(content.split()) == 1:
            content = f"{int(priority)} {content}"
        elif record_type == 'SRV':
            if data:
                priority = data.get('priority', priority)
                content = f"{priority} {data.get('weight')} {data.get('port')} {data.get('target')}"
            elif len(content.split()) == 3 and priority is not None:
                content = f"{int(priority)} {content}"

        return DNSRecord(
            id=getattr(item, 'id', ''),
            type=record_type,
            name=getattr(item, 'name', ''),
            content=content,
            ttl=int(getattr(item, 'ttl', None) or AUTO_TTL),
            priority=int(priority) if priority is not None and record_type in ('MX', 'SRV') else None,
            comment=getattr(item, 'comment', None),
            tags=list(getattr(item, 'tags', None) or []),
            proxied=bool(getattr(item, 'proxied', False)),
            proxiable=bool(getattr(item, 'proxiable', False)),
            zone_id=getattr(item, 'zone_id', None) or self.zone_id,
            zone_name=getattr(item, 'zone_name', None),
            created_on=_as_str(getattr(item, 'created_on', None)),
            modified_on=_as_str(getattr(item, 'modified_on', None)),
        )

    def create_dns_record(self, record: RecordInput) -> RecordResponse:
        prepared = self.prepare_record(record)
        logger.info(f"创建CloudFlare DNS记录: {prepared.name} {prepared.type} {prepared.content}")

        created = self._call('create', self.cf.dns.records.create, zone_id=self.zone_id, **self._to_wire(prepared))
        result = self._from_wire(created)
        logger.debug(f"CloudFlare DNS记录创建成功: {result.name} -> {result.id}")
        return RecordResponse(success=True, result=result)

    def update_dns_record(self, record_id: str, record: RecordInput) -> RecordResponse:
        prepared = self.prepare_record(record)
        logger.info(f"更新CloudFlare DNS记录: {record_id} -> {prepared.name} {prepared.type} {prepared.content}")

        updated = self._call('update', self.cf.dns.records.edit, dns_record_id=record_id,
                             zone_id=self.zone_id, **self._to_wire(prepared))
        return RecordResponse(success=True, result=self._from_wire(updated))

    def delete_dns_record(self, record_id: str) -> bool:
        logger.debug(f"删除CloudFlare DNS记录: {record_id}")
        self._call('delete', self.cf.dns.records.delete, dns_record_id=record_id, zone_id=self.zone_id)
        logger.info(f"CloudFlare DNS记录删除成功: {record_id}")
        return True

    def get_dns_record(self, record_id: str) -> RecordResponse:
        item = self._call('get', self.cf.dns.records.get, dns_record_id=record_id, zone_id=self.zone_id)
        return RecordResponse(success=True, result=self._from_wire(item))

    def get_dns_records(self, filters: Optional[RecordFilters] = None) -> RecordListResponse:
        filters = filters or RecordFilters()
        page = max(1, filters.page or 1)
        per_page = max(1, filters.per_page or 100)

        params: Dict[str, Any] = {'zone_id': self.zone_id, 'page': page, 'per_page': per_page}
        if filters.type:
            params['type'] = filters.type.upper()
        # 名称和内容使用子串匹配
        extra_query = {}
        if filters.name:
            extra_query['name.contains'] = filters.name
        if filters.content:
            extra_query['content.contains'] = filters.content
        if extra_query:
            params['extra_query'] = extra_query

        response = self._call('list', self.cf.dns.records.list, **params)

        items: List[Any] = list(getattr(response, 'result', None) or [])
        records = [self._from_wire(item) for item in items]
        info = getattr(response, 'result_info', None)
        total_count = getattr(info, 'total_count', None)
        if total_count is None:
            total_count = (page - 1) * per_page + len(records)

        logger.debug(f"获取到 {len(records)} 条CloudFlare DNS记录 (第{page}页，共{total_count}条)")
        return RecordListResponse(
            success=True,
            result=records,
            result_info=ResultInfo(count=len(records), page=page, per_page=per_page, total_count=int(total_count)),
        )

    def get_domain_info(self) -> DomainInfo:
        zone = self._call('zone', self.cf.zones.get, zone_id=self.zone_id)
        return DomainInfo(
            id=zone.id,
            name=zone.name,
            status=getattr(zone, 'status', None) or 'unknown',
            name_servers=list(getattr(zone, 'name_servers', None) or []),
            original_name_servers=list(getattr(zone, 'original_name_servers', None) or []),
            original_registrar=getattr(zone, 'original_registrar', None),
            created_on=_as_str(getattr(zone, 'created_on', None)),
            modified_on=_as_str(getattr(zone, 'modified_on', None)),
            activated_on=_as_str(getattr(zone, 'activated_on', None)),
        )

    def configure_email_forwarding(self, settings: EmailSettings) -> EmailForwardingResult:
        logger.info(f"CloudFlare 邮件转发需通过 Email Routing 配置: enabled={settings.enabled}")
        return EmailForwardingResult(
            supported=True,
            configured=False,
            message='CloudFlare 邮件转发需要在 Email Routing 中单独配置',
        )
