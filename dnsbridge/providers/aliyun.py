"""
阿里云DNS提供商实现

通过阿里云云解析RPC接口管理DNS记录。阿里云使用相对记录名（RR），
TTL合法范围为 600-86400 秒，单页最多返回 500 条记录。
"""

from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from .aliyun_client import AliyunDNSClient, AliyunAPIError
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
    ALIYUN,
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
from ..validators import extract_rr, rr_to_fqdn

ALIYUN_MAX_PAGE_SIZE = 500
ALIYUN_DEFAULT_NAME_SERVERS = ['vip1.alidns.com', 'vip2.alidns.com']

AUTH_ERROR_CODES = (
    'InvalidAccessKeyId',
    'InvalidAccessKeySecret',
    'SignatureDoesNotMatch',
    'IncompleteSignature',
    'Forbidden',
)
VALIDATION_ERROR_CODES = ('DomainRecordDuplicate', 'DomainRecordConflict', 'MissingParameter')


class AliyunDNSProvider(DNSProviderBase):
    """阿里云DNS提供商实现"""

    provider_name = ALIYUN
    min_ttl = 600
    max_ttl = 86400
    default_ttl = 600

    def __init__(self, config: DNSConfig, client: Optional[AliyunDNSClient] = None, **options):
        """
        初始化阿里云DNS提供商

        Args:
            config: DNS配置，需包含 AccessKey ID/Secret 和域名
            client: 可选的API客户端实例
            **options: 重试与超时参数，见 DNSProviderBase
        """
        super().__init__(config, **options)

        self.zone_name = config.aliyun_domain_name.rstrip('.').lower()
        self.region = config.aliyun_region or 'cn-hangzhou'
        self.client = client or AliyunDNSClient(
            config.aliyun_access_key_id,
            config.aliyun_access_key_secret,
            region=self.region,
            timeout=self.timeout,
        )
        logger.debug(f"阿里云DNS提供商初始化完成: {self.zone_name}")

    def _map_error(self, error: AliyunAPIError, operation: str) -> DNSError:
        """将阿里云错误归一化为标准错误类型"""
        code = error.code or ''
        status = error.status_code
        message = f"阿里云 {operation} 失败: {error.message}"
        kwargs = {'provider': ALIYUN, 'status_code': status}
        if code:
            kwargs['code'] = code

        if code.startswith(AUTH_ERROR_CODES) or status in (401, 403):
            return AuthenticationError(message, **kwargs)
        if code.startswith('Throttling') or status == 429:
            return RateLimitError(message, **kwargs)
        if 'NotExist' in code or 'NoExist' in code or 'NotBelongToUser' in code or status == 404:
            return NotFoundError(message, **kwargs)
        if code.startswith('Invalid') or code.startswith(VALIDATION_ERROR_CODES):
            return ValidationError(message, **kwargs)
        return ProviderError(message, **kwargs)

    def _request(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return self.client.request(action, params)
        except AliyunAPIError as e:
            raise self._map_error(e, action) from e
        except requests.Timeout as e:
            raise ProviderError(f"阿里云 {action} 请求超时: {e}", code='TIMEOUT', provider=ALIYUN) from e
        except requests.RequestException as e:
            raise ProviderError(f"阿里云 {action} 网络请求失败: {e}", code='NETWORK_ERROR', provider=ALIYUN) from e

    def _call(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.with_retry(lambda: self._request(action, params))

    def _report_unsupported_fields(self, record: RecordInput) -> None:
        if record.proxied:
            logger.warning(f"阿里云 DNS 不支持代理，记录 {record.name} 的 proxied 已强制为 False")
        if record.comment or record.tags:
            logger.warning(f"阿里云 DNS 不支持记录备注和标签，记录 {record.name} 的 comment/tags 已忽略")

    def _to_wire(self, record: RecordInput) -> Dict[str, Any]:
        """将标准记录转换为阿里云请求参数"""
        value = record.content
        if record.type == 'MX':
            # 阿里云 MX 记录值只包含目标域名，优先级单独传递
            value = record.content.split()[1]

        params = {
            'RR': extract_rr(record.name, self.zone_name),
            'Type': record.type,
            'Value': value,
            'TTL': record.ttl,
            'Line': 'default',
        }
        if record.type in ('MX', 'SRV'):
            params['Priority'] = record.priority
        return params

    def _from_wire(self, item: Dict[str, Any]) -> DNSRecord:
        """将阿里云记录格式转换为标准格式"""
        record_type = item.get('Type', '')
        value = item.get('Value', '')
        priority = item.get('Priority')

        if record_type == 'MX' and priority is not None and len(value.split()) == 1:
            value = f"{priority} {value}"
        elif record_type == 'SRV':
            parts = value.split()
            if len(parts) == 3 and priority is not None:
                value = f"{priority} {value}"
            elif len(parts) == 4 and parts[0].isascii() and parts[0].isdigit():
                priority = int(parts[0])

        return DNSRecord(
            id=str(item.get('RecordId', '')),
            type=record_type,
            name=rr_to_fqdn(item.get('RR', '@'), self.zone_name),
            content=value,
            ttl=int(item.get('TTL') or self.default_ttl),
            priority=priority if record_type in ('MX', 'SRV') else None,
            comment=item.get('Remark') or None,
            proxied=False,
            proxiable=False,
            zone_name=self.zone_name,
            meta={'status': item.get('Status'), 'locked': item.get('Locked', False), 'line': item.get('Line')},
        )

    def _ensure_owned(self, info: Dict[str, Any], record_id: str) -> None:
        domain_name = (info.get('DomainName') or self.zone_name).rstrip('.').lower()
        if domain_name != self.zone_name:
            raise NotFoundError(f"记录 {record_id} 不属于域名 {self.zone_name}", provider=ALIYUN)

    def create_dns_record(self, record: RecordInput) -> RecordResponse:
        prepared = self.prepare_record(record)
        self._report_unsupported_fields(prepared)

        params = self._to_wire(prepared)
        params['DomainName'] = self.zone_name

        logger.info(f"创建阿里云DNS记录: {prepared.name} {prepared.type} {prepared.content}")
        data = self._call('AddDomainRecord', params)

        created = DNSRecord(
            id=str(data.get('RecordId', '')),
            type=prepared.type,
            name=rr_to_fqdn(params['RR'], self.zone_name),
            content=prepared.content,
            ttl=prepared.ttl,
            priority=prepared.priority,
            proxied=False,
            proxiable=False,
            zone_name=self.zone_name,
        )
        logger.debug(f"阿里云DNS记录创建成功: {created.name} -> {created.id}")
        return RecordResponse(success=True, result=created)

    def update_dns_record(self, record_id: str, record: RecordInput) -> RecordResponse:
        prepared = self.prepare_record(record)
        self._report_unsupported_fields(prepared)

        info = self._call('DescribeDomainRecordInfo', {'RecordId': record_id})
        self._ensure_owned(info, record_id)

        params = self._to_wire(prepared)
        updated = DNSRecord(
            id=record_id,
            type=prepared.type,
            name=rr_to_fqdn(params['RR'], self.zone_name),
            content=prepared.content,
            ttl=prepared.ttl,
            priority=prepared.priority,
            proxied=False,
            proxiable=False,
            zone_name=self.zone_name,
        )

        current = self._from_wire(info)
        if (current.name, current.type, current.content, current.ttl) == \
                (updated.name, updated.type, updated.content, updated.ttl):
            # 阿里云拒绝内容完全相同的更新请求
            logger.debug(f"阿里云DNS记录未变化，跳过更新: {record_id}")
            return RecordResponse(success=True, result=updated)

        params['RecordId'] = record_id
        logger.info(f"更新阿里云DNS记录: {record_id} -> {prepared.name} {prepared.type} {prepared.content}")
        self._call('UpdateDomainRecord', params)
        return RecordResponse(success=True, result=updated)

    def delete_dns_record(self, record_id: str) -> bool:
        logger.debug(f"删除阿里云DNS记录: {record_id}")
        self._call('DeleteDomainRecord', {'RecordId': record_id})
        logger.info(f"阿里云DNS记录删除成功: {record_id}")
        return True

    def get_dns_record(self, record_id: str) -> RecordResponse:
        info = self._call('DescribeDomainRecordInfo', {'RecordId': record_id})
        self._ensure_owned(info, record_id)
        return RecordResponse(success=True, result=self._from_wire(info))

    def _fetch_page(self, page_number: int, page_size: int, filters: RecordFilters) -> Dict[str, Any]:
        params = {
            'DomainName': self.zone_name,
            'PageNumber': page_number,
            'PageSize': page_size,
            'RRKeyWord': extract_rr(filters.name, self.zone_name) if filters.name else None,
            'TypeKeyWord': filters.type.upper() if filters.type else None,
            'ValueKeyWord': filters.content,
        }
        return self._call('DescribeDomainRecords', params)

    def get_dns_records(self, filters: Optional[RecordFilters] = None) -> RecordListResponse:
        """
        获取DNS记录列表

        请求的 per_page 超过阿里云单页上限时，会连续读取多个后端分页来拼出所请求的一页。
        """
        filters = filters or RecordFilters()
        page = max(1, filters.page or 1)
        per_page = max(1, filters.per_page or 100)

        start = (page - 1) * per_page
        backend_size = min(per_page, ALIYUN_MAX_PAGE_SIZE)
        backend_page = start // backend_size + 1
        offset = start - (backend_page - 1) * backend_size

        collected: List[Dict[str, Any]] = []
        total_count = 0
        while True:
            data = self._fetch_page(backend_page, backend_size, filters)
            items = (data.get('DomainRecords') or {}).get('Record') or []
            total_count = int(data.get('TotalCount') or 0)
            collected.extend(items)

            if len(collected) - offset >= per_page or backend_page * backend_size >= total_count or not items:
                break
            backend_page += 1

        records = [self._from_wire(item) for item in collected[offset:offset + per_page]]
        logger.debug(f"获取到 {len(records)} 条阿里云DNS记录 (第{page}页，共{total_count}条)")

        return RecordListResponse(
            success=True,
            result=records,
            result_info=ResultInfo(count=len(records), page=page, per_page=per_page, total_count=total_count),
        )

    def get_domain_info(self) -> DomainInfo:
        # 能够读取记录列表即说明域名托管在当前账号下
        data = self._call('DescribeDomainRecords', {
            'DomainName': self.zone_name,
            'PageNumber': 1,
            'PageSize': 1,
        })
        return DomainInfo(
            id=self.zone_name,
            name=self.zone_name,
            status='active',
            name_servers=list(ALIYUN_DEFAULT_NAME_SERVERS),
            record_count=int(data.get('TotalCount') or 0),
        )

    def configure_email_forwarding(self, settings: EmailSettings) -> EmailForwardingResult:
        logger.warning("阿里云 DNS 不直接支持邮件转发，建议使用第三方邮件服务")
        return EmailForwardingResult(
            supported=False,
            configured=False,
            message='阿里云 DNS 不支持邮件转发',
        )
