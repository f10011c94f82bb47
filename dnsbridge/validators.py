"""
DNS记录校验模块

在任何网络调用之前对记录结构和各类型内容格式进行严格校验，
并提供名称（RR/FQDN）与TTL的标准化工具
"""

import ipaddress
import re
from dataclasses import replace
from typing import Optional, Tuple

from .errors import ValidationError
from .types import RecordInput, PRIORITY_RECORD_TYPES
from .utils import validate_domain_name

CAA_PATTERN = re.compile(r'^\d+\s+(issue|issuewild|iodef)\s+"[^"]*"$')
CONTROL_CHARS = re.compile(r'[\x00-\x1F\x7F]')

MAX_DOMAIN_LENGTH = 253
MAX_TEXT_LENGTH = 255


def is_ip_literal(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def is_valid_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
        return True
    except ValueError:
        return False


def is_valid_ipv6(value: str) -> bool:
    try:
        ipaddress.IPv6Address(value)
        return True
    except ValueError:
        return False


def is_valid_hostname(value: str) -> bool:
    """域名标签序列，允许末尾的点，不允许IP地址"""
    if not value or len(value) > MAX_DOMAIN_LENGTH:
        return False
    if is_ip_literal(value):
        return False
    return validate_domain_name(value.rstrip('.'))


def _parse_uint16(value: str, label: str, record_type: str, minimum: int = 0) -> int:
    text = str(value)
    # 只接受ASCII数字
    number = int(text) if text.isascii() and text.isdigit() else None
    if number is None or number < minimum or number > 65535:
        raise ValidationError(
            f"{record_type} 记录{label}必须是 {minimum}-65535 之间的数字，当前值：{value}",
            field='priority' if label == '优先级' else 'content',
        )
    return number


def normalize_record(record: RecordInput) -> RecordInput:
    """
    校验记录的基本字段并规范化复合内容

    MX 内容统一为 "优先级 目标"，SRV 内容统一为 "优先级 权重 端口 目标"。
    若内容中未包含优先级，则使用 priority 字段补全。

    Args:
        record: 待提交的记录

    Returns:
        规范化后的新记录对象

    Raises:
        ValidationError: 记录缺少必需字段或格式错误时
    """
    if not record.type:
        raise ValidationError('记录类型不能为空', field='type')
    if not record.name:
        raise ValidationError('记录名称不能为空', field='name')
    if not record.content or not str(record.content).strip():
        raise ValidationError(f"{record.type} 记录值不能为空", field='content')

    record_type = record.type.upper()
    content = str(record.content).strip()
    priority = record.priority

    if record_type in PRIORITY_RECORD_TYPES:
        priority, content = _split_priority(record_type, content, priority)

    return replace(record, type=record_type, content=content, priority=priority)


def _split_priority(record_type: str, content: str, priority: Optional[int]) -> Tuple[int, str]:
    parts = content.split()
    expected = 2 if record_type == 'MX' else 4

    if len(parts) == expected - 1:
        if priority is None:
            raise ValidationError(f"{record_type} 记录需要优先级", field='priority')
        priority = _parse_uint16(priority, '优先级', record_type)
        return priority, f"{priority} {content}"

    if len(parts) == expected:
        parsed = _parse_uint16(parts[0], '优先级', record_type)
        return parsed, ' '.join(parts)

    if record_type == 'MX':
        raise ValidationError(
            f"MX 记录值格式错误，应为 \"优先级 域名\"（如：10 mail.example.com），当前值：{content}",
            field='content',
        )
    raise ValidationError(
        f"SRV 记录值格式错误，应为 \"优先级 权重 端口 域名\"（如：10 5 80 server.example.com），当前值：{content}",
        field='content',
    )


def validate_record_value(record_type: str, value: str) -> None:
    """
    按记录类型校验记录值

    Args:
        record_type: 记录类型
        value: 记录值（MX/SRV 为规范化后的复合内容）

    Raises:
        ValidationError: 记录值不符合该类型的格式要求时
    """
    if not value or not value.strip():
        raise ValidationError(f"{record_type} 记录值不能为空", field='content')

    if record_type == 'A':
        if not is_valid_ipv4(value):
            raise ValidationError(
                f"A 记录值必须是有效的 IPv4 地址（如：192.168.1.1），当前值：{value}", field='content')

    elif record_type == 'AAAA':
        if not is_valid_ipv6(value):
            raise ValidationError(
                f"AAAA 记录值必须是有效的 IPv6 地址（如：2001:db8::1），当前值：{value}", field='content')

    elif record_type == 'CNAME':
        if is_ip_literal(value):
            raise ValidationError(
                f"CNAME 记录值不能是 IP 地址，必须是域名（如：www.example.com），当前值：{value}", field='content')
        if len(value) > MAX_DOMAIN_LENGTH:
            raise ValidationError(
                f"CNAME 记录值长度不能超过 253 字符，当前长度：{len(value)}", field='content')
        if not is_valid_hostname(value):
            raise ValidationError(
                f"CNAME 记录值必须是有效的域名格式（如：www.example.com），当前值：{value}", field='content')

    elif record_type == 'MX':
        parts = value.split()
        if len(parts) != 2:
            raise ValidationError(
                f"MX 记录值格式错误，应为 \"优先级 域名\"（如：10 mail.example.com），当前值：{value}", field='content')
        _parse_uint16(parts[0], '优先级', 'MX')
        if not is_valid_hostname(parts[1]):
            raise ValidationError(f"MX 记录域名部分格式错误，当前值：{parts[1]}", field='content')

    elif record_type == 'TXT':
        if len(value) > MAX_TEXT_LENGTH:
            raise ValidationError(
                f"TXT 记录值长度不能超过 255 字符，当前长度：{len(value)}", field='content')
        if CONTROL_CHARS.search(value):
            raise ValidationError(f"TXT 记录值不能包含控制字符，当前值：{value!r}", field='content')

    elif record_type in ('NS', 'PTR'):
        if not is_valid_hostname(value):
            raise ValidationError(
                f"{record_type} 记录值必须是有效的域名格式（如：ns1.example.com），当前值：{value}", field='content')

    elif record_type == 'SRV':
        parts = value.split()
        if len(parts) != 4:
            raise ValidationError(
                f"SRV 记录值格式错误，应为 \"优先级 权重 端口 域名\"（如：10 5 80 server.example.com），当前值：{value}",
                field='content')
        _parse_uint16(parts[0], '优先级', 'SRV')
        _parse_uint16(parts[1], '权重', 'SRV')
        _parse_uint16(parts[2], '端口', 'SRV', minimum=1)
        if not is_valid_hostname(parts[3]):
            raise ValidationError(f"SRV 记录域名部分格式错误，当前值：{parts[3]}", field='content')

    elif record_type == 'CAA':
        if not CAA_PATTERN.match(value):
            raise ValidationError(
                f"CAA 记录值格式错误，应为 \"标志 标签 \\\"值\\\"\"（如：0 issue \"ca.example.com\"），当前值：{value}",
                field='content')

    elif len(value) > MAX_TEXT_LENGTH:
        raise ValidationError(
            f"{record_type} 记录值长度不能超过 255 字符，当前长度：{len(value)}", field='content')


def validate_record(record: RecordInput) -> RecordInput:
    """规范化并校验记录，返回规范化后的记录"""
    normalized = normalize_record(record)
    validate_record_value(normalized.type, normalized.content)
    return normalized


def clamp_ttl(ttl: Optional[int], minimum: int, maximum: int, default: int) -> int:
    """将TTL钳制到提供商的合法范围内，超出范围不报错"""
    if ttl is None:
        return default
    return max(minimum, min(maximum, int(ttl)))


def extract_rr(name: str, zone_name: str) -> str:
    """
    从完整域名中提取 RR（主机记录）

    Args:
        name: 记录名称，FQDN 或相对名称
        zone_name: 区域（域名）

    Returns:
        相对记录名，根记录返回 '@'
    """
    name = name.rstrip('.').lower()
    zone_name = zone_name.rstrip('.').lower()

    if name in ('@', zone_name):
        return '@'
    if name.endswith(f".{zone_name}"):
        return name[:-(len(zone_name) + 1)]
    return name


def rr_to_fqdn(rr: str, zone_name: str) -> str:
    """将 RR 还原为完整域名，根记录返回裸域名"""
    if not rr or rr == '@':
        return zone_name
    return f"{rr}.{zone_name}"
