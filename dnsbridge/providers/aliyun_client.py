"""
自建阿里云DNS API客户端

使用直接HTTP请求调用阿里云云解析RPC接口，自行完成签名（HMAC-SHA1，签名版本1.0）
"""

import base64
import hashlib
import hmac
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from urllib.parse import quote

import requests
from loguru import logger

ALIDNS_ENDPOINT = 'https://alidns.aliyuncs.com/'
ALIDNS_API_VERSION = '2015-01-09'


class AliyunAPIError(Exception):
    """阿里云API返回的原始错误"""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None,
                 request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.request_id = request_id

    def __str__(self):
        if self.code:
            return f"{self.message} (Code: {self.code})"
        return self.message


def percent_encode(value: Any) -> str:
    """按照阿里云规范进行URL编码（RFC3986）"""
    return quote(str(value), safe='-_.~')


def sign_parameters(params: Dict[str, Any], access_key_secret: str, method: str = 'POST') -> str:
    """
    计算RPC请求签名

    Args:
        params: 全部请求参数（不含Signature）
        access_key_secret: AccessKey Secret
        method: HTTP方法

    Returns:
        Base64编码的签名
    """
    canonical = '&'.join(
        f"{percent_encode(key)}={percent_encode(params[key])}" for key in sorted(params)
    )
    string_to_sign = f"{method.upper()}&{percent_encode('/')}&{percent_encode(canonical)}"
    digest = hmac.new(
        f"{access_key_secret}&".encode('utf-8'),
        string_to_sign.encode('utf-8'),
        hashlib.sha1,
    ).digest()
    return base64.b64encode(digest).decode('utf-8')


class AliyunDNSClient:
    """自建阿里云DNS API客户端"""

    def __init__(self, access_key_id: str, access_key_secret: str, region: str = 'cn-hangzhou',
                 endpoint: str = ALIDNS_ENDPOINT, timeout: float = 10):
        """
        初始化阿里云DNS API客户端

        Args:
            access_key_id: AccessKey ID
            access_key_secret: AccessKey Secret
            region: 区域
            endpoint: API地址
            timeout: 请求超时时间（秒）
        """
        if not access_key_id or not access_key_secret:
            raise ValueError("阿里云 AccessKey 不能为空")

        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.region = region
        self.endpoint = endpoint
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({'Accept': 'application/json'})

        logger.debug("阿里云DNS API客户端初始化完成")

    def _build_params(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        request_params = {
            'Action': action,
            'Format': 'JSON',
            'Version': ALIDNS_API_VERSION,
            'AccessKeyId': self.access_key_id,
            'SignatureMethod': 'HMAC-SHA1',
            'SignatureVersion': '1.0',
            'SignatureNonce': uuid.uuid4().hex,
            'Timestamp': datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ'),
            'RegionId': self.region,
        }
        # 空参数不发送
        for key, value in params.items():
            if value is not None and value != '':
                request_params[key] = value
        request_params['Signature'] = sign_parameters(request_params, self.access_key_secret)
        return request_params

    def request(self, action: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        发送RPC请求

        Args:
            action: 接口名称，如 AddDomainRecord
            params: 接口参数

        Returns:
            API响应数据

        Raises:
            AliyunAPIError: API返回错误
            requests.RequestException: 网络请求失败（包括超时）
        """
        request_params = self._build_params(action, params or {})
        logger.debug(f"发送阿里云DNS请求: {action}")

        response = self.session.post(self.endpoint, data=request_params, timeout=self.timeout)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            raise AliyunAPIError(
                data.get('Message') or f"阿里云DNS请求失败，状态码: {response.status_code}",
                code=data.get('Code'),
                status_code=response.status_code,
                request_id=data.get('RequestId'),
            )

        return data
