"""
Validators - 地址与端口校验

提供拓扑提交前的基础校验：
- IPv4:端口 / [IPv6]:端口 / 域名:端口 格式校验
- 端口与端口段解析
- 字段级错误收集 (ValidationResult)
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


PORT_MIN = 1
PORT_MAX = 65535


# ==================== 校验结果数据类 ====================

@dataclass
class ValidationError:
    """单个校验错误"""
    field: str           # 字段名
    message: str         # 错误消息


@dataclass
class ValidationResult:
    """校验结果"""
    errors: List[ValidationError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, field: str, message: str) -> None:
        self.errors.append(ValidationError(field, message))

    def has_error(self, field: str) -> bool:
        return any(e.field == field for e in self.errors)

    def as_field_map(self) -> Dict[str, str]:
        """字段 -> 第一条错误消息"""
        out: Dict[str, str] = {}
        for e in self.errors:
            out.setdefault(e.field, e.message)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [{"field": e.field, "message": e.message} for e in self.errors],
        }


# ==================== 地址格式 ====================

_IPV4_WITH_PORT = re.compile(
    r"^(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\."
    r"(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\."
    r"(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\."
    r"(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?):(?P<port>\d+)$"
)
_IPV6_BRACKETED = re.compile(r"^\[(?P<host>[0-9a-fA-F:.]+)\]:(?P<port>\d+)$")
_DOMAIN_WITH_PORT = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*:(?P<port>\d+)$"
)


def _port_ok(raw: str) -> bool:
    try:
        p = int(raw)
    except ValueError:
        return False
    return PORT_MIN <= p <= PORT_MAX


def is_ipv4_with_port(addr: str) -> bool:
    m = _IPV4_WITH_PORT.match(str(addr or "").strip())
    return bool(m) and _port_ok(m.group("port"))


def is_ipv6_with_port(addr: str) -> bool:
    """``[2001:db8::1]:443``; 方括号必需, 不接受 zone id"""
    m = _IPV6_BRACKETED.match(str(addr or "").strip())
    if not m or not _port_ok(m.group("port")):
        return False
    try:
        ipaddress.IPv6Address(m.group("host"))
    except ValueError:
        return False
    return True


def is_domain_with_port(addr: str) -> bool:
    m = _DOMAIN_WITH_PORT.match(str(addr or "").strip())
    return bool(m) and _port_ok(m.group("port"))


def is_valid_remote_address(addr: str) -> bool:
    return is_ipv4_with_port(addr) or is_ipv6_with_port(addr) or is_domain_with_port(addr)


def split_address_lines(text: Any) -> List[str]:
    """按换行或逗号切分地址列表, 去掉空行"""
    if isinstance(text, (list, tuple)):
        items = [str(x or "") for x in text]
    else:
        items = re.split(r"[\n,]", str(text or ""))
    return [s.strip() for s in items if s.strip()]


# ==================== 端口解析工具 ====================

def parse_port(value: Any) -> Optional[int]:
    """解析单个端口; 空值返回 None, 非法值抛 ValueError"""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if not s.isdigit():
        raise ValueError(f"端口必须为数字: {s}")
    port = int(s)
    if port < PORT_MIN or port > PORT_MAX:
        raise ValueError(f"端口必须在 {PORT_MIN}-{PORT_MAX} 之间")
    return port


def parse_port_range(value: Any) -> Tuple[int, int]:
    """
    解析端口段

    支持格式:
    - "8000"
    - "8000-8100"
    """
    s = str(value or "").strip()
    if not s:
        raise ValueError("端口段不能为空")
    if "-" in s:
        start_s, end_s = s.split("-", 1)
        start = parse_port(start_s)
        end = parse_port(end_s)
        if start is None or end is None:
            raise ValueError(f"端口段格式错误: {s}")
        if start > end:
            raise ValueError(f"起始端口不能大于结束端口: {s}")
        return start, end
    port = parse_port(s)
    if port is None:
        raise ValueError(f"端口段格式错误: {s}")
    return port, port


def validate_remote_addresses(addresses: List[str]) -> Tuple[bool, str]:
    """校验远程地址列表, 错误信息指向第一条不合法的行 (1 起始)"""
    if not addresses:
        return False, "请输入远程地址"
    for i, addr in enumerate(addresses):
        if not is_valid_remote_address(addr):
            return False, f"第{i + 1}行地址格式错误"
    return True, ""
