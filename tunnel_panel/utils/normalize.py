from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

_TRAILING_PORT = re.compile(r":\d+$")


def split_host_port(addr: str) -> Tuple[str, Optional[int]]:
    """Split host:port (or [ipv6]:port) for listen/remote strings."""
    addr = (addr or "").strip()
    if not addr:
        return "", None
    if addr.startswith("["):
        # [IPv6]:port
        if "]" in addr:
            host = addr[1 : addr.index("]")]
            rest = addr[addr.index("]") + 1 :]
            if rest.startswith(":") and rest[1:].isdigit():
                return host, int(rest[1:])
            return host, None
        return addr, None
    if ":" not in addr:
        return addr, None

    # host:port (single colon)
    if addr.count(":") == 1:
        host, p = addr.rsplit(":", 1)
        if p.isdigit():
            return host, int(p)
        return addr, None

    # 未加方括号的 IPv6 字面量不拆端口
    return addr, None


def format_addr(host: str, port: int) -> str:
    """Join host and port, bracketing bare IPv6 literals."""
    host = (host or "").strip()
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"{host}:{int(port)}"


def split_entries(value: Any) -> List[str]:
    """Comma separated list -> trimmed non-empty items."""
    return [s.strip() for s in str(value or "").split(",") if s.strip()]


# ==================== 入口 / 目标地址展示 ====================

def format_in_address(ip_string: str, port: Optional[int]) -> str:
    """Entry address for list display: first address plus a "(+N个)" suffix."""
    items = split_entries(ip_string)
    if not items:
        return ""
    if _TRAILING_PORT.search(items[0]):
        if len(items) == 1:
            return items[0]
        return f"{items[0]} (+{len(items) - 1}个)"
    if not port:
        return ""
    first = format_addr(items[0], port)
    if len(items) == 1:
        return first
    return f"{first} (+{len(items) - 1}个)"


def format_remote_address(address_string: str) -> str:
    items = split_entries(address_string)
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return f"{items[0]} (+{len(items) - 1})"


def has_multiple_addresses(address_string: str) -> bool:
    return len(split_entries(address_string)) > 1


ACTION_NONE = "none"
ACTION_COPY = "copy"
ACTION_MODAL = "modal"


@dataclass
class AddressAction:
    type: str
    title: str = ""
    text: str = ""
    items: List[str] = field(default_factory=list)


def resolve_address_action(address_string: str, port: Optional[int], title: str) -> AddressAction:
    """Decide whether clicking an address copies it directly or lists all of them."""
    if not address_string:
        return AddressAction(ACTION_NONE)

    if port is not None:
        items = split_entries(address_string)
        if len(items) <= 1:
            return AddressAction(ACTION_COPY, title=title, text=format_in_address(address_string, port))
        if _TRAILING_PORT.search(items[0]):
            addresses = items
        else:
            addresses = [format_addr(ip, port) for ip in items]
    else:
        addresses = split_entries(address_string)
        if len(addresses) <= 1:
            return AddressAction(ACTION_COPY, title=title, text=address_string)

    return AddressAction(ACTION_MODAL, title=f"{title} ({len(addresses)}个)", items=addresses)


# ==================== id 列表 ====================

def safe_int_list(values: Any) -> List[int]:
    """Convert an iterable of values to a list of ints; drop invalid items."""
    out: List[int] = []
    if not isinstance(values, (list, tuple, set)):
        return out
    for v in values:
        if isinstance(v, bool):
            continue
        try:
            f = float(v)
            if f != int(f):
                continue
        except (TypeError, ValueError, OverflowError):
            continue
        out.append(int(f))
    return out


def parse_order_ids(raw: Any) -> Optional[List[int]]:
    """Decode a cached order; None when absent or not a JSON list.

    Negative ids are dropped and duplicates keep their first position.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, list):
        return None
    out: List[int] = []
    for nid in safe_int_list(raw):
        if nid >= 0 and nid not in out:
            out.append(nid)
    return out
