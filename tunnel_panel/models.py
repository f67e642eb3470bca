"""
Models - 隧道拓扑数据模型

包含:
- 协议 / 负载策略 / 链路角色等封闭枚举
- 节点 (只读, 来自外部节点列表)
- 跳内节点分配 HopAssignment 与一跳 ChainHop
- 可排序实体 OrderableEntity
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

# 线上格式中表示 "占位, 尚未选择节点" 的 nodeId
SENTINEL_NODE_ID = -1


# ==================== 枚举 ====================

class Protocol(str, Enum):
    TLS = "tls"
    WSS = "wss"
    TCP = "tcp"
    MTLS = "mtls"
    MWSS = "mwss"
    MTCP = "mtcp"

    @classmethod
    def parse(cls, raw: Any, default: Optional["Protocol"] = None) -> "Protocol":
        if isinstance(raw, cls):
            return raw
        s = str(raw or "").strip().lower()
        for p in cls:
            if p.value == s:
                return p
        if default is not None:
            return default
        raise ValueError(f"无效的协议: {raw}")


class Strategy(str, Enum):
    """Load balancing across the parallel members of one hop."""

    FAILOVER = "fifo"
    ROUND_ROBIN = "round"
    RANDOM = "rand"

    @classmethod
    def parse(cls, raw: Any, default: Optional["Strategy"] = None) -> "Strategy":
        if isinstance(raw, cls):
            return raw
        s = str(raw or "").strip().lower().replace("-", "").replace("_", "")
        aliases = {
            "fifo": cls.FAILOVER,
            "failover": cls.FAILOVER,
            "round": cls.ROUND_ROBIN,
            "roundrobin": cls.ROUND_ROBIN,
            "rand": cls.RANDOM,
            "random": cls.RANDOM,
        }
        if s in aliases:
            return aliases[s]
        if default is not None:
            return default
        raise ValueError(f"无效的负载策略: {raw}")

    @property
    def display(self) -> str:
        return _STRATEGY_TEXT[self]


_STRATEGY_TEXT = {
    Strategy.FAILOVER: "主备",
    Strategy.ROUND_ROBIN: "轮询",
    Strategy.RANDOM: "随机",
}

DEFAULT_PROTOCOL = Protocol.TLS
DEFAULT_STRATEGY = Strategy.ROUND_ROBIN


class ChainRole(IntEnum):
    ENTRY = 1
    RELAY = 2
    EXIT = 3

    @classmethod
    def parse(cls, raw: Any) -> Optional["ChainRole"]:
        try:
            return cls(int(raw))
        except (TypeError, ValueError):
            return None


class TunnelKind(IntEnum):
    PORT_FORWARD = 1
    TUNNEL_FORWARD = 2

    @property
    def display(self) -> str:
        return "端口转发" if self is TunnelKind.PORT_FORWARD else "隧道转发"


class FlowMode(IntEnum):
    SINGLE = 1
    DOUBLE = 2

    @property
    def display(self) -> str:
        return "单向计算" if self is FlowMode.SINGLE else "双向计算"


class NodeStatus(IntEnum):
    OFFLINE = 0
    ONLINE = 1


# ==================== 节点 ====================

@dataclass(frozen=True)
class Node:
    id: int
    name: str
    status: NodeStatus = NodeStatus.OFFLINE

    @property
    def online(self) -> bool:
        return self.status == NodeStatus.ONLINE

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Node":
        try:
            status = NodeStatus(int(data.get("status") or 0))
        except ValueError:
            status = NodeStatus.OFFLINE
        return cls(id=int(data["id"]), name=str(data.get("name") or ""), status=status)


# ==================== 跳与分配 ====================

@dataclass
class HopAssignment:
    """One node slot inside entry, a relay hop or exit.

    ``node_id`` is None for a placeholder slot that carries hop settings
    before a concrete node has been picked.
    """

    node_id: Optional[int]
    role: ChainRole
    protocol: Optional[Protocol] = None
    strategy: Optional[Strategy] = None

    @property
    def is_placeholder(self) -> bool:
        return self.node_id is None

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "nodeId": SENTINEL_NODE_ID if self.node_id is None else int(self.node_id),
            "chainType": int(self.role),
        }
        if self.role != ChainRole.ENTRY:
            out["protocol"] = (self.protocol or DEFAULT_PROTOCOL).value
            out["strategy"] = (self.strategy or DEFAULT_STRATEGY).value
        return out

    @classmethod
    def from_payload(cls, data: Dict[str, Any], role: ChainRole) -> "HopAssignment":
        try:
            raw_id = int(data.get("nodeId"))
        except (TypeError, ValueError):
            raw_id = SENTINEL_NODE_ID
        node_id = None if raw_id == SENTINEL_NODE_ID else raw_id
        if role == ChainRole.ENTRY:
            return cls(node_id=node_id, role=role)
        return cls(
            node_id=node_id,
            role=role,
            protocol=Protocol.parse(data.get("protocol"), DEFAULT_PROTOCOL),
            strategy=Strategy.parse(data.get("strategy"), DEFAULT_STRATEGY),
        )


@dataclass
class ChainHop:
    """A group of parallel assignments sharing one protocol and strategy.

    The hop owns ``assignments``; ``copy()`` never shares the list.
    """

    role: ChainRole = ChainRole.RELAY
    protocol: Protocol = DEFAULT_PROTOCOL
    strategy: Strategy = DEFAULT_STRATEGY
    assignments: List[HopAssignment] = field(default_factory=list)

    @classmethod
    def with_placeholder(cls, role: ChainRole = ChainRole.RELAY) -> "ChainHop":
        hop = cls(role=role)
        hop.assignments.append(HopAssignment(None, role, hop.protocol, hop.strategy))
        return hop

    @property
    def node_ids(self) -> List[int]:
        return [a.node_id for a in self.assignments if a.node_id is not None]

    def has_node(self, node_id: int) -> bool:
        return any(a.node_id == node_id for a in self.assignments)

    def add_node(self, node_id: int) -> HopAssignment:
        a = HopAssignment(node_id, self.role, self.protocol, self.strategy)
        self.assignments.append(a)
        return a

    def remove_node(self, node_id: int) -> bool:
        before = len(self.assignments)
        self.assignments = [a for a in self.assignments if a.node_id != node_id]
        return len(self.assignments) != before

    def set_protocol(self, protocol: Protocol) -> None:
        self.protocol = protocol
        for a in self.assignments:
            a.protocol = protocol

    def set_strategy(self, strategy: Strategy) -> None:
        self.strategy = strategy
        for a in self.assignments:
            a.strategy = strategy

    def concrete_payload(self) -> List[Dict[str, Any]]:
        return [a.to_payload() for a in self.assignments if not a.is_placeholder]

    def copy(self) -> "ChainHop":
        return ChainHop(
            role=self.role,
            protocol=self.protocol,
            strategy=self.strategy,
            assignments=[copy.copy(a) for a in self.assignments],
        )

    @classmethod
    def from_payload(cls, items: List[Dict[str, Any]], role: ChainRole) -> "ChainHop":
        assignments = [HopAssignment.from_payload(x, role) for x in items if isinstance(x, dict)]
        hop = cls(role=role, assignments=assignments)
        if assignments:
            # 首个成员决定整跳设置, 其余成员随之对齐
            hop.set_protocol(assignments[0].protocol or DEFAULT_PROTOCOL)
            hop.set_strategy(assignments[0].strategy or DEFAULT_STRATEGY)
        return hop


# ==================== 排序实体 ====================

@dataclass
class OrderableEntity:
    id: int
    server_rank: int = 0
    owner_id: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "OrderableEntity":
        try:
            rank = int(data.get("inx") or 0)
        except (TypeError, ValueError):
            rank = 0
        owner = data.get("userId")
        return cls(
            id=int(data["id"]),
            server_rank=rank,
            owner_id=int(owner) if owner is not None else None,
        )
