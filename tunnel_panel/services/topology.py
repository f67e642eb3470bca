"""
Topology - 隧道拓扑草稿引擎

一个隧道由入口节点集合、有序的中继跳 (每跳可多个并行节点) 与出口节点集合组成。
所有编辑都经过 TopologyDraft 的方法完成，保证:
- 同一节点在整个拓扑中只承担一种角色 (入口 / 某一跳 / 出口)
- 同一跳内所有成员的协议与负载策略一致
- 提交前去掉占位节点与空跳
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Set

from ..models import (
    ChainHop,
    ChainRole,
    FlowMode,
    HopAssignment,
    Node,
    Protocol,
    Strategy,
    TunnelKind,
)
from .validators import (
    PORT_MAX,
    PORT_MIN,
    ValidationResult,
    split_address_lines,
    validate_remote_addresses,
)

logger = logging.getLogger(__name__)

NAME_MIN_LEN = 2
NAME_MAX_LEN = 50
TRAFFIC_RATIO_MAX = 100.0

# 用于 used_node_ids(exclude=...) 的区块标识
PART_ENTRY = "entry"
PART_EXIT = "exit"


def _dedupe_ids(node_ids: Iterable[Any]) -> List[int]:
    out: List[int] = []
    for raw in node_ids or []:
        nid = int(raw)
        if nid not in out:
            out.append(nid)
    return out


class TopologyDraft:
    """Editable tunnel topology backing a create/edit dialog."""

    def __init__(
        self,
        nodes: Iterable[Node] = (),
        kind: TunnelKind = TunnelKind.PORT_FORWARD,
        name: str = "",
    ):
        self._nodes: Dict[int, Node] = {n.id: n for n in nodes}
        self.id: Optional[int] = None
        self.name = name
        self.kind = TunnelKind(kind)
        self.flow = FlowMode.SINGLE
        self.traffic_ratio = 1.0
        self.entry_addresses: List[str] = []
        self.ip_preference = ""
        self.status = 1

        self.entry_nodes: List[HopAssignment] = []
        self.hops: List[ChainHop] = []
        self.exit = ChainHop(role=ChainRole.EXIT)

        # 端口转发专用
        self.in_port: Optional[int] = None
        self.remote_addresses: List[str] = []
        self.forward_strategy: Optional[Strategy] = Strategy.FAILOVER

    # ==================== 构造 ====================

    @classmethod
    def from_tunnel(cls, record: Dict[str, Any], nodes: Iterable[Node] = ()) -> "TopologyDraft":
        """Pre-populate a draft from a persisted tunnel record."""
        try:
            kind = TunnelKind(int(record.get("type") or TunnelKind.PORT_FORWARD))
        except ValueError:
            kind = TunnelKind.PORT_FORWARD
        draft = cls(nodes, kind=kind, name=str(record.get("name") or ""))
        if record.get("id") is not None:
            draft.id = int(record["id"])
        try:
            draft.flow = FlowMode(int(record.get("flow") or FlowMode.SINGLE))
        except ValueError:
            draft.flow = FlowMode.SINGLE
        try:
            draft.traffic_ratio = float(record.get("trafficRatio", 1.0))
        except (TypeError, ValueError):
            draft.traffic_ratio = 1.0
        draft.entry_addresses = split_address_lines(record.get("inIp"))
        draft.ip_preference = str(record.get("ipPreference") or "")
        draft.status = int(record.get("status", 1) or 0)

        entry_raw = record.get("entryNodeId")
        if not isinstance(entry_raw, list):
            entry_raw = record.get("inNodeId") or []
        draft.entry_nodes = [
            HopAssignment.from_payload(x, ChainRole.ENTRY)
            for x in entry_raw
            if isinstance(x, dict)
        ]

        if kind == TunnelKind.TUNNEL_FORWARD:
            for group in record.get("chainNodes") or []:
                if isinstance(group, list):
                    draft.hops.append(ChainHop.from_payload(group, ChainRole.RELAY))
            draft.exit = ChainHop.from_payload(record.get("outNodeId") or [], ChainRole.EXIT)
        else:
            if record.get("inPort") not in (None, ""):
                draft.in_port = int(record["inPort"])
            draft.remote_addresses = split_address_lines(record.get("remoteAddr"))
            draft.forward_strategy = Strategy.parse(record.get("strategy"), Strategy.FAILOVER)
        return draft

    # ==================== 节点查询 ====================

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def update_nodes(self, nodes: Iterable[Node]) -> None:
        """Replace the node catalog (e.g. after a status refresh)."""
        self._nodes = {n.id: n for n in nodes}

    def _is_online(self, node_id: int) -> bool:
        node = self._nodes.get(node_id)
        return bool(node and node.online)

    @property
    def entry_node_ids(self) -> List[int]:
        return [a.node_id for a in self.entry_nodes if a.node_id is not None]

    @property
    def exit_node_ids(self) -> List[int]:
        return self.exit.node_ids

    def used_node_ids(self, exclude: Any = None) -> Set[int]:
        """Node ids already taken by some role.

        ``exclude`` is ``PART_ENTRY``, ``PART_EXIT`` or a hop index whose
        members should not count.
        """
        used: Set[int] = set()
        if exclude != PART_ENTRY:
            used.update(self.entry_node_ids)
        for i, hop in enumerate(self.hops):
            if exclude is not None and not isinstance(exclude, str) and i == exclude:
                continue
            used.update(hop.node_ids)
        if exclude != PART_EXIT:
            used.update(self.exit.node_ids)
        return used

    def _selectable(self, exclude: Any) -> List[Node]:
        used = self.used_node_ids(exclude=exclude)
        return [n for n in self._nodes.values() if n.online and n.id not in used]

    def selectable_entry_nodes(self) -> List[Node]:
        return self._selectable(PART_ENTRY)

    def selectable_hop_nodes(self, index: int) -> List[Node]:
        self._hop(index)
        return self._selectable(index)

    def selectable_exit_nodes(self) -> List[Node]:
        return self._selectable(PART_EXIT)

    def _accepts(self, node_id: int, exclude: Any) -> bool:
        if not self._is_online(node_id):
            logger.debug("reject node=%s part=%s reason=offline_or_unknown", node_id, exclude)
            return False
        if node_id in self.used_node_ids(exclude=exclude):
            logger.debug("reject node=%s part=%s reason=used_elsewhere", node_id, exclude)
            return False
        return True

    # ==================== 类型 ====================

    def set_kind(self, kind: TunnelKind) -> None:
        self.kind = TunnelKind(kind)
        if self.kind == TunnelKind.PORT_FORWARD:
            self.hops = []
            self.exit = ChainHop(role=ChainRole.EXIT)

    # ==================== 入口 ====================

    def set_entry_nodes(self, node_ids: Iterable[Any]) -> bool:
        ids = _dedupe_ids(node_ids)
        current = {a.node_id: a for a in self.entry_nodes if a.node_id is not None}
        for nid in ids:
            if nid in current:
                continue
            if not self._accepts(nid, PART_ENTRY):
                return False
        self.entry_nodes = [current.get(nid) or HopAssignment(nid, ChainRole.ENTRY) for nid in ids]
        return True

    # ==================== 中继跳 ====================

    def _hop(self, index: int) -> ChainHop:
        if index < 0 or index >= len(self.hops):
            raise IndexError(f"hop index out of range: {index}")
        return self.hops[index]

    def add_hop(self) -> Optional[int]:
        if self.kind != TunnelKind.TUNNEL_FORWARD:
            logger.debug("add_hop ignored for kind=%s", self.kind.name)
            return None
        self.hops.append(ChainHop.with_placeholder(ChainRole.RELAY))
        return len(self.hops) - 1

    def remove_hop(self, index: int) -> None:
        self._hop(index)
        del self.hops[index]

    def assign_node_to_hop(self, index: int, node_id: Any) -> bool:
        hop = self._hop(index)
        nid = int(node_id)
        if hop.has_node(nid):
            return False
        if not self._accepts(nid, index):
            return False
        hop.add_node(nid)
        return True

    def unassign_node_from_hop(self, index: int, node_id: Any) -> bool:
        return self._hop(index).remove_node(int(node_id))

    def set_hop_nodes(self, index: int, node_ids: Iterable[Any]) -> bool:
        """Apply a multi-select result as a sequence of assign/unassign calls."""
        hop = self._hop(index)
        wanted = _dedupe_ids(node_ids)
        added = [nid for nid in wanted if nid not in hop.node_ids]
        if not all(self._accepts(nid, index) for nid in added):
            return False
        for nid in hop.node_ids:
            if nid not in wanted:
                hop.remove_node(nid)
        for nid in added:
            hop.add_node(nid)
        return True

    def set_hop_protocol(self, index: int, protocol: Any) -> None:
        self._hop(index).set_protocol(Protocol.parse(protocol))

    def set_hop_strategy(self, index: int, strategy: Any) -> None:
        self._hop(index).set_strategy(Strategy.parse(strategy))

    # ==================== 出口 ====================

    def set_exit_nodes(self, node_ids: Iterable[Any]) -> bool:
        if self.kind != TunnelKind.TUNNEL_FORWARD:
            return False
        ids = _dedupe_ids(node_ids)
        current = {a.node_id: a for a in self.exit.assignments if a.node_id is not None}
        for nid in ids:
            if nid in current:
                continue
            if not self._accepts(nid, PART_EXIT):
                return False
        kept: List[HopAssignment] = []
        for nid in ids:
            a = current.get(nid) or HopAssignment(nid, ChainRole.EXIT)
            a.protocol = self.exit.protocol
            a.strategy = self.exit.strategy
            kept.append(a)
        self.exit.assignments = kept
        return True

    def set_exit_protocol(self, protocol: Any) -> None:
        self.exit.set_protocol(Protocol.parse(protocol))

    def set_exit_strategy(self, strategy: Any) -> None:
        self.exit.set_strategy(Strategy.parse(strategy))

    # ==================== 校验 ====================

    def validate(self) -> Dict[str, str]:
        """Return ``{field: message}``; empty when the draft can be submitted."""
        result = ValidationResult()

        name = str(self.name or "")
        if not name.strip():
            result.add_error("name", "请输入隧道名称")
        elif len(name) < NAME_MIN_LEN or len(name) > NAME_MAX_LEN:
            result.add_error("name", f"隧道名称长度应在{NAME_MIN_LEN}-{NAME_MAX_LEN}个字符之间")

        entry_ids = self.entry_node_ids
        if not entry_ids:
            result.add_error("entryNodeId", "请至少选择一个入口节点")
        elif any(nid in self._nodes and not self._is_online(nid) for nid in entry_ids):
            result.add_error("entryNodeId", "所有入口节点必须在线")

        try:
            ratio = float(self.traffic_ratio)
        except (TypeError, ValueError):
            ratio = 0.0
        if not math.isfinite(ratio) or ratio <= 0 or ratio > TRAFFIC_RATIO_MAX:
            result.add_error("trafficRatio", "流量倍率须大于0，支持小数（如 0.5）")

        if self.kind == TunnelKind.PORT_FORWARD:
            self._validate_port_forward(result)
        else:
            self._validate_tunnel_forward(result)

        return result.as_field_map()

    def _validate_port_forward(self, result: ValidationResult) -> None:
        if self.in_port is not None:
            try:
                port = int(self.in_port)
            except (TypeError, ValueError):
                port = 0
            if port < PORT_MIN or port > PORT_MAX:
                result.add_error("inPort", f"端口必须在 {PORT_MIN}-{PORT_MAX} 之间")

        ok, msg = validate_remote_addresses(self.remote_addresses)
        if not ok:
            result.add_error("remoteAddr", msg)
        elif len(self.remote_addresses) > 1 and self.forward_strategy is None:
            result.add_error("strategy", "多个目标地址时请选择负载策略")

    def _validate_tunnel_forward(self, result: ValidationResult) -> None:
        exit_ids = self.exit_node_ids
        if not exit_ids:
            result.add_error("outNodeId", "请至少选择一个出口节点")
            return
        if any(nid in self._nodes and not self._is_online(nid) for nid in exit_ids):
            result.add_error("outNodeId", "所有出口节点必须在线")
        if set(exit_ids) & set(self.entry_node_ids):
            result.add_error("outNodeId", "隧道转发模式下，入口和出口不能有相同节点")

        # 编辑历史数据时可能出现跨跳重复
        seen: Set[int] = set(self.entry_node_ids) | set(exit_ids)
        for i, hop in enumerate(self.hops):
            ids = set(hop.node_ids)
            if ids & seen:
                result.add_error("chainNodes", f"第{i + 1}跳包含已被其他位置使用的节点")
            seen |= ids

    # ==================== 提交 ====================

    def normalize_for_submit(self) -> Dict[str, Any]:
        """Build the create/update payload without placeholders or empty hops."""
        payload: Dict[str, Any] = {
            "name": str(self.name or "").strip(),
            "type": int(self.kind),
            "flow": int(self.flow),
            "trafficRatio": float(self.traffic_ratio),
            "inIp": ",".join(a.strip() for a in self.entry_addresses if a.strip()),
            "ipPreference": self.ip_preference,
            "status": int(self.status),
            "entryNodeId": [a.to_payload() for a in self.entry_nodes if not a.is_placeholder],
            "chainNodes": [],
            "outNodeId": [],
        }
        if self.id is not None:
            payload["id"] = int(self.id)

        if self.kind == TunnelKind.TUNNEL_FORWARD:
            chain: List[List[Dict[str, Any]]] = []
            for hop in self.hops:
                members = hop.concrete_payload()
                if members:
                    chain.append(members)
            payload["chainNodes"] = chain
            payload["outNodeId"] = self.exit.concrete_payload()
        else:
            remotes = [r.strip() for r in self.remote_addresses if r.strip()]
            payload["inPort"] = int(self.in_port) if self.in_port is not None else None
            payload["remoteAddr"] = ",".join(remotes)
            strategy = self.forward_strategy if len(remotes) > 1 else None
            payload["strategy"] = (strategy or Strategy.FAILOVER).value
        return payload
