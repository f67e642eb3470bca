"""
Diagnosis - 诊断结果聚合

把探测服务返回的扁平结果列表整理为按链路位置分组的报告：
- 入口 / 各中继跳 (按跳序号升序) / 出口
- 成功结果按延迟与丢包计算连接质量
- 诊断请求本身失败时构造兜底报告，保证结果面板始终有内容
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models import ChainRole, TunnelKind
from .notify import Notifier
from .panel_client import PanelClient, PanelError, PanelResponseError
from .validators import split_address_lines

logger = logging.getLogger(__name__)

FALLBACK_DESCRIPTION = "诊断失败"
FALLBACK_MESSAGE = "诊断过程中发生错误"
NETWORK_DESCRIPTION = "网络错误"
NETWORK_MESSAGE = "无法连接到服务器"

# 无法归入中继跳序号的中继结果使用的分组键
UNINDEXED_HOP = 0


# ==================== 连接质量 ====================

class QualityTier(Enum):
    EXCELLENT = ("excellent", "🚀 优秀", "success")
    VERY_GOOD = ("very_good", "✨ 很好", "success")
    GOOD = ("good", "👍 良好", "primary")
    FAIR = ("fair", "😐 一般", "warning")
    POOR = ("poor", "😟 较差", "warning")
    BAD = ("bad", "😵 很差", "danger")

    def __init__(self, key: str, text: str, color: str):
        self.key = key
        self.text = text
        self.color = color


# (latency 上限, loss 上限, 档位), 上限均为开区间; loss 上限 None 表示必须为 0
_QUALITY_LADDER = (
    (30, None, QualityTier.EXCELLENT),
    (50, None, QualityTier.VERY_GOOD),
    (100, 1, QualityTier.GOOD),
    (150, 2, QualityTier.FAIR),
    (200, 5, QualityTier.POOR),
)


def quality_for(latency_ms: Optional[float], packet_loss_pct: Optional[float]) -> Optional[QualityTier]:
    """Map latency/loss to a tier; first matching rung wins, bounds are exclusive."""
    if latency_ms is None or packet_loss_pct is None:
        return None
    for max_latency, max_loss, tier in _QUALITY_LADDER:
        if latency_ms >= max_latency:
            continue
        if max_loss is None:
            if packet_loss_pct == 0:
                return tier
        elif packet_loss_pct < max_loss:
            return tier
    return QualityTier.BAD


# ==================== 数据结构 ====================

def _opt_int(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _opt_float(raw: Any) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


@dataclass
class DiagnosisProbeResult:
    success: bool
    description: str
    source_role: Optional[ChainRole] = None
    source_hop_index: Optional[int] = None
    target_ip: str = "-"
    target_port: Optional[int] = None
    message: Optional[str] = None
    latency_ms: Optional[float] = None
    packet_loss_pct: Optional[float] = None
    node_name: str = "-"
    node_id: str = "-"
    target_role: Optional[ChainRole] = None
    target_hop_index: Optional[int] = None

    @property
    def quality(self) -> Optional[QualityTier]:
        if not self.success:
            return None
        return quality_for(self.latency_ms, self.packet_loss_pct)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DiagnosisProbeResult":
        msg = data.get("message")
        return cls(
            success=bool(data.get("success")),
            description=str(data.get("description") or ""),
            source_role=ChainRole.parse(data.get("fromChainType")),
            source_hop_index=_opt_int(data.get("fromInx")),
            target_ip=str(data.get("targetIp") or "-"),
            target_port=_opt_int(data.get("targetPort")),
            message=str(msg) if msg is not None else None,
            latency_ms=_opt_float(data.get("averageTime")),
            packet_loss_pct=_opt_float(data.get("packetLoss")),
            node_name=str(data.get("nodeName") or "-"),
            node_id=str(data.get("nodeId") if data.get("nodeId") is not None else "-"),
            target_role=ChainRole.parse(data.get("toChainType")),
            target_hop_index=_opt_int(data.get("toInx")),
        )

    def to_dict(self) -> Dict[str, Any]:
        q = self.quality
        return {
            "success": self.success,
            "description": self.description,
            "nodeName": self.node_name,
            "nodeId": self.node_id,
            "targetIp": self.target_ip,
            "targetPort": self.target_port,
            "message": self.message,
            "averageTime": self.latency_ms,
            "packetLoss": self.packet_loss_pct,
            "fromChainType": int(self.source_role) if self.source_role is not None else None,
            "fromInx": self.source_hop_index,
            "toChainType": int(self.target_role) if self.target_role is not None else None,
            "toInx": self.target_hop_index,
            "quality": q.key if q else None,
            "qualityText": q.text if q else None,
        }


@dataclass
class DiagnosisReport:
    subject_name: str
    timestamp: int
    results: List[DiagnosisProbeResult] = field(default_factory=list)
    subject_type: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DiagnosisReport":
        name = data.get("tunnelName")
        if name is None:
            name = data.get("forwardName")
        try:
            ts = int(data.get("timestamp") or 0)
        except (TypeError, ValueError):
            ts = 0
        return cls(
            subject_name=str(name or ""),
            timestamp=ts or int(time.time() * 1000),
            results=[
                DiagnosisProbeResult.from_api(r)
                for r in (data.get("results") or [])
                if isinstance(r, dict)
            ],
            subject_type=str(data.get("tunnelType") or ""),
        )


@dataclass
class DiagnosisSummary:
    total: int = 0
    success_count: int = 0
    fail_count: int = 0


@dataclass
class GroupedDiagnosis:
    summary: DiagnosisSummary
    entry: List[DiagnosisProbeResult] = field(default_factory=list)
    chains: "OrderedDict[int, List[DiagnosisProbeResult]]" = field(default_factory=OrderedDict)
    exit: List[DiagnosisProbeResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "total": self.summary.total,
                "successCount": self.summary.success_count,
                "failCount": self.summary.fail_count,
            },
            "entry": [r.to_dict() for r in self.entry],
            "chains": [
                {"inx": inx, "results": [r.to_dict() for r in rs]}
                for inx, rs in self.chains.items()
            ],
            "exit": [r.to_dict() for r in self.exit],
        }


# ==================== 分组 ====================

def group_results(results: Iterable[DiagnosisProbeResult]) -> GroupedDiagnosis:
    """Partition results by source role, relay results further by hop index.

    Results without a recognizable role count as entry results and relay
    results without an index go to hop ``UNINDEXED_HOP``, so every input
    lands in exactly one group.
    """
    items = list(results)
    success_count = sum(1 for r in items if r.success)
    grouped = GroupedDiagnosis(
        summary=DiagnosisSummary(
            total=len(items),
            success_count=success_count,
            fail_count=len(items) - success_count,
        )
    )
    buckets: Dict[int, List[DiagnosisProbeResult]] = {}
    for r in items:
        if r.source_role == ChainRole.RELAY:
            key = r.source_hop_index if r.source_hop_index is not None else UNINDEXED_HOP
            buckets.setdefault(key, []).append(r)
        elif r.source_role == ChainRole.EXIT:
            grouped.exit.append(r)
        else:
            grouped.entry.append(r)
    for key in sorted(buckets):
        grouped.chains[key] = buckets[key]
    return grouped


def group_report(report: DiagnosisReport) -> GroupedDiagnosis:
    return group_results(report.results)


# ==================== 兜底报告 ====================

def build_fallback_report(
    subject_name: str,
    message: str,
    description: str = FALLBACK_DESCRIPTION,
    target_ip: str = "-",
    target_port: Optional[int] = None,
    subject_type: str = "",
) -> DiagnosisReport:
    return DiagnosisReport(
        subject_name=str(subject_name or ""),
        timestamp=int(time.time() * 1000),
        subject_type=subject_type,
        results=[
            DiagnosisProbeResult(
                success=False,
                description=description,
                target_ip=target_ip or "-",
                target_port=target_port,
                message=message,
            )
        ],
    )


def _fallback_texts(exc: PanelError) -> Tuple[str, str]:
    if isinstance(exc, PanelResponseError):
        return FALLBACK_DESCRIPTION, (exc.detail or FALLBACK_MESSAGE)
    return NETWORK_DESCRIPTION, NETWORK_MESSAGE


async def run_tunnel_diagnosis(
    client: PanelClient,
    tunnel: Dict[str, Any],
    notifier: Notifier,
) -> DiagnosisReport:
    """Trigger a tunnel diagnosis; never raises on request failure."""
    name = str(tunnel.get("name") or "")
    try:
        kind = TunnelKind(int(tunnel.get("type") or TunnelKind.PORT_FORWARD))
    except ValueError:
        kind = TunnelKind.PORT_FORWARD
    try:
        data = await client.diagnose_tunnel(int(tunnel["id"]))
    except PanelError as exc:
        description, message = _fallback_texts(exc)
        logger.warning("tunnel diagnosis failed tunnel_id=%s err=%s", tunnel.get("id"), exc.message)
        notifier.error(exc.detail if isinstance(exc, PanelResponseError) and exc.detail else "网络错误，请重试")
        return build_fallback_report(
            name, message, description=description, target_port=443, subject_type=kind.display
        )
    report = DiagnosisReport.from_api(data)
    if not report.subject_name:
        report.subject_name = name
    return report


async def run_forward_diagnosis(
    client: PanelClient,
    forward: Dict[str, Any],
    notifier: Notifier,
) -> DiagnosisReport:
    """Trigger a forward diagnosis; the fallback targets the first remote address."""
    name = str(forward.get("name") or "")
    try:
        data = await client.diagnose_forward(int(forward["id"]))
    except PanelError as exc:
        description, message = _fallback_texts(exc)
        logger.warning("forward diagnosis failed forward_id=%s err=%s", forward.get("id"), exc.message)
        notifier.error(exc.detail if isinstance(exc, PanelResponseError) and exc.detail else "网络错误，请重试")
        remotes = split_address_lines(forward.get("remoteAddr"))
        return build_fallback_report(
            name, message, description=description, target_ip=remotes[0] if remotes else "-"
        )
    report = DiagnosisReport.from_api(data)
    if not report.subject_name:
        report.subject_name = name
    return report
