"""
Services Package - 服务层模块

包含:
- panel_client: 面板后端通信客户端
- validators: 地址 / 端口校验
- topology: 隧道拓扑草稿引擎
- diagnosis: 诊断结果聚合
- ordering: 列表排序协调
- tunnels / batch: 提交与批量操作流程
"""

from .panel_client import (
    PanelClient,
    PanelError,
    PanelConnectionError,
    PanelTimeoutError,
    PanelResponseError,
    extract_error_message,
)

from .validators import (
    ValidationResult,
    ValidationError,
    is_valid_remote_address,
    parse_port,
    parse_port_range,
    split_address_lines,
    validate_remote_addresses,
)

from .notify import Notifier, Notice

from .topology import TopologyDraft

from .diagnosis import (
    DiagnosisProbeResult,
    DiagnosisReport,
    GroupedDiagnosis,
    QualityTier,
    build_fallback_report,
    group_report,
    group_results,
    quality_for,
    run_forward_diagnosis,
    run_tunnel_diagnosis,
)

from .ordering import (
    MemoryOrderStore,
    OrderReconciler,
    OrderScope,
    SCOPES,
    reconcile,
    reorder,
)

from .tunnels import SubmitOutcome, submit_tunnel

from .batch import (
    BatchOutcome,
    BatchResult,
    build_batch_message,
    normalize_batch_result,
    run_batch,
)

__all__ = [
    # Panel Client
    "PanelClient",
    "PanelError",
    "PanelConnectionError",
    "PanelTimeoutError",
    "PanelResponseError",
    "extract_error_message",
    # Validators
    "ValidationResult",
    "ValidationError",
    "is_valid_remote_address",
    "parse_port",
    "parse_port_range",
    "split_address_lines",
    "validate_remote_addresses",
    # Notify
    "Notifier",
    "Notice",
    # Topology
    "TopologyDraft",
    # Diagnosis
    "DiagnosisProbeResult",
    "DiagnosisReport",
    "GroupedDiagnosis",
    "QualityTier",
    "build_fallback_report",
    "group_report",
    "group_results",
    "quality_for",
    "run_forward_diagnosis",
    "run_tunnel_diagnosis",
    # Ordering
    "MemoryOrderStore",
    "OrderReconciler",
    "OrderScope",
    "SCOPES",
    "reconcile",
    "reorder",
    # Workflows
    "SubmitOutcome",
    "submit_tunnel",
    "BatchOutcome",
    "BatchResult",
    "build_batch_message",
    "normalize_batch_result",
    "run_batch",
]
