"""
Batch - 批量操作结果汇总

批量删除 / 暂停 / 恢复 / 重新下发 / 更换隧道等接口返回
{successCount, failCount}；只要有失败项就以错误提示合并展示。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List

from .notify import Notifier
from .panel_client import PanelClient, PanelError, extract_error_message

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    success_count: int = 0
    fail_count: int = 0


@dataclass
class BatchOutcome:
    ok: bool
    message: str
    should_refresh: bool
    result: BatchResult


def _count(raw: Any) -> int:
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


def normalize_batch_result(value: Any) -> BatchResult:
    raw = value if isinstance(value, dict) else {}
    return BatchResult(
        success_count=_count(raw.get("successCount")),
        fail_count=_count(raw.get("failCount")),
    )


def build_batch_message(result: BatchResult, success_text: str) -> str:
    if result.fail_count == 0:
        return success_text
    return f"成功 {result.success_count} 项，失败 {result.fail_count} 项"


async def run_batch(
    call: Callable[[], Awaitable[Any]],
    notifier: Notifier,
    success_label: str,
    failure_text: str,
) -> BatchOutcome:
    """Run one batch request and report it as a single combined notice.

    ``success_label`` is formatted with the success count, e.g. "成功删除 {} 项".
    """
    try:
        data = await call()
    except PanelError as exc:
        msg = extract_error_message(exc, failure_text)
        notifier.error(msg)
        return BatchOutcome(ok=False, message=msg, should_refresh=False, result=BatchResult())

    result = normalize_batch_result(data)
    msg = build_batch_message(result, success_label.format(result.success_count))
    if result.fail_count == 0:
        notifier.success(msg)
    else:
        logger.info("batch partial failure success=%d fail=%d", result.success_count, result.fail_count)
        notifier.error(msg)
    return BatchOutcome(ok=result.fail_count == 0, message=msg, should_refresh=True, result=result)


async def batch_delete_forwards(client: PanelClient, ids: List[int], notifier: Notifier) -> BatchOutcome:
    return await run_batch(lambda: client.batch_delete_forwards(ids), notifier, "成功删除 {} 项", "删除失败")


async def batch_toggle_forwards(
    client: PanelClient, ids: List[int], enable: bool, notifier: Notifier
) -> BatchOutcome:
    if enable:
        return await run_batch(lambda: client.batch_resume_forwards(ids), notifier, "成功启用 {} 项", "启用失败")
    return await run_batch(lambda: client.batch_pause_forwards(ids), notifier, "成功停用 {} 项", "停用失败")


async def batch_redeploy_forwards(client: PanelClient, ids: List[int], notifier: Notifier) -> BatchOutcome:
    return await run_batch(lambda: client.batch_redeploy_forwards(ids), notifier, "成功重新下发 {} 项", "下发失败")


async def batch_change_tunnel(
    client: PanelClient, ids: List[int], target_tunnel_id: int, notifier: Notifier
) -> BatchOutcome:
    return await run_batch(
        lambda: client.batch_change_tunnel(ids, target_tunnel_id),
        notifier,
        "成功换隧道 {} 项",
        "换隧道失败",
    )


async def batch_delete_tunnels(client: PanelClient, ids: List[int], notifier: Notifier) -> BatchOutcome:
    return await run_batch(lambda: client.batch_delete_tunnels(ids), notifier, "成功删除 {} 项", "删除失败")


async def batch_redeploy_tunnels(client: PanelClient, ids: List[int], notifier: Notifier) -> BatchOutcome:
    return await run_batch(lambda: client.batch_redeploy_tunnels(ids), notifier, "成功重新下发 {} 项", "下发失败")


async def batch_delete_nodes(client: PanelClient, ids: List[int], notifier: Notifier) -> BatchOutcome:
    return await run_batch(lambda: client.batch_delete_nodes(ids), notifier, "成功删除 {} 项", "删除失败")
