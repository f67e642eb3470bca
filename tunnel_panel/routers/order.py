"""
Order Router - 列表排序

- reconcile: 服务端 inx 与本地缓存合并为最终顺序, 并按需回写缓存
- reorder: 拖动一项到目标位置, 写缓存并返回待持久化的 [{id, inx}]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..models import OrderableEntity
from ..services.ordering import OrderReconciler, OrderStore, SCOPES, rank_items
from ..utils.normalize import safe_int_list
from ._common import read_json_object

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/order", tags=["order"])


def _store(request: Request) -> OrderStore:
    return request.app.state.order_store


def _parse_entities(raw: Any) -> List[OrderableEntity]:
    out: List[OrderableEntity] = []
    for item in raw or []:
        if isinstance(item, dict) and item.get("id") is not None:
            out.append(OrderableEntity.from_api(item))
    return out


def _opt_int(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    return int(raw)


async def _reconciler(request: Request):
    data = await read_json_object(request)
    if data is None:
        return None, None, JSONResponse({"ok": False, "error": "请求体必须为 JSON 对象"}, status_code=400)
    scope = SCOPES.get(str(data.get("scope") or ""))
    if scope is None:
        return None, None, JSONResponse(
            {"ok": False, "error": f"未知的排序范围：{data.get('scope')}"}, status_code=400
        )
    try:
        entities = _parse_entities(data.get("items"))
        actor_id = _opt_int(data.get("actorId"))
    except (TypeError, ValueError) as exc:
        return None, None, JSONResponse({"ok": False, "error": f"数据格式错误：{exc}"}, status_code=400)
    reconciler = OrderReconciler(scope, _store(request))
    reconciler.load(entities, actor_id=actor_id)
    return reconciler, data, None


@router.post("/reconcile")
async def reconcile_order(request: Request):
    reconciler, _data, err = await _reconciler(request)
    if err is not None:
        return err
    return {"ok": True, "scope": reconciler.scope.key, "order": reconciler.order}


@router.post("/reorder")
async def reorder_items(request: Request):
    reconciler, data, err = await _reconciler(request)
    if err is not None:
        return err
    ids = safe_int_list([data.get("movedId"), data.get("targetId")])
    if len(ids) != 2:
        return JSONResponse({"ok": False, "error": "缺少 movedId 或 targetId"}, status_code=400)
    order = await reconciler.move(ids[0], ids[1])
    items: List[Dict[str, int]] = rank_items(order)
    logger.info("reorder scope=%s moved=%s target=%s", reconciler.scope.key, ids[0], ids[1])
    return {"ok": True, "scope": reconciler.scope.key, "order": order, "items": items}
