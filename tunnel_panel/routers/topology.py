"""
Topology Router - 拓扑校验与规范化

请求体: {"tunnel": {...隧道记录...}, "nodes": [{id, name, status}, ...]}
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..services.topology import TopologyDraft
from ._common import parse_nodes, read_json_object

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/topology", tags=["topology"])


async def _load_draft(request: Request):
    data = await read_json_object(request)
    if data is None:
        return None, JSONResponse({"ok": False, "error": "请求体必须为 JSON 对象"}, status_code=400)
    tunnel = data.get("tunnel")
    if not isinstance(tunnel, dict):
        return None, JSONResponse({"ok": False, "error": "缺少 tunnel"}, status_code=400)
    try:
        draft = TopologyDraft.from_tunnel(tunnel, parse_nodes(data.get("nodes")))
    except (TypeError, ValueError) as exc:
        return None, JSONResponse({"ok": False, "error": f"隧道数据格式错误：{exc}"}, status_code=400)
    return draft, None


@router.post("/validate")
async def validate_topology(request: Request):
    draft, err = await _load_draft(request)
    if err is not None:
        return err
    errors = draft.validate()
    return {"ok": not errors, "errors": errors}


@router.post("/normalize")
async def normalize_topology(request: Request):
    draft, err = await _load_draft(request)
    if err is not None:
        return err
    errors = draft.validate()
    if errors:
        return JSONResponse({"ok": False, "error": "校验失败", "errors": errors}, status_code=400)
    payload = draft.normalize_for_submit()
    logger.debug("normalized tunnel name=%s hops=%d", payload["name"], len(payload["chainNodes"]))
    return {"ok": True, "payload": payload}
