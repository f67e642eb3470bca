from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import Request

from ..models import Node


async def read_json_object(request: Request) -> Optional[Dict[str, Any]]:
    """Request body as a dict; None when it is not a JSON object."""
    try:
        data = await request.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_nodes(raw: Any) -> List[Node]:
    out: List[Node] = []
    for item in raw or []:
        if isinstance(item, dict) and item.get("id") is not None:
            out.append(Node.from_api(item))
    return out
