from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .notify import Notifier
from .panel_client import PanelClient, PanelError, PanelResponseError
from .topology import TopologyDraft

logger = logging.getLogger(__name__)


@dataclass
class SubmitOutcome:
    ok: bool
    errors: Dict[str, str] = field(default_factory=dict)
    payload: Optional[Dict[str, Any]] = None
    message: str = ""


async def submit_tunnel(
    client: PanelClient,
    draft: TopologyDraft,
    notifier: Notifier,
    is_edit: Optional[bool] = None,
) -> SubmitOutcome:
    """Validate, normalize and send a draft.

    Validation errors block the request and are returned per field; request
    failures are reported through ``notifier`` and leave the draft intact.
    """
    errors = draft.validate()
    if errors:
        return SubmitOutcome(ok=False, errors=errors)

    if is_edit is None:
        is_edit = draft.id is not None
    payload = draft.normalize_for_submit()
    try:
        if is_edit:
            await client.update_tunnel(payload)
        else:
            await client.create_tunnel(payload)
    except PanelResponseError as exc:
        msg = exc.detail or ("更新失败" if is_edit else "创建失败")
        notifier.error(msg)
        return SubmitOutcome(ok=False, payload=payload, message=msg)
    except PanelError as exc:
        logger.warning("tunnel submit failed name=%s err=%s", payload.get("name"), exc.message)
        msg = "网络错误，请重试"
        notifier.error(msg)
        return SubmitOutcome(ok=False, payload=payload, message=msg)

    msg = "更新成功" if is_edit else "创建成功"
    notifier.success(msg)
    logger.info("tunnel %s name=%s", "updated" if is_edit else "created", payload.get("name"))
    return SubmitOutcome(ok=True, payload=payload, message=msg)
