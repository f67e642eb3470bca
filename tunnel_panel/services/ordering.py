"""
Ordering - 手动排序列表的顺序协调

列表顺序有两个来源：
- 服务端持久化的 inx (rank, 0 表示未排序)
- 本地缓存的 id 顺序 (按 scope 键存储)

只要有任一实体的 rank 非 0，就以服务端为准并覆盖本地缓存；
否则以本地缓存为基础，去掉已删除的 id，再按原始顺序追加新 id。
拖动排序时先写本地缓存 (乐观更新)，再在后台把 [{id, inx}] 持久化到服务端。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol

from ..core.bg_tasks import spawn_background_task
from ..models import OrderableEntity
from .notify import Notifier
from .panel_client import PanelClient, PanelError, extract_error_message

logger = logging.getLogger(__name__)


# ==================== 缓存接口 ====================

class OrderStore(Protocol):
    def get(self, scope: str) -> Optional[List[int]]:
        ...

    def set(self, scope: str, ids: List[int]) -> None:
        ...


class MemoryOrderStore:
    """In-process order cache."""

    def __init__(self) -> None:
        self._data: Dict[str, List[int]] = {}

    def get(self, scope: str) -> Optional[List[int]]:
        ids = self._data.get(scope)
        return list(ids) if ids is not None else None

    def set(self, scope: str, ids: List[int]) -> None:
        self._data[scope] = [int(x) for x in ids]


# ==================== 排序范围 ====================

@dataclass(frozen=True)
class OrderScope:
    key: str              # 本地缓存键
    path: str             # 持久化接口
    collection_key: str   # 请求体中的列表字段名


TUNNEL_SCOPE = OrderScope("tunnel-order", "/tunnel/update-order", "tunnels")
FORWARD_SCOPE = OrderScope("forward-order", "/forward/update-order", "forwards")
NODE_SCOPE = OrderScope("node-order", "/node/update-order", "nodes")

SCOPES: Dict[str, OrderScope] = {
    "tunnels": TUNNEL_SCOPE,
    "forwards": FORWARD_SCOPE,
    "nodes": NODE_SCOPE,
}


def scoped_entities(entities: Iterable[OrderableEntity], actor_id: Optional[int] = None) -> List[OrderableEntity]:
    """Entities the acting user may reorder; everything when ``actor_id`` is None."""
    items = list(entities)
    if actor_id is None:
        return items
    return [e for e in items if e.owner_id == actor_id]


# ==================== 核心算法 ====================

def has_server_ranking(entities: Iterable[OrderableEntity]) -> bool:
    return any(int(e.server_rank or 0) != 0 for e in entities)


def reconcile(entities: Iterable[OrderableEntity], cache: Optional[List[int]]) -> List[int]:
    """Merge persisted ranks and the cached order into one id order."""
    items = list(entities)
    natural = [e.id for e in items]

    if has_server_ranking(items):
        # sorted() 稳定, rank 相同时保持原始顺序
        return [e.id for e in sorted(items, key=lambda e: int(e.server_rank or 0))]

    if not cache:
        return natural

    present = set(natural)
    order: List[int] = []
    for nid in cache:
        if nid in present and nid not in order:
            order.append(nid)
    if not order:
        return natural
    for nid in natural:
        if nid not in order:
            order.append(nid)
    return order


def reorder(order: List[int], moved_id: int, target_id: int) -> List[int]:
    """Move ``moved_id`` to the position currently held by ``target_id``."""
    out = list(order)
    if moved_id == target_id or moved_id not in out or target_id not in out:
        return out
    old_index = out.index(moved_id)
    new_index = out.index(target_id)
    out.insert(new_index, out.pop(old_index))
    return out


def rank_items(order: List[int]) -> List[Dict[str, int]]:
    return [{"id": int(nid), "inx": i} for i, nid in enumerate(order)]


# ==================== 协调器 ====================

class OrderReconciler:
    """Holds the canonical order of one scope and persists reorders."""

    def __init__(
        self,
        scope: OrderScope,
        store: OrderStore,
        client: Optional[PanelClient] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.scope = scope
        self.store = store
        self.client = client
        self.notifier = notifier or Notifier()
        self.order: List[int] = []
        self._entities: Dict[int, OrderableEntity] = {}

    def load(self, entities: Iterable[OrderableEntity], actor_id: Optional[int] = None) -> List[int]:
        scoped = scoped_entities(entities, actor_id)
        self._entities = {e.id: e for e in scoped}
        order = reconcile(scoped, self.store.get(self.scope.key))
        if has_server_ranking(scoped):
            self.store.set(self.scope.key, order)
        self.order = order
        logger.debug("order loaded scope=%s count=%d", self.scope.key, len(order))
        return list(order)

    async def move(self, moved_id: int, target_id: int) -> List[int]:
        """Apply a drag-and-drop move.

        The cache is written before this returns; the server write runs in
        the background and a failure there does not restore the old order.
        """
        new_order = reorder(self.order, moved_id, target_id)
        if new_order == self.order:
            return list(self.order)
        self.order = new_order
        self.store.set(self.scope.key, new_order)
        if self.client is not None:
            spawn_background_task(self.persist(list(new_order)), label=f"persist {self.scope.key}")
        return list(new_order)

    async def persist(self, order: List[int]) -> bool:
        if self.client is None:
            return False
        items = rank_items(order)
        try:
            await self.client.update_order(self.scope.path, self.scope.collection_key, items)
        except PanelError as exc:
            logger.warning("order persist failed scope=%s err=%s", self.scope.key, exc.message)
            self.notifier.error("保存排序失败：" + extract_error_message(exc, "未知错误"))
            return False
        for item in items:
            entity = self._entities.get(item["id"])
            if entity is not None:
                entity.server_rank = item["inx"]
        return True
