from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

LEVEL_SUCCESS = "success"
LEVEL_ERROR = "error"


@dataclass
class Notice:
    level: str
    message: str
    ts: float = field(default_factory=time.time)


class Notifier:
    """User-visible success/error messages (toast surface).

    Keeps the most recent notices so callers (and the HTTP layer) can
    return them; every notice is also written to the log.
    """

    def __init__(self, max_items: int = 100):
        self.max_items = max(1, int(max_items))
        self.notices: List[Notice] = []

    def _push(self, level: str, message: str) -> None:
        self.notices.append(Notice(level, str(message or "")))
        if len(self.notices) > self.max_items:
            del self.notices[: len(self.notices) - self.max_items]

    def success(self, message: str) -> None:
        logger.info("notify success: %s", message)
        self._push(LEVEL_SUCCESS, message)

    def error(self, message: str) -> None:
        logger.warning("notify error: %s", message)
        self._push(LEVEL_ERROR, message)

    @property
    def last(self) -> Notice:
        return self.notices[-1]

    def messages(self, level: str = "") -> List[str]:
        return [n.message for n in self.notices if not level or n.level == level]
