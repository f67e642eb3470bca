from __future__ import annotations

import logging
from typing import Optional

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """Attach a single stream handler to the package logger.

    Safe to call more than once; only the level is updated on later calls.
    """
    global _configured
    lvl_name = str(level or "INFO").strip().upper()
    lvl = getattr(logging, lvl_name, logging.INFO)
    root = logging.getLogger("tunnel_panel")
    root.setLevel(lvl)
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = True
    _configured = True
