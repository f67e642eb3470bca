from __future__ import annotations

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from tunnel_panel.models import Node, NodeStatus
from tunnel_panel.services.panel_client import PanelClient


@pytest.fixture
def nodes() -> List[Node]:
    online = [Node(i, f"node-{i}", NodeStatus.ONLINE) for i in range(1, 7)]
    return online + [Node(9, "node-9", NodeStatus.OFFLINE)]


@pytest.fixture
def make_client() -> Callable[..., PanelClient]:
    """Build a PanelClient whose requests are answered by ``handler``.

    The returned client exposes ``calls``: (path, json body) per request.
    """

    def factory(handler: Callable[[str, Dict[str, Any]], httpx.Response]) -> PanelClient:
        calls: List[tuple] = []

        def _transport(request: httpx.Request) -> httpx.Response:
            path = request.url.path.replace("/api/v1", "", 1)
            body = json.loads(request.content or b"{}")
            calls.append((path, body))
            return handler(path, body)

        client = PanelClient(
            "http://panel.test/api/v1",
            token="tok",
            max_retries=1,
            transport=httpx.MockTransport(_transport),
        )
        client.calls = calls
        return client

    return factory

