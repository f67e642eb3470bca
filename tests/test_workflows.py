import asyncio

import httpx

from tunnel_panel.models import TunnelKind
from tunnel_panel.services.batch import (
    BatchResult,
    batch_change_tunnel,
    batch_delete_forwards,
    batch_toggle_forwards,
    build_batch_message,
    normalize_batch_result,
)
from tunnel_panel.services.notify import Notifier
from tunnel_panel.services.topology import TopologyDraft
from tunnel_panel.services.tunnels import submit_tunnel

from .helpers import fail, ok


def _valid_draft(nodes):
    d = TopologyDraft(nodes, kind=TunnelKind.TUNNEL_FORWARD, name="sg")
    d.set_entry_nodes([1])
    d.set_exit_nodes([2])
    return d


def test_submit_blocks_on_validation(make_client, nodes):
    client = make_client(lambda path, body: ok())
    outcome = asyncio.run(submit_tunnel(client, TopologyDraft(nodes), Notifier()))
    assert not outcome.ok
    assert "name" in outcome.errors
    assert client.calls == []


def test_submit_creates(make_client, nodes):
    client = make_client(lambda path, body: ok())
    notifier = Notifier()
    outcome = asyncio.run(submit_tunnel(client, _valid_draft(nodes), notifier))
    assert outcome.ok
    assert client.calls[0][0] == "/tunnel/create"
    assert client.calls[0][1]["outNodeId"][0]["nodeId"] == 2
    assert notifier.last.message == "创建成功"


def test_submit_updates_existing(make_client, nodes):
    client = make_client(lambda path, body: ok())
    draft = _valid_draft(nodes)
    draft.id = 7
    notifier = Notifier()
    asyncio.run(submit_tunnel(client, draft, notifier))
    assert client.calls[0][0] == "/tunnel/update"
    assert client.calls[0][1]["id"] == 7
    assert notifier.last.message == "更新成功"


def test_submit_reports_server_and_network_errors(make_client, nodes):
    notifier = Notifier()
    client = make_client(lambda path, body: fail("隧道名称已存在"))
    outcome = asyncio.run(submit_tunnel(client, _valid_draft(nodes), notifier))
    assert not outcome.ok and outcome.message == "隧道名称已存在"

    def down(path, body):
        raise httpx.ConnectError("refused")

    outcome = asyncio.run(submit_tunnel(make_client(down), _valid_draft(nodes), notifier))
    assert outcome.message == "网络错误，请重试"
    assert notifier.messages("error") == ["隧道名称已存在", "网络错误，请重试"]


def test_batch_result_normalization():
    assert normalize_batch_result(None) == BatchResult(0, 0)
    assert normalize_batch_result({"successCount": "3", "failCount": None}) == BatchResult(3, 0)
    assert build_batch_message(BatchResult(3, 0), "成功删除 3 项") == "成功删除 3 项"
    assert build_batch_message(BatchResult(2, 1), "ignored") == "成功 2 项，失败 1 项"


def test_batch_partial_failure_is_one_error_notice(make_client):
    client = make_client(lambda path, body: ok({"successCount": 2, "failCount": 1}))
    notifier = Notifier()
    outcome = asyncio.run(batch_delete_forwards(client, [1, 2, 3], notifier))
    assert not outcome.ok and outcome.should_refresh
    assert client.calls == [("/forward/batch-delete", {"ids": [1, 2, 3]})]
    assert notifier.messages() == ["成功 2 项，失败 1 项"]
    assert notifier.last.level == "error"


def test_batch_success_and_request_failure(make_client):
    notifier = Notifier()
    client = make_client(lambda path, body: ok({"successCount": 2, "failCount": 0}))
    outcome = asyncio.run(batch_toggle_forwards(client, [1, 2], False, notifier))
    assert outcome.ok and outcome.message == "成功停用 2 项"
    assert client.calls[0][0] == "/forward/batch-pause"

    def down(path, body):
        raise httpx.ConnectError("refused")

    outcome = asyncio.run(batch_change_tunnel(make_client(down), [1], 5, notifier))
    assert not outcome.ok and not outcome.should_refresh
    assert outcome.message == "换隧道失败"
