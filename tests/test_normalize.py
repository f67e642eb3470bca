from tunnel_panel.utils.normalize import (
    ACTION_COPY,
    ACTION_MODAL,
    ACTION_NONE,
    format_addr,
    format_in_address,
    format_remote_address,
    has_multiple_addresses,
    parse_order_ids,
    resolve_address_action,
    safe_int_list,
    split_host_port,
)


def test_split_host_port():
    assert split_host_port("1.2.3.4:80") == ("1.2.3.4", 80)
    assert split_host_port("[::1]:443") == ("::1", 443)
    assert split_host_port("::1") == ("::1", None)
    assert split_host_port("") == ("", None)


def test_format_addr_brackets_ipv6():
    assert format_addr("::1", 80) == "[::1]:80"
    assert format_addr("a.com", 80) == "a.com:80"


def test_in_address_display():
    assert format_in_address("1.1.1.1,2.2.2.2", 443) == "1.1.1.1:443 (+1个)"
    assert format_in_address("1.1.1.1:80", None) == "1.1.1.1:80"
    assert format_in_address("1.1.1.1", None) == ""
    assert format_remote_address("a:1,b:2,c:3") == "a:1 (+2)"
    assert has_multiple_addresses("a:1,b:2")


def test_address_action():
    assert resolve_address_action("", 80, "入口").type == ACTION_NONE
    copy = resolve_address_action("1.1.1.1", 80, "入口")
    assert (copy.type, copy.text) == (ACTION_COPY, "1.1.1.1:80")
    modal = resolve_address_action("1.1.1.1,::1", 80, "入口")
    assert modal.type == ACTION_MODAL
    assert modal.title == "入口 (2个)"
    assert modal.items == ["1.1.1.1:80", "[::1]:80"]


def test_safe_int_list_and_order_ids():
    assert safe_int_list([1, "2", 3.0, 3.5, True, None, "x"]) == [1, 2, 3]
    assert parse_order_ids("[3, 1, 3, -1, \"2\"]") == [3, 1, 2]
    assert parse_order_ids("{}") is None
    assert parse_order_ids("not json") is None
    assert parse_order_ids(None) is None
