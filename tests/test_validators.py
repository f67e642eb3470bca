import pytest

from tunnel_panel.services.validators import (
    ValidationResult,
    is_domain_with_port,
    is_ipv4_with_port,
    is_ipv6_with_port,
    is_valid_remote_address,
    parse_port,
    parse_port_range,
    split_address_lines,
    validate_remote_addresses,
)


@pytest.mark.parametrize(
    "addr",
    ["1.2.3.4:80", "255.255.255.255:65535", "[2001:db8::1]:443", "[::1]:8080", "example.com:443", "a-b.c.io:1"],
)
def test_valid_remote_addresses(addr):
    assert is_valid_remote_address(addr)


@pytest.mark.parametrize(
    "addr",
    ["1.2.3.4", "1.2.3.4:0", "1.2.3.4:65536", "2001:db8::1:443", "[2001:db8::1]", "[zzzz::1]:80", "-bad.com:80", "", "host:abc"],
)
def test_invalid_remote_addresses(addr):
    assert not is_valid_remote_address(addr)


def test_address_kinds_are_distinguished():
    assert is_ipv4_with_port("10.0.0.1:22")
    assert not is_ipv6_with_port("10.0.0.1:22")
    assert is_ipv6_with_port("[fe80::1]:22")
    assert not is_domain_with_port("[fe80::1]:22")


def test_validate_remote_addresses_reports_line():
    assert validate_remote_addresses([]) == (False, "请输入远程地址")
    assert validate_remote_addresses(["1.1.1.1:53", "bad"]) == (False, "第2行地址格式错误")
    assert validate_remote_addresses(["1.1.1.1:53", "dns.google:853"]) == (True, "")


def test_split_address_lines():
    assert split_address_lines("a:1\n b:2 ,c:3,,\n") == ["a:1", "b:2", "c:3"]
    assert split_address_lines(["x:1", "", " y:2 "]) == ["x:1", "y:2"]
    assert split_address_lines(None) == []


def test_parse_port():
    assert parse_port("") is None
    assert parse_port(" 443 ") == 443
    with pytest.raises(ValueError):
        parse_port("0")
    with pytest.raises(ValueError):
        parse_port("8o")


def test_parse_port_range():
    assert parse_port_range("8000") == (8000, 8000)
    assert parse_port_range("8000-8100") == (8000, 8100)
    with pytest.raises(ValueError):
        parse_port_range("9000-8000")
    with pytest.raises(ValueError):
        parse_port_range("")


def test_validation_result_keeps_first_message_per_field():
    r = ValidationResult()
    assert r.valid
    r.add_error("name", "first")
    r.add_error("name", "second")
    r.add_error("inPort", "port")
    assert not r.valid
    assert r.has_error("inPort")
    assert r.as_field_map() == {"name": "first", "inPort": "port"}
    assert r.to_dict()["errors"][1] == {"field": "name", "message": "second"}
