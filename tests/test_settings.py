from tunnel_panel.core.settings import DEFAULT_TIMEOUT, load_settings, setting_int


def test_env_prefix_and_alias(monkeypatch):
    monkeypatch.delenv("TUNNEL_PANEL_API_BASE", raising=False)
    monkeypatch.setenv("PANEL_API_BASE", "http://alias")
    assert load_settings().api_base == "http://alias"
    monkeypatch.setenv("TUNNEL_PANEL_API_BASE", "http://primary")
    assert load_settings().api_base == "http://primary"


def test_bad_numbers_fall_back(monkeypatch):
    monkeypatch.setenv("TUNNEL_PANEL_TIMEOUT", "-1")
    monkeypatch.setenv("TUNNEL_PANEL_MAX_RETRIES", "abc")
    s = load_settings()
    assert s.timeout == DEFAULT_TIMEOUT
    assert s.max_retries == 2
    monkeypatch.setenv("TUNNEL_PANEL_X", "3.9")
    assert setting_int("x", 0) == 3
