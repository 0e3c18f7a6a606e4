import pytest

from src.marketplace.config import Settings


def test_server_settings_come_from_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MKT_SERVER_HOST", "127.0.0.1")
    monkeypatch.setenv("MKT_SERVER_PORT", "9100")
    monkeypatch.setenv("MKT_SERVER_PROXY_HEADERS", "false")

    settings = Settings(_env_file=None)

    assert settings.server_host == "127.0.0.1"
    assert settings.server_port == 9100
    assert settings.server_proxy_headers is False


def test_server_port_is_validated(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MKT_SERVER_PORT", "70000")

    with pytest.raises(ValueError):
        Settings(_env_file=None)


def test_allowed_origins_accept_json_array(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MKT_FRONTEND_ALLOWED_ORIGINS", '["https://shop.example", "https://admin.example"]')

    assert Settings(_env_file=None).frontend_allowed_origins == ("https://shop.example", "https://admin.example")
