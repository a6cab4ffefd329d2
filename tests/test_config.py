from hls_relay.config import DEFAULT_ALLOWED_HOST, RelayConfig


def test_from_env_defaults(monkeypatch):
    for name in ("RELAY_ALLOWED_HOST", "RELAY_DEBUG", "PORT", "RELAY_RESOLVER_FALLBACK",
                 "RELAY_CONNECT_TIMEOUT", "RELAY_READ_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)

    config = RelayConfig.from_env()

    assert config.allowed_host == DEFAULT_ALLOWED_HOST
    assert config.port == 5001
    assert config.debug is False
    assert config.resolver_fallback == "127.0.0.1"
    assert config.timeout == (10.0, 30.0)


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("RELAY_ALLOWED_HOST", "allowed.example")
    monkeypatch.setenv("RELAY_READ_TIMEOUT", "5")
    monkeypatch.setenv("RELAY_RESOLVER_FALLBACK", "")
    monkeypatch.setenv("RELAY_DEBUG", "yes")
    monkeypatch.setenv("PORT", "8080")

    config = RelayConfig.from_env()

    assert config.allowed_host == "allowed.example"
    assert config.read_timeout == 5.0
    assert config.resolver_fallback == ""
    assert config.debug is True
    assert config.port == 8080
