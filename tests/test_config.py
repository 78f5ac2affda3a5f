from __future__ import annotations

import pytest

from hs4_mcp import config


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HS4_POLICY_PATH", raising=False)
    settings = config.load_settings()

    assert settings.server.transport_mode == "stdio"
    assert settings.hs4.base_url == "http://127.0.0.1"
    assert settings.admin.execution_mode == "adapter"
    assert settings.admin.direct_fallback is True
    assert settings.change_tokens.ttl_seconds == 900
    assert settings.audit.sqlite_path == ":memory:"
    assert settings.policy.explicit is False
    assert settings.policy.path.endswith("policy.yaml")


def test_load_settings_is_cached() -> None:
    assert config.load_settings() is config.load_settings()


def test_millisecond_env_values_become_seconds(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HS4_TIMEOUT_MS", "2500")
    monkeypatch.setenv("HS4_VERIFY_DELAY_MS", "0")
    monkeypatch.setenv("HS4_READ_RETRY_BACKOFF_MS", "bogus")

    settings = config.load_settings()

    assert settings.hs4.timeout_seconds == 2.5
    assert settings.verification.delay_seconds == 0
    assert settings.hs4.read_retry_backoff_seconds == 0.2


def test_base_url_credentials_are_stripped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HS4_BASE_URL", "HTTP://hs4.lan:8080/?user=a&pass=b&x=1")
    monkeypatch.setenv("HS4_USER", " admin ")
    monkeypatch.setenv("HS4_PASS", "secret")

    settings = config.load_settings()

    assert settings.hs4.base_url == "http://hs4.lan:8080?x=1"
    assert settings.hs4.user == "admin"
    assert settings.hs4.password == "secret"


def test_admin_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HS4_ADMIN_EXECUTION_MODE", " AUTO ")
    monkeypatch.setenv("HS4_ADMIN_DIRECT_FALLBACK", "off")
    monkeypatch.setenv("HS4_ADMIN_CAPABILITY_CACHE_TTL_SEC", "60")

    settings = config.load_settings()

    assert settings.admin.execution_mode == "auto"
    assert settings.admin.direct_fallback is False
    assert settings.admin.capability_cache_ttl_seconds == 60


def test_invalid_integer_uses_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HS4_VERIFY_ATTEMPTS", "many")
    assert config.load_settings().verification.attempts == 4


def test_out_of_range_value_raises_runtime_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HS4_CHANGE_TOKEN_TTL_SEC", "5")
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.load_settings()


def test_unknown_transport_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCP_TRANSPORT", "websocket")
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.load_settings()


def test_explicit_policy_path(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    target = tmp_path / "custom.yaml"
    monkeypatch.setenv("HS4_POLICY_PATH", str(target))

    settings = config.load_settings()

    assert settings.policy.explicit is True
    assert settings.policy.path == str(target.resolve())


def test_audit_path_parent_is_created(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    target = tmp_path / "nested" / "audit.sqlite"
    monkeypatch.setenv("MCP_AUDIT_PERSIST_PATH", str(target))

    settings = config.load_settings()

    assert settings.audit.sqlite_path == str(target.resolve())
    assert target.parent.is_dir()


@pytest.mark.parametrize(
    ("value", "default", "expected"),
    [("YES", False, True), (" off ", True, False), ("maybe", True, True), (None, False, False)],
)
def test_parse_bool(value, default, expected) -> None:
    assert config.parse_bool(value, default) is expected
