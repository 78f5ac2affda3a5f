from datetime import timedelta

from hs4_mcp import app, config


def test_build_app_context_wires_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("HS4_ADMIN_EXECUTION_MODE", "direct")
    monkeypatch.setenv("HS4_VERIFY_ATTEMPTS", "5")
    monkeypatch.setenv("HS4_CHANGE_TOKEN_TTL_SEC", "60")
    config._load_settings_cached.cache_clear()

    ctx = app.build_app_context(config.load_settings())
    try:
        assert ctx.router.mode == "direct"
        assert ctx.verifier._attempts == 5
        assert ctx.changes._ttl == timedelta(seconds=60)
        assert ctx.gateway is not None
        assert ctx.client.base_url == "http://127.0.0.1"
    finally:
        ctx.audit.close()


def test_get_app_context_is_cached():
    first = app.get_app_context()
    try:
        assert app.get_app_context() is first
    finally:
        first.audit.close()


def test_router_shares_the_context_capability_cache():
    ctx = app.build_app_context(config.load_settings())
    try:
        assert ctx.router.capability_cache is ctx.capabilities
        assert ctx.capabilities.enabled
    finally:
        ctx.audit.close()
