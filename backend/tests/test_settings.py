from qvote.core.settings import get_settings, reload_settings


def test_defaults(monkeypatch):
    names = (
        "VOTE_RATE_LIMIT", "EVENT_CREATE_RATE_LIMIT", "TRUSTED_PROXIES",
        "CREDITS_MAX", "TOKEN_MAX_GENERATE", "JWT_ALGORITHM",
    )
    for name in names:
        monkeypatch.delenv(name, raising=False)
    try:
        settings = reload_settings()
        assert settings.vote_rate_limit == "5/minute"
        assert settings.event_create_rate_limit == "10/hour"
        assert settings.trusted_proxies == "*"
        assert settings.credits_min == 1
        assert settings.credits_max == 1000
        assert settings.token_max_generate == 100
        assert settings.jwt_algorithm == "HS256"
    finally:
        monkeypatch.undo()
        reload_settings()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("VOTE_RATE_LIMIT", "2/second")
    monkeypatch.setenv("CREDITS_MAX", "250")
    monkeypatch.setenv("TOKEN_MAX_GENERATE", "")
    try:
        settings = reload_settings()
        assert settings.vote_rate_limit == "2/second"
        assert settings.credits_max == 250
        # Empty values fall back to the default.
        assert settings.token_max_generate == 100
    finally:
        monkeypatch.undo()
        reload_settings()


def test_settings_are_cached():
    assert get_settings() is get_settings()
