from datetime import timedelta

import pytest

from todo_api.settings import DEFAULT_JWT_SECRET, get_settings, parse_duration


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("24h", timedelta(hours=24)),
        ("90m", timedelta(minutes=90)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(hours=1, minutes=30)),
        ("45s", timedelta(seconds=45)),
        ("500ms", timedelta(milliseconds=500)),
        ("0", timedelta(0)),
        ("-1h", timedelta(hours=-1)),
    ],
)
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "24", "h", "1d", "1h 30m", "abc", "1h-2m"])
def test_parse_duration_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


class TestGetSettings:
    def test_defaults(self, monkeypatch):
        for name in [
            "ENV",
            "PERSISTENCE_BACKEND",
            "JWT_SECRET",
            "JWT_EXPIRES_IN",
            "CORS_ALLOW_ORIGINS",
            "BCRYPT_ROUNDS",
            "PORT",
        ]:
            monkeypatch.delenv(name, raising=False)
        s = get_settings()
        assert s.env == "development"
        assert s.persistence_backend == "memory"
        assert s.jwt_secret == DEFAULT_JWT_SECRET
        assert s.uses_default_secret
        assert s.jwt_expires_in == timedelta(hours=24)
        assert s.cors_allow_origins == ["*"]
        assert s.bcrypt_rounds is None
        assert s.port == 4000

    def test_malformed_ttl_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("JWT_EXPIRES_IN", "tomorrow")
        assert get_settings().jwt_expires_in == timedelta(hours=24)

    def test_custom_values(self, monkeypatch):
        monkeypatch.setenv("JWT_EXPIRES_IN", "2h")
        monkeypatch.setenv("JWT_SECRET", "s3cr3t-value-that-is-long-enough-000")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("PERSISTENCE_BACKEND", "SQLite")
        monkeypatch.setenv("BCRYPT_ROUNDS", "5")
        s = get_settings()
        assert s.jwt_expires_in == timedelta(hours=2)
        assert not s.uses_default_secret
        assert s.cors_allow_origins == ["http://a.test", "http://b.test"]
        assert s.persistence_backend == "sqlite"
        assert s.bcrypt_rounds == 5

    def test_unknown_backend_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "mongo")
        assert get_settings().persistence_backend == "memory"

    def test_production_refuses_default_secret(self, monkeypatch):
        monkeypatch.setenv("ENV", "production")
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(ValueError):
            get_settings()
