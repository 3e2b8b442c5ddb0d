import pytest

from roster_santa.core.config import load_settings


def test_bot_token_is_required(monkeypatch):
    monkeypatch.delenv("BOT_TOKEN", raising=False)
    with pytest.raises(ValueError):
        load_settings()


def test_defaults(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    for name in ["DATABASE_URL", "ADMIN_IDS", "DRAW_DELAY_SECONDS", "POOL_DELAY_MAX_SECONDS", "REVEAL_DELAY_SECONDS"]:
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()
    assert settings.database_url == "sqlite:///roster_santa.db"
    assert settings.admin_ids == frozenset()
    assert settings.draw_delay_seconds == 2.0
    assert settings.pool_delay_max_seconds == 1.0
    assert settings.reveal_delay_seconds == 0.8


def test_admin_ids_and_delays(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("ADMIN_IDS", "10, 20,")
    monkeypatch.setenv("DRAW_DELAY_SECONDS", "0")
    settings = load_settings()
    assert settings.admin_ids == frozenset({10, 20})
    assert settings.draw_delay_seconds == 0.0


@pytest.mark.parametrize(
    "name, value",
    [("ADMIN_IDS", "ten"), ("DRAW_DELAY_SECONDS", "soon"), ("REVEAL_DELAY_SECONDS", "-1")],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        load_settings()
