from datetime import timedelta

import pytest

from asset_engines.config import runtime_config
from asset_engines.config.settings import get_settings


def test_defaults(monkeypatch):
    for name in (
        "THUMB_MAX_WIDTH",
        "THUMB_MAX_HEIGHT",
        "THUMB_PREFIX",
        "CASCADE_BATCH_SIZE",
        "LINK_MAX_ATTEMPTS",
        "SIGNED_URL_TTL_SECONDS",
        "ROLLBACK_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert (settings.thumb_max_width, settings.thumb_max_height) == (250, 250)
    assert settings.thumb_prefix == "thumb_"
    assert settings.cascade_batch_size == 20
    assert settings.link_max_attempts == 5
    assert settings.signed_url_ttl == timedelta(days=7)
    assert settings.rollback_policy == "both"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("THUMB_MAX_WIDTH", "320")
    monkeypatch.setenv("THUMB_MAX_HEIGHT", "200")
    monkeypatch.setenv("LINK_BACKOFF_SECONDS", "0.25")
    monkeypatch.setenv("ROLLBACK_POLICY", "derivative_only")

    settings = get_settings()

    assert (settings.thumb_max_width, settings.thumb_max_height) == (320, 200)
    assert settings.link_backoff_seconds == 0.25
    assert settings.rollback_policy == "derivative_only"


def test_invalid_values_raise(monkeypatch):
    monkeypatch.setenv("CASCADE_BATCH_SIZE", "twenty")
    with pytest.raises(RuntimeError):
        runtime_config.get_cascade_batch_size()

    monkeypatch.setenv("ROLLBACK_POLICY", "primary_only")
    with pytest.raises(RuntimeError):
        runtime_config.get_rollback_policy()
