from core_config.constants import (
    BODY_METHODS,
    HEALTH_PORT,
    OUTBOUND_TIMEOUT_MAX_MS,
    OUTBOUND_TIMEOUT_MS,
    clamp_timeout_ms,
)
from core_config.settings import get_settings


def test_defaults_are_ints():
    assert isinstance(OUTBOUND_TIMEOUT_MS, int)
    assert isinstance(OUTBOUND_TIMEOUT_MAX_MS, int)
    assert isinstance(HEALTH_PORT, int)


def test_settings_defaults_mirror_constants():
    """Settings defaults must mirror the shared constants."""
    s = get_settings()
    assert s.outbound_timeout_ms == OUTBOUND_TIMEOUT_MS
    assert s.outbound_timeout_max_ms == OUTBOUND_TIMEOUT_MAX_MS
    assert s.outbound_follow_redirects is True


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("OUTBOUND_TIMEOUT_MS", "2500")
    monkeypatch.setenv("OUTBOUND_FOLLOW_REDIRECTS", "false")
    s = get_settings()
    assert s.outbound_timeout_ms == 2500
    assert s.outbound_follow_redirects is False


def test_body_methods():
    assert BODY_METHODS == {"POST", "PUT", "PATCH"}


def test_clamp_timeout_ms():
    assert clamp_timeout_ms(None, default_ms=1000, max_ms=5000) == 1000
    assert clamp_timeout_ms(250, default_ms=1000, max_ms=5000) == 250
    assert clamp_timeout_ms(90000, default_ms=1000, max_ms=5000) == 5000
