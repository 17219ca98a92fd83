"""
Verification settings: env parsing, clamping and dev defaults.
"""
from __future__ import annotations

import pytest

from backend.verification.config import (
    MAX_CODE_TTL_SECONDS,
    get_notifier_backend,
    load_smtp_settings,
    load_verification_settings,
)


def test_dev_defaults_when_unset():
    s = load_verification_settings()
    assert s.code_ttl_ms == 15 * 60 * 1000
    assert s.request_code_interval_ms == 60_000
    assert s.confirm_code_interval_ms == 1_000
    assert s.scan_interval_ms == 1_000
    assert s.notifier_backend == "console"


def test_explicit_values_are_used(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("VERIFY_CODE_TTL_SECONDS", "300")
    monkeypatch.setenv("VERIFY_REQUEST_MIN_INTERVAL_MS", "120000")
    monkeypatch.setenv("VERIFY_CONFIRM_MIN_INTERVAL_MS", "2500")
    monkeypatch.setenv("VERIFY_SCAN_MIN_INTERVAL_MS", "750")
    s = load_verification_settings()
    assert s.code_ttl_ms == 300_000
    assert s.request_code_interval_ms == 120_000
    assert s.confirm_code_interval_ms == 2_500
    assert s.scan_interval_ms == 750


@pytest.mark.parametrize("raw", ["abc", "0", "-5", "  "])
def test_invalid_values_fall_back_to_default(monkeypatch: pytest.MonkeyPatch, raw: str):
    monkeypatch.setenv("VERIFY_SCAN_MIN_INTERVAL_MS", raw)
    assert load_verification_settings().scan_interval_ms == 1_000


def test_code_ttl_is_clamped(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("VERIFY_CODE_TTL_SECONDS", str(MAX_CODE_TTL_SECONDS * 10))
    assert load_verification_settings().code_ttl_ms == MAX_CODE_TTL_SECONDS * 1000


def test_notifier_backend_normalized(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NOTIFIER_BACKEND", " SMTP ")
    assert get_notifier_backend() == "smtp"
    monkeypatch.setenv("NOTIFIER_BACKEND", "sms")
    assert get_notifier_backend() == "console"


def test_smtp_settings_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SMTP_HOST", " mail.example.org ")
    monkeypatch.setenv("SMTP_PORT", "465")
    monkeypatch.setenv("SMTP_PASSWORD", "geheim")
    monkeypatch.setenv("SMTP_STARTTLS", "false")
    smtp = load_smtp_settings()
    assert smtp.host == "mail.example.org"
    assert smtp.port == 465
    assert smtp.starttls is False
    assert smtp.use_tls is True
    assert "geheim" not in repr(smtp)
