from __future__ import annotations

import datetime

import pytest

from bandnotify.config import get_settings

_DELIVERY_VARS = (
  "BANDNOTIFY_BATCH_SIZE",
  "BATCH_SIZE",
  "BANDNOTIFY_INTERVAL_SECONDS",
  "INTERVAL",
  "BANDNOTIFY_CLAIM_TTL_SECONDS",
  "CLAIM_TTL",
  "BANDNOTIFY_DISPATCH_CONCURRENCY",
  "DISPATCH_CONCURRENCY",
  "BANDNOTIFY_CYCLE_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
  for name in _DELIVERY_VARS:
    monkeypatch.delenv(name, raising=False)
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def test_defaults():
  settings = get_settings()

  assert settings.batch_size == 100
  assert settings.interval == datetime.timedelta(minutes=5)
  assert settings.claim_ttl == settings.interval
  assert settings.dispatch_concurrency == 10
  assert settings.cycle_timeout_seconds == 150
  assert settings.scheduler_enabled is False
  assert settings.push_enabled is False


def test_prefixed_names_win_over_bare_fallbacks(monkeypatch):
  monkeypatch.setenv("BATCH_SIZE", "10")
  monkeypatch.setenv("BANDNOTIFY_BATCH_SIZE", "50")
  monkeypatch.setenv("INTERVAL", "60")

  settings = get_settings()

  assert settings.batch_size == 50
  assert settings.interval_seconds == 60
  assert settings.claim_ttl_seconds == 60


def test_rejects_non_positive_batch_size(monkeypatch):
  monkeypatch.setenv("BANDNOTIFY_BATCH_SIZE", "0")

  with pytest.raises(ValueError):
    get_settings()


def test_rejects_cycle_timeout_not_below_claim_ttl(monkeypatch):
  monkeypatch.setenv("BANDNOTIFY_CLAIM_TTL_SECONDS", "120")
  monkeypatch.setenv("BANDNOTIFY_CYCLE_TIMEOUT_SECONDS", "120")

  with pytest.raises(ValueError):
    get_settings()
