"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from bandnotify.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_ENV_PREFIX = "BANDNOTIFY_"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the notification delivery service."""

  environment: str
  debug: bool
  pg_dsn: str | None
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  batch_size: int
  interval_seconds: int
  claim_ttl_seconds: int
  dispatch_concurrency: int
  cycle_timeout_seconds: float
  scheduler_enabled: bool
  push_enabled: bool
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  task_secret: str | None

  @property
  def claim_ttl(self) -> timedelta:
    return timedelta(seconds=self.claim_ttl_seconds)

  @property
  def interval(self) -> timedelta:
    return timedelta(seconds=self.interval_seconds)


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None


def _env(name: str, *fallbacks: str) -> str | None:
  """Read a prefixed variable, falling back to the bare names operators already use."""
  value = os.getenv(f"{_ENV_PREFIX}{name}")
  if value is not None and value.strip() != "":
    return value
  for fallback in fallbacks:
    value = os.getenv(fallback)
    if value is not None and value.strip() != "":
      return value
  return None


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_positive_int(raw: str | None, *, default: int, name: str) -> int:
  if raw is None:
    return default
  try:
    value = int(raw)
  except ValueError as exc:
    raise ValueError(f"{_ENV_PREFIX}{name} must be an integer.") from exc
  if value <= 0:
    raise ValueError(f"{_ENV_PREFIX}{name} must be a positive integer.")
  return value


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = (_env("ENV") or "development").lower()
  debug = _parse_bool(_env("DEBUG"))

  log_max_bytes = _parse_positive_int(_env("LOG_MAX_BYTES"), default=5242880, name="LOG_MAX_BYTES")  # 5MB default
  log_backup_count = int(_env("LOG_BACKUP_COUNT") or "10")
  if log_backup_count < 0:
    raise ValueError("BANDNOTIFY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  batch_size = _parse_positive_int(_env("BATCH_SIZE", "BATCH_SIZE"), default=100, name="BATCH_SIZE")
  interval_seconds = _parse_positive_int(_env("INTERVAL_SECONDS", "INTERVAL"), default=300, name="INTERVAL_SECONDS")
  # A claim outliving one tick keeps a slow cycle's rows away from the next tick.
  claim_ttl_seconds = _parse_positive_int(_env("CLAIM_TTL_SECONDS", "CLAIM_TTL"), default=interval_seconds, name="CLAIM_TTL_SECONDS")
  dispatch_concurrency = _parse_positive_int(_env("DISPATCH_CONCURRENCY", "DISPATCH_CONCURRENCY"), default=10, name="DISPATCH_CONCURRENCY")

  raw_timeout = _env("CYCLE_TIMEOUT_SECONDS")
  cycle_timeout_seconds = float(raw_timeout) if raw_timeout is not None else claim_ttl_seconds / 2
  if cycle_timeout_seconds <= 0:
    raise ValueError("BANDNOTIFY_CYCLE_TIMEOUT_SECONDS must be positive.")

  # A cycle still dispatching after its claims expire could race the next cycle on the same rows.
  if cycle_timeout_seconds >= claim_ttl_seconds:
    raise ValueError("BANDNOTIFY_CYCLE_TIMEOUT_SECONDS must be lower than the claim TTL.")

  return Settings(
    environment=environment,
    debug=debug,
    pg_dsn=_optional_str(_env("PG_DSN", "DATABASE_URL")),
    log_dir=(_env("LOG_DIR") or "logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    batch_size=batch_size,
    interval_seconds=interval_seconds,
    claim_ttl_seconds=claim_ttl_seconds,
    dispatch_concurrency=dispatch_concurrency,
    cycle_timeout_seconds=cycle_timeout_seconds,
    scheduler_enabled=_parse_bool(_env("SCHEDULER_ENABLED")),
    push_enabled=_parse_bool(_env("PUSH_ENABLED")),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    task_secret=_optional_str(_env("TASK_SECRET")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring the delivery configuration."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  return DatabaseSettings(debug=_parse_bool(_env("DEBUG")), pg_dsn=_optional_str(_env("PG_DSN", "DATABASE_URL")))
