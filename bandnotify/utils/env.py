"""Lightweight .env loader for local configuration."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the default .env path at the repo root."""

  return Path(__file__).resolve().parents[2] / ".env"


def load_env_file(path: Path, *, override: bool = False) -> int:
  """Load key=value pairs from a .env file into the process environment and return how many were applied."""

  if not path.is_file():
    return 0

  applied = 0
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue
    if line.startswith("export "):
      line = line[len("export ") :].lstrip()
    if "=" not in line:
      continue
    key, value = line.split("=", 1)
    key = key.strip()
    value = value.strip()
    if not key:
      continue
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
      value = value[1:-1]
    # Never clobber values injected by the process manager unless asked to.
    if not override and key in os.environ:
      continue
    os.environ[key] = value
    applied += 1

  return applied
