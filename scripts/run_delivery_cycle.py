"""Run delivery cycles from cron or a shell and print each cycle report as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running as `python scripts/run_delivery_cycle.py` from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from bandnotify.config import get_settings  # noqa: E402
from bandnotify.core.database import get_db_engine  # noqa: E402
from bandnotify.core.logging import initialize_logging  # noqa: E402
from bandnotify.notifications.factory import build_delivery_scheduler, build_delivery_worker  # noqa: E402
from bandnotify.notifications.scheduler import invoke_delivery_cycle  # noqa: E402
from bandnotify.notifications.worker import DeliveryCycleReport  # noqa: E402

logger = logging.getLogger("scripts.run_delivery_cycle")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description=__doc__)
  parser.add_argument("--loop", action="store_true", help="Keep running one cycle per configured interval instead of exiting after one.")
  return parser.parse_args(argv)


def _print_report(report: DeliveryCycleReport) -> None:
  print(json.dumps(report.as_dict()), flush=True)


async def _run(*, loop: bool) -> int:
  settings = get_settings()
  initialize_logging(settings)
  engine = get_db_engine()
  if engine is None:
    logger.error("BANDNOTIFY_PG_DSN is not set; nothing to deliver.")
    return 1

  try:
    worker = build_delivery_worker(settings)
    if loop:
      await build_delivery_scheduler(settings, worker=worker).run(on_report=_print_report)
      return 0

    _print_report(await invoke_delivery_cycle(worker, timeout_seconds=settings.cycle_timeout_seconds))
    return 0
  finally:
    await engine.dispose()


def main(argv: list[str] | None = None) -> int:
  args = _parse_args(argv)
  return asyncio.run(_run(loop=args.loop))


if __name__ == "__main__":
  raise SystemExit(main())
