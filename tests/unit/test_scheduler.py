from __future__ import annotations

import asyncio
import datetime
from unittest.mock import AsyncMock

import pytest

from bandnotify.core.clock import ManualClock
from bandnotify.notifications.scheduler import DeliveryScheduler, IntervalTicker, invoke_delivery_cycle
from bandnotify.notifications.worker import DeliveryCycleReport

START = datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.UTC)


def _advancing_sleep(clock: ManualClock, sleeps: list[float]):
  async def _sleep(seconds: float) -> None:
    sleeps.append(seconds)
    clock.advance(datetime.timedelta(seconds=seconds))

  return _sleep


@pytest.mark.anyio
async def test_interval_ticker_fires_immediately_then_every_interval():
  clock = ManualClock(START)
  sleeps: list[float] = []
  ticker = IntervalTicker(interval=datetime.timedelta(minutes=5), clock=clock, sleep=_advancing_sleep(clock, sleeps), max_ticks=3)

  ticks = [tick async for tick in ticker.ticks()]

  assert ticks == [START, START + datetime.timedelta(minutes=5), START + datetime.timedelta(minutes=10)]
  assert sleeps == [300.0, 300.0]


def test_interval_ticker_rejects_non_positive_interval():
  with pytest.raises(ValueError):
    IntervalTicker(interval=datetime.timedelta(0), clock=ManualClock(START))


def test_manual_clock_cannot_go_backwards():
  clock = ManualClock(START)
  with pytest.raises(ValueError):
    clock.advance(datetime.timedelta(seconds=-1))


@pytest.mark.anyio
async def test_invoke_delivery_cycle_swallows_worker_errors():
  worker = AsyncMock()
  worker.run_cycle.side_effect = RuntimeError("boom")

  report = await invoke_delivery_cycle(worker, timeout_seconds=5)

  assert report.as_dict() == {"status": "ok", "processed": 0, "sent": 0, "pruned_tokens": 0}


@pytest.mark.anyio
async def test_invoke_delivery_cycle_abandons_slow_cycles():
  worker = AsyncMock()

  async def _slow():
    await asyncio.sleep(10)
    return DeliveryCycleReport(processed=1)

  worker.run_cycle.side_effect = _slow

  report = await invoke_delivery_cycle(worker, timeout_seconds=0.01)

  assert report.processed == 0
  assert report.status == "ok"


@pytest.mark.anyio
async def test_scheduler_runs_one_cycle_per_tick():
  clock = ManualClock(START)
  worker = AsyncMock()
  worker.run_cycle.return_value = DeliveryCycleReport(processed=2, sent=2)
  ticker = IntervalTicker(interval=datetime.timedelta(minutes=5), clock=clock, sleep=_advancing_sleep(clock, []), max_ticks=2)

  await DeliveryScheduler(worker=worker, ticker=ticker, timeout_seconds=60).run()

  assert worker.run_cycle.await_count == 2
  assert clock.now() == START + datetime.timedelta(minutes=5)


@pytest.mark.anyio
async def test_scheduler_start_and_stop_background_task():
  worker = AsyncMock()
  worker.run_cycle.return_value = DeliveryCycleReport()
  ticker = IntervalTicker(interval=datetime.timedelta(hours=1), clock=ManualClock(START))
  scheduler = DeliveryScheduler(worker=worker, ticker=ticker, timeout_seconds=60)

  scheduler.start()
  assert scheduler.running
  # Let the first tick run before stopping.
  for _ in range(10):
    await asyncio.sleep(0)
  await scheduler.stop()

  assert not scheduler.running
  assert worker.run_cycle.await_count == 1


@pytest.mark.anyio
async def test_scheduler_hands_each_report_to_callback():
  clock = ManualClock(START)
  worker = AsyncMock()
  worker.run_cycle.side_effect = [DeliveryCycleReport(processed=3, sent=2), RuntimeError("boom")]
  ticker = IntervalTicker(interval=datetime.timedelta(minutes=5), clock=clock, sleep=_advancing_sleep(clock, []), max_ticks=2)
  reports: list[DeliveryCycleReport] = []

  await DeliveryScheduler(worker=worker, ticker=ticker, timeout_seconds=60).run(on_report=reports.append)

  assert [report.as_dict() for report in reports] == [
    {"status": "ok", "processed": 3, "sent": 2, "pruned_tokens": 0},
    {"status": "ok", "processed": 0, "sent": 0, "pruned_tokens": 0},
  ]
