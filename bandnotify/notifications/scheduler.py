"""Periodic triggering of delivery cycles."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol

from bandnotify.core.clock import Clock
from bandnotify.notifications.worker import DeliveryCycleReport, DeliveryWorker

logger = logging.getLogger(__name__)


class Ticker(Protocol):
  """Source of trigger instants."""

  def ticks(self) -> AsyncIterator[datetime.datetime]:
    """Yield the instant of each tick, forever or until exhausted."""


class IntervalTicker:
  """Tick immediately, then once per interval."""

  def __init__(self, *, interval: datetime.timedelta, clock: Clock, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep, max_ticks: int | None = None) -> None:
    if interval <= datetime.timedelta(0):
      raise ValueError("Ticker interval must be positive.")
    self._interval = interval
    self._clock = clock
    self._sleep = sleep
    self._max_ticks = max_ticks

  async def ticks(self) -> AsyncIterator[datetime.datetime]:
    emitted = 0
    while self._max_ticks is None or emitted < self._max_ticks:
      if emitted:
        await self._sleep(self._interval.total_seconds())
      emitted += 1
      yield self._clock.now()


async def invoke_delivery_cycle(worker: DeliveryWorker, *, timeout_seconds: float | None = None) -> DeliveryCycleReport:
  """
  Run one cycle and never let it fail the caller.

  A timed-out cycle leaves its claimed rows unsent; they are picked up again once
  their claim expires. Cancellation still propagates so shutdown stays prompt.
  """
  try:
    if timeout_seconds is None:
      return await worker.run_cycle()
    return await asyncio.wait_for(worker.run_cycle(), timeout=timeout_seconds)
  except TimeoutError:
    logger.warning("Delivery cycle exceeded %.1fs and was abandoned", timeout_seconds)
  except Exception as exc:  # noqa: BLE001
    logger.error("Delivery cycle failed unexpectedly: %s", exc, exc_info=True)
  return DeliveryCycleReport()


class DeliveryScheduler:
  """Run a delivery cycle on every tick, as a background task when started from the app lifespan."""

  def __init__(self, *, worker: DeliveryWorker, ticker: Ticker, timeout_seconds: float | None = None) -> None:
    self._worker = worker
    self._ticker = ticker
    self._timeout_seconds = timeout_seconds
    self._task: asyncio.Task[None] | None = None

  @property
  def running(self) -> bool:
    return self._task is not None and not self._task.done()

  async def run(self, *, on_report: Callable[[DeliveryCycleReport], None] | None = None) -> None:
    async for tick in self._ticker.ticks():
      logger.debug("Delivery tick at %s", tick.isoformat())
      report = await invoke_delivery_cycle(self._worker, timeout_seconds=self._timeout_seconds)
      if on_report is not None:
        on_report(report)

  def start(self) -> None:
    if self.running:
      return
    self._task = asyncio.create_task(self.run(), name="bandnotify-delivery-scheduler")
    logger.info("Delivery scheduler started")

  async def stop(self) -> None:
    task, self._task = self._task, None
    if task is None:
      return
    task.cancel()
    try:
      await task
    except asyncio.CancelledError:
      pass
    logger.info("Delivery scheduler stopped")
