"""Factory helpers for the delivery pipeline."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bandnotify.config import Settings
from bandnotify.core.clock import Clock, SystemClock
from bandnotify.core.firebase import initialize_firebase
from bandnotify.notifications.contracts import PushGateway
from bandnotify.notifications.device_tokens import DeviceTokenStore
from bandnotify.notifications.push_gateway import FirebasePushGateway, UnconfiguredPushGateway
from bandnotify.notifications.queue import NotificationQueue
from bandnotify.notifications.scheduler import DeliveryScheduler, IntervalTicker
from bandnotify.notifications.worker import DeliveryWorker

logger = logging.getLogger(__name__)


def build_push_gateway(settings: Settings) -> PushGateway:
  """Construct the push gateway based on environment configuration."""
  # Push is disabled by default to avoid accidental delivery in dev/test.
  if not settings.push_enabled:
    return UnconfiguredPushGateway("Push notifications are disabled (BANDNOTIFY_PUSH_ENABLED is off).")

  # Missing credentials must not stop the service; the queue backlog makes the problem visible.
  if not initialize_firebase(settings):
    logger.warning("Push enabled but Firebase is not configured; deliveries will fail until FIREBASE_PROJECT_ID is set.")
    return UnconfiguredPushGateway("Firebase credentials are missing.")
  return FirebasePushGateway()


def build_delivery_worker(settings: Settings, *, session_factory: async_sessionmaker[AsyncSession] | None = None, gateway: PushGateway | None = None, clock: Clock | None = None) -> DeliveryWorker:
  clock = clock or SystemClock()
  return DeliveryWorker(
    queue=NotificationQueue(session_factory, clock=clock),
    token_store=DeviceTokenStore(session_factory, clock=clock),
    gateway=gateway or build_push_gateway(settings),
    clock=clock,
    batch_size=settings.batch_size,
    claim_ttl=settings.claim_ttl,
    dispatch_concurrency=settings.dispatch_concurrency,
  )


def build_delivery_scheduler(settings: Settings, *, worker: DeliveryWorker | None = None, clock: Clock | None = None) -> DeliveryScheduler:
  clock = clock or SystemClock()
  worker = worker or build_delivery_worker(settings, clock=clock)
  return DeliveryScheduler(worker=worker, ticker=IntervalTicker(interval=settings.interval, clock=clock), timeout_seconds=settings.cycle_timeout_seconds)
