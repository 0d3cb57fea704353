import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bandnotify.config import get_settings
from bandnotify.core.database import get_db_engine
from bandnotify.core.logging import initialize_logging
from bandnotify.notifications.factory import build_delivery_scheduler, build_delivery_worker


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and the delivery worker; run the in-process scheduler when enabled."""
  settings = get_settings()
  logger = logging.getLogger("bandnotify.core.lifespan")

  try:
    initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except RuntimeError:
    # Fall back to stderr logging rather than refusing to serve.
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  app.state.delivery_worker = None
  scheduler = None
  if get_db_engine() is None:
    logger.warning("BANDNOTIFY_PG_DSN is not set; delivery worker disabled.")
  else:
    # Building the worker also initializes Firebase when push is enabled.
    app.state.delivery_worker = build_delivery_worker(settings)
    if settings.scheduler_enabled:
      scheduler = build_delivery_scheduler(settings, worker=app.state.delivery_worker)
      scheduler.start()

  try:
    yield
  finally:
    if scheduler is not None:
      await scheduler.stop()
    engine = get_db_engine()
    if engine is not None:
      await engine.dispose()
