from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from bandnotify.api.routes import devices, notifications, preferences, tasks
from bandnotify.core.exceptions import global_exception_handler, http_exception_handler, queue_io_exception_handler, request_validation_exception_handler
from bandnotify.core.lifespan import lifespan
from bandnotify.core.middleware import RequestLoggingMiddleware
from bandnotify.notifications.contracts import QueueIOError

app = FastAPI(title="bandnotify", lifespan=lifespan, docs_url=None, redoc_url=None)

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(QueueIOError, queue_io_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
app.include_router(devices.router, prefix="/v1/devices", tags=["devices"])
app.include_router(notifications.router, prefix="/v1/notifications", tags=["notifications"])
app.include_router(preferences.router, prefix="/v1/notification-preferences", tags=["preferences"])
