import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from meetingroom.config import LOG_LEVEL, REMINDER_INTERVAL_SECONDS, REMINDERS_ENABLED
from meetingroom.routers import (
    audit_logs,
    auth,
    bookings,
    calendar_sync,
    dashboard,
    email_settings,
    notifications,
    rooms,
    uploads,
    users,
)
from meetingroom.db import SessionLocal, init_database
from meetingroom.seed import ensure_default_admin
from meetingroom.utils.reminders import run_reminder_scan

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def reminder_loop(interval: int):
    while True:
        try:
            await asyncio.to_thread(run_reminder_scan)
        except Exception:
            logger.exception("Reminder scan failed")
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(_: FastAPI):
    "lifespan for initing database and the reminder service"
    init_database()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()

    task = None
    if REMINDERS_ENABLED:
        task = asyncio.create_task(reminder_loop(REMINDER_INTERVAL_SECONDS))
        logger.info(f"Reminder service started, checking every {REMINDER_INTERVAL_SECONDS} seconds")
    yield
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


app = FastAPI(
    lifespan=lifespan,
    title="Meeting room booker",
    description="Meeting room booking with recurrence, conflict detection and reminders, based on FastAPI.",
    version="0.1.0",
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT",
    },
)


@app.exception_handler(OperationalError)
async def storage_unavailable_handler(request: Request, exc: OperationalError):
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage temporarily unavailable, retry the request"},
        headers={"Retry-After": "5"},
    )


app.include_router(auth.router)
app.include_router(rooms.router)
app.include_router(bookings.router)
app.include_router(users.router)
app.include_router(notifications.router)
app.include_router(audit_logs.router)
app.include_router(email_settings.router)
app.include_router(uploads.router)
app.include_router(calendar_sync.router)
app.include_router(dashboard.router)


def run():
    import uvicorn

    uvicorn.run("meetingroom.main:app", host="0.0.0.0", port=8000)
