from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from event_exporter.api.events import router as events_router
from event_exporter.config import get_settings
from event_exporter.exporter import build_context
from event_exporter.jobs import CeleryUploadJobs

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    # fatal on bad config or missing table: the app must not start accepting events
    app.state.export_context = build_context(settings, jobs=CeleryUploadJobs())
    yield


app = FastAPI(title="Event Exporter", version="0.1.0", lifespan=lifespan)
app.include_router(events_router)
