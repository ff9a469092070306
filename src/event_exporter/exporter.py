"""Exporter bootstrap and the per-chunk export entry point."""
from __future__ import annotations
import logging
from typing import Iterable, Optional, Union
from event_exporter.config import Settings, parse_events_to_insert
from event_exporter.context import ExportContext, ExportState, QueryExecutor
from event_exporter.errors import ConfigurationError, TableSetupError
from event_exporter.infrastructure.db import execute_query
from event_exporter.jobs import UploadJobs
from event_exporter.mapping import build_batch
from event_exporter.sanitizer import sanitize_sql_identifier
from event_exporter.uploader import UploadJobPayload, new_batch_id
from event_exporter.validation.events import RawEvent

logger = logging.getLogger(__name__)

REQUIRED_DISCRETE_OPTIONS = ("host", "port", "db_name", "db_username", "db_password")

CREATE_TABLE_SQL = """CREATE TABLE IF NOT EXISTS public.{table} (
    feedback_type varchar(200),
    user_id varchar(200),
    item_id varchar(200),
    time_stamp timestamp with time zone,
    comment varchar(200)
);"""


def validate_settings(settings: Settings) -> None:
    """Either DATABASE_URL or every discrete connection option must be set."""
    if settings.database_url:
        return
    for option in REQUIRED_DISCRETE_OPTIONS:
        if not getattr(settings, option, None):
            raise ConfigurationError(f"Required config option {option} is missing!")


def setup_exporter(settings: Settings, executor: QueryExecutor = execute_query) -> ExportState:
    """Validate config, make sure the destination table exists and parse the allow-list.

    Any failure here is fatal: the exporter must not accept events without a confirmed table.
    """
    validate_settings(settings)
    table = sanitize_sql_identifier(settings.table_name)
    if not table:
        raise ConfigurationError(f"Table name {settings.table_name!r} has no usable characters")

    query_error = executor(CREATE_TABLE_SQL.format(table=table), [], settings)
    if query_error is not None:
        raise TableSetupError(
            f"Unable to connect to the destination database and create table with error: {query_error}"
        ) from query_error

    events = parse_events_to_insert(settings.events_to_insert)
    if not events:
        logger.warning("EVENTS_TO_INSERT is empty; no events will be exported")
    logger.info(f"Exporter ready: table={table} allowed_events={sorted(events)}")
    return ExportState(sanitized_table_name=table, events_to_insert=events)


def build_context(
    settings: Settings,
    jobs: UploadJobs,
    executor: QueryExecutor = execute_query,
    dead_letter=None,
) -> ExportContext:
    state = setup_exporter(settings, executor=executor)
    return ExportContext(settings=settings, state=state, jobs=jobs, executor=executor, dead_letter=dead_letter)


def export_events(events: Iterable[Union[RawEvent, dict]], context: ExportContext) -> Optional[UploadJobPayload]:
    """Filter and map one chunk of events and queue it for upload.

    Returns the submitted payload, or None when nothing passed the allow-list.
    """
    batch = build_batch(events, context.state.events_to_insert)
    if not batch:
        return None
    payload = UploadJobPayload(batch=batch, batch_id=new_batch_id(), retries_performed_so_far=0)
    context.jobs.upload_batch(payload).run_now()
    return payload


__all__ = [
    "validate_settings",
    "setup_exporter",
    "build_context",
    "export_events",
    "CREATE_TABLE_SQL",
]
