"""Batch upload with retry-by-rescheduling.

One upload attempt builds a single multi-row INSERT, runs it through the query executor
and, if it fails, queues the same batch again as a delayed job:

    Pending -> Executing -> Succeeded
                         -> Failed-Retryable -> Scheduled -> Pending (next attempt)
                         -> Failed-Abandoned (retry ceiling reached)

Delays double from 3s: 3000, 6000, 12000, ... ms, for at most 15 retries (16 attempts).
Failures are not classified; a schema error is retried exactly like a dropped connection.
"""
from __future__ import annotations
import logging
import random
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
from prometheus_client import Counter, Histogram
from event_exporter.context import ExportContext
from event_exporter.jobs import UploadJobs
from event_exporter.mapping import EXPORT_COLUMNS, ParsedEvent

logger = logging.getLogger(__name__)

MAX_RETRIES = 15
BASE_RETRY_DELAY_MS = 3000
BATCH_ID_SPACE = 1_000_000

DeadLetterHook = Callable[["UploadJobPayload", Exception], None]

BATCHES_FLUSHED = Counter('exporter_batches_flushed_total', 'Upload attempts started')
BATCH_FAILURES = Counter('exporter_batch_failures_total', 'Upload attempts that failed')
RETRIES_SCHEDULED = Counter('exporter_batch_retries_scheduled_total', 'Delayed re-submissions queued')
BATCHES_ABANDONED = Counter('exporter_batches_abandoned_total', 'Batches dropped after the retry ceiling')
BATCH_SIZE = Histogram('exporter_batch_size_events', 'Rows per upload attempt', buckets=(1, 10, 50, 100, 500, 1000, 5000))


class UploadOutcome(Enum):
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    ABANDONED = "abandoned"


@dataclass
class UploadJobPayload:
    batch: List[ParsedEvent]
    batch_id: int
    retries_performed_so_far: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch": [asdict(e) for e in self.batch],
            "batch_id": self.batch_id,
            "retries_performed_so_far": self.retries_performed_so_far,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploadJobPayload":
        return cls(
            batch=[ParsedEvent(**row) for row in data.get("batch", [])],
            batch_id=int(data["batch_id"]),
            retries_performed_so_far=int(data.get("retries_performed_so_far", 0)),
        )

    def next_attempt(self) -> "UploadJobPayload":
        return UploadJobPayload(
            batch=self.batch,
            batch_id=self.batch_id,
            retries_performed_so_far=self.retries_performed_so_far + 1,
        )


def new_batch_id() -> int:
    # log correlation only; collisions are possible
    return random.randrange(BATCH_ID_SPACE)


def retry_delay_ms(retries_performed_so_far: int) -> int:
    return BASE_RETRY_DELAY_MS * 2 ** retries_performed_so_far


def total_retry_window_ms(max_retries: int = MAX_RETRIES) -> int:
    """Sum of every delay scheduled before a batch is abandoned."""
    return sum(retry_delay_ms(k) for k in range(max_retries))


def build_values_clause(row_count: int) -> str:
    """``(%s, %s, %s, %s, %s), (...)`` with one parenthesised quintuple per row.

    Row ``i`` binds parameter slots ``5*i+1 .. 5*i+5`` of the flattened value list.
    """
    width = len(EXPORT_COLUMNS)
    group = "(" + ", ".join(["%s"] * width) + ")"
    return ", ".join([group] * row_count)


def build_insert_statement(table_name: str, batch: List[ParsedEvent]) -> Tuple[str, List[Any]]:
    values: List[Any] = []
    for parsed in batch:
        values.extend(parsed.as_row())
    query = (
        f"INSERT INTO {table_name} ({', '.join(EXPORT_COLUMNS)})\n"
        f"VALUES {build_values_clause(len(batch))}"
    )
    return query, values


def insert_batch(payload: UploadJobPayload, context: ExportContext) -> UploadOutcome:
    """Run one upload attempt and schedule the next one if it fails."""
    table = context.state.sanitized_table_name
    query, values = build_insert_statement(table, payload.batch)
    count = len(payload.batch)

    logger.info(f"(Batch Id: {payload.batch_id}) Flushing {count} event{'s' if count > 1 else ''} to {table}")
    try:
        BATCHES_FLUSHED.inc()
        BATCH_SIZE.observe(count)
    except Exception:
        pass

    query_error = context.executor(query, values, context.settings)
    if query_error is None:
        return UploadOutcome.SUCCEEDED

    logger.error(f"(Batch Id: {payload.batch_id}) Error uploading to {table}: {query_error}")
    return schedule_retry(payload, query_error, context.jobs, dead_letter=context.dead_letter)


def schedule_retry(
    payload: UploadJobPayload,
    error: Exception,
    jobs: UploadJobs,
    dead_letter: Optional[DeadLetterHook] = None,
) -> UploadOutcome:
    """Count a failed attempt and either queue the next one with backoff or abandon the batch."""
    try:
        BATCH_FAILURES.inc()
    except Exception:
        pass

    if payload.retries_performed_so_far >= MAX_RETRIES:
        _abandon(payload, error, dead_letter)
        return UploadOutcome.ABANDONED

    next_retry_ms = retry_delay_ms(payload.retries_performed_so_far)
    logger.info(f"Enqueued batch {payload.batch_id} for retry in {next_retry_ms}ms")
    jobs.upload_batch(payload.next_attempt()).run_in(next_retry_ms, "milliseconds")
    try:
        RETRIES_SCHEDULED.inc()
    except Exception:
        pass
    return UploadOutcome.RETRY_SCHEDULED


def _abandon(payload: UploadJobPayload, error: Exception, dead_letter: Optional[DeadLetterHook]) -> None:
    logger.warning(
        f"(Batch Id: {payload.batch_id}) Dropping {len(payload.batch)} events after "
        f"{payload.retries_performed_so_far} retries"
    )
    try:
        BATCHES_ABANDONED.inc()
    except Exception:
        pass
    if dead_letter is None:
        return
    try:
        dead_letter(payload, error)
    except Exception as hook_err:
        logger.error(f"(Batch Id: {payload.batch_id}) Dead-letter hook failed: {hook_err}")
