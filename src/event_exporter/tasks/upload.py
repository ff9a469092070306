"""Celery task that performs one batch upload attempt.

Retries are not Celery retries: a failed attempt queues a fresh task with a countdown
through the same job seam the exporter uses, carrying the incremented retry counter.
"""
from __future__ import annotations
import logging
from functools import lru_cache
from celery import signals
from prometheus_client import Counter
from event_exporter.infrastructure.celery_app import celery_app
from event_exporter.config import get_settings
from event_exporter.context import ExportContext
from event_exporter.errors import ConfigurationError, TableSetupError
from event_exporter.exporter import build_context
from event_exporter.jobs import CeleryUploadJobs
from event_exporter.uploader import UploadJobPayload, insert_batch, schedule_retry

logger = logging.getLogger(__name__)

UPLOAD_ATTEMPTS = Counter('exporter_upload_attempts_total', 'Upload task runs by outcome', ['outcome'])


@lru_cache
def worker_context() -> ExportContext:
    """Build the exporter state once per worker process (runs table setup)."""
    return build_context(get_settings(), jobs=CeleryUploadJobs(task=upload_batch))


@signals.worker_process_init.connect
def _prepare_worker_process(**kwargs):  # noqa
    try:
        worker_context()
    except ConfigurationError:
        logger.critical("Exporter configuration is invalid; upload tasks cannot run")
        raise
    except TableSetupError as err:
        # the destination may come back; the first task tries again
        logger.error(f"Destination table setup failed at worker start: {err}")


@celery_app.task(name="event_exporter.upload_batch")
def upload_batch(payload: dict):
    job = UploadJobPayload.from_dict(payload)
    try:
        context = worker_context()
    except TableSetupError as err:
        # a destination outage during setup counts as a failed attempt for this batch
        logger.error(f"(Batch Id: {job.batch_id}) Destination not ready: {err}")
        outcome = schedule_retry(job, err, CeleryUploadJobs(task=upload_batch))
    else:
        outcome = insert_batch(job, context)
    try:
        UPLOAD_ATTEMPTS.labels(outcome=outcome.value).inc()
    except Exception:
        pass
    return {"batch_id": job.batch_id, "outcome": outcome.value, "attempt": job.retries_performed_so_far + 1}

