"""Job submission seam between the exporter and the task queue.

The exporter only ever asks for ``jobs.upload_batch(payload)`` and then either
``run_now()`` or ``run_in(delay, unit)``. Both return as soon as the job is queued.
"""
from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:  # pragma: no cover
    from event_exporter.uploader import UploadJobPayload

logger = logging.getLogger(__name__)

TIME_UNITS_MS = {
    "milliseconds": 1,
    "seconds": 1000,
    "minutes": 60_000,
    "hours": 3_600_000,
}


def to_milliseconds(delay: float, unit: str) -> float:
    try:
        return delay * TIME_UNITS_MS[unit]
    except KeyError:
        raise ValueError(f"Unsupported time unit: {unit}") from None


class JobHandle(Protocol):
    def run_now(self) -> Any: ...

    def run_in(self, delay: float, unit: str = "milliseconds") -> Any: ...


class UploadJobs(Protocol):
    def upload_batch(self, payload: "UploadJobPayload") -> JobHandle: ...


class CeleryJobHandle:
    """Queues one upload attempt on a Celery task."""

    def __init__(self, task, payload: "UploadJobPayload"):
        self.task = task
        self.payload = payload

    def run_now(self):
        return self.task.apply_async(args=[self.payload.to_dict()])

    def run_in(self, delay: float, unit: str = "milliseconds"):
        countdown = to_milliseconds(delay, unit) / 1000
        return self.task.apply_async(args=[self.payload.to_dict()], countdown=countdown)


class CeleryUploadJobs:
    def __init__(self, task=None):
        self._task = task

    def upload_batch(self, payload: "UploadJobPayload") -> CeleryJobHandle:
        task = self._task
        if task is None:
            from event_exporter.tasks.upload import upload_batch as task  # late import: task module builds the worker context
        return CeleryJobHandle(task, payload)
