from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence
from event_exporter.config import Settings
from event_exporter.infrastructure.db import execute_query
from event_exporter.jobs import UploadJobs

QueryExecutor = Callable[[str, Sequence[Any], Settings], Optional[Exception]]


@dataclass(frozen=True)
class ExportState:
    """Derived once at setup and read-only afterwards."""
    sanitized_table_name: str
    events_to_insert: frozenset[str] = field(default_factory=frozenset)


@dataclass
class ExportContext:
    settings: Settings
    state: ExportState
    jobs: UploadJobs
    executor: QueryExecutor = execute_query
    # called with (payload, last_error) when a batch is abandoned; None keeps the silent drop
    dead_letter: Optional[Callable[..., None]] = None
