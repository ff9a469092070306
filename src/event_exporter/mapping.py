"""Allow-list filtering and mapping of raw events into the fixed export row shape."""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass, astuple
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional, Union
from prometheus_client import Counter
from event_exporter.validation.events import RawEvent, coerce_event

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ("feedback_type", "user_id", "item_id", "time_stamp", "comment")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

EVENTS_RECEIVED = Counter('exporter_events_received_total', 'Events received before filtering')
EVENTS_FILTERED = Counter('exporter_events_filtered_total', 'Events dropped by the allow-list')
EVENTS_BATCHED = Counter('exporter_events_batched_total', 'Events mapped into export batches')


@dataclass(frozen=True)
class ParsedEvent:
    feedback_type: str
    user_id: str
    item_id: str
    time_stamp: str
    comment: str

    def as_row(self) -> tuple:
        return astuple(self)


def _is_blank(value: Any) -> bool:
    # empty containers still serialize as themselves
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)):
        return value == 0 or value != value  # NaN
    return False


def to_json_text(value: Any) -> str:
    """Compact JSON for a field, ``{}`` when the source is absent or falsy."""
    if _is_blank(value):
        value = {}
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def to_iso8601(value: Any) -> Optional[str]:
    """Convert a timestamp to ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC, or None if it can't be parsed.

    Accepts ISO strings (``Z`` or explicit offset), datetimes and epoch milliseconds.
    Naive values are taken as UTC.
    """
    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            dt = _EPOCH + timedelta(milliseconds=value)
        elif isinstance(value, str) and value.strip():
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        else:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        dt = dt.astimezone(timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None
    return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{dt.microsecond // 1000:03d}Z"


def _event_time(event: RawEvent) -> str:
    for candidate in (event.timestamp, event.sent_at, event.now):
        if candidate is None or candidate == "":
            continue
        iso = to_iso8601(candidate)
        if iso is None:
            # keep the bad literal so the insert fails and the batch takes the retry path
            logger.warning(f"Unparseable timestamp {candidate!r} on event {event.event!r}")
            return str(candidate)
        return iso
    return ""


def _first_present(*values: Any) -> Any:
    for v in values:
        if not _is_blank(v):
            return v
    return None


def parse_event(event: Union[RawEvent, dict]) -> ParsedEvent:
    ev = coerce_event(event)
    return ParsedEvent(
        feedback_type=ev.event if isinstance(ev.event, str) else "",
        user_id=to_json_text(_first_present(ev.anonymous_id, ev.user_id)),
        item_id=to_json_text(_first_present(ev.service_id, ev.item_id)),
        time_stamp=_event_time(ev),
        comment=to_json_text(_first_present(ev.elements_chain, ev.comment)),
    )


def build_batch(events: Iterable[Union[RawEvent, dict]], allowed_events: frozenset[str] | set[str]) -> List[ParsedEvent]:
    """Map allow-listed events into export rows, preserving input order.

    Events whose name is not an exact member of ``allowed_events`` are skipped without error.
    """
    batch: List[ParsedEvent] = []
    received = 0
    for raw in events:
        received += 1
        ev = coerce_event(raw)
        if not isinstance(ev.event, str) or ev.event not in allowed_events:
            continue
        batch.append(parse_event(ev))
    try:
        EVENTS_RECEIVED.inc(received)
        EVENTS_FILTERED.inc(received - len(batch))
        EVENTS_BATCHED.inc(len(batch))
    except Exception:
        pass
    return batch
