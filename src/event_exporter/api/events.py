from __future__ import annotations
from fastapi import APIRouter, Body, Request
from typing import List
from event_exporter.context import ExportContext
from event_exporter.exporter import export_events
from event_exporter.validation.events import RawEvent

router = APIRouter(tags=["events"])


def _context(request: Request) -> ExportContext:
    return request.app.state.export_context


@router.post("/events/export")
def export_chunk(request: Request, events: List[RawEvent] = Body(...)):
    payload = export_events(events, _context(request))
    return {
        "received": len(events),
        "batched": len(payload.batch) if payload else 0,
        "batch_id": payload.batch_id if payload else None,
    }


@router.get("/health")
def health(request: Request):
    state = _context(request).state
    return {
        "status": "ok",
        "table": state.sanitized_table_name,
        "allowed_events": len(state.events_to_insert),
    }
