"""Top-level package exports for event_exporter.

Only the pure pipeline pieces are re-exported here; the Celery app and the FastAPI app
are imported explicitly by their entry points so importing the package never touches
the broker or the database.
"""

from event_exporter.exporter import export_events, setup_exporter, build_context
from event_exporter.uploader import UploadJobPayload, UploadOutcome, insert_batch

__all__ = [
	"export_events",
	"setup_exporter",
	"build_context",
	"insert_batch",
	"UploadJobPayload",
	"UploadOutcome",
]
