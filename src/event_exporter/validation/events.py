from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict


class RawEvent(BaseModel):
    """Incoming analytics event as delivered by the host runtime.

    Only the fields the exporter reads are declared; everything else on the wire is ignored.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    # untyped so odd names fail the allow-list instead of the whole chunk
    event: Any = None
    properties: Any = Field(default_factory=dict)
    # identity / service / payload fields, in both the plugin and the flat feedback shapes
    anonymous_id: Any = Field(None, alias="anonymousId")
    user_id: Any = None
    service_id: Any = None
    item_id: Any = None
    elements_chain: Any = None
    comment: Any = None
    # candidate timestamps, most specific first; left untyped so bad values reach the insert
    timestamp: Any = None
    sent_at: Any = None
    now: Any = None


def coerce_event(evt: RawEvent | Dict[str, Any]) -> RawEvent:
    if isinstance(evt, RawEvent):
        return evt
    return RawEvent.model_validate(evt)
