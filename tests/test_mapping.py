import json
from datetime import datetime, timezone, timedelta

import pytest

from event_exporter.mapping import ParsedEvent, build_batch, parse_event, to_iso8601, to_json_text


def test_feedback_scenario_maps_to_single_record():
    events = [{
        "event": "feedback",
        "user_id": "u1",
        "item_id": "i1",
        "timestamp": "2024-01-01T00:00:00Z",
        "comment": "x",
    }]
    batch = build_batch(events, {"feedback"})
    assert len(batch) == 1
    record = batch[0]
    assert record.feedback_type == "feedback"
    assert record.time_stamp == "2024-01-01T00:00:00.000Z"
    assert json.loads(record.user_id) == "u1"
    assert json.loads(record.item_id) == "i1"
    assert json.loads(record.comment) == "x"


def test_events_outside_allow_list_are_skipped():
    events = [
        {"event": "pageview", "timestamp": "2024-01-01T00:00:00Z"},
        {"event": "feedback", "timestamp": "2024-01-01T00:00:01Z"},
        {"event": "Feedback", "timestamp": "2024-01-01T00:00:02Z"},
        {"timestamp": "2024-01-01T00:00:03Z"},
        {"event": "rating", "timestamp": "2024-01-01T00:00:04Z"},
    ]
    batch = build_batch(events, frozenset({"feedback", "rating"}))
    assert [r.feedback_type for r in batch] == ["feedback", "rating"]
    assert [r.time_stamp for r in batch] == ["2024-01-01T00:00:01.000Z", "2024-01-01T00:00:04.000Z"]


def test_empty_input_or_allow_list_gives_empty_batch():
    assert build_batch([], {"feedback"}) == []
    assert build_batch([{"event": "feedback", "timestamp": "2024-01-01T00:00:00Z"}], frozenset()) == []


def test_plugin_shape_fields_take_precedence():
    record = parse_event({
        "event": "feedback",
        "anonymousId": {"id": "anon-1"},
        "user_id": "ignored",
        "service_id": ["svc", 2],
        "elements_chain": "button:nth-child(1)",
        "timestamp": "2024-03-05T10:20:30.123456+02:00",
        "properties": {"foo": "bar"},
        "distinct_id": "unknown field",
    })
    assert json.loads(record.user_id) == {"id": "anon-1"}
    assert record.user_id == '{"id":"anon-1"}'
    assert json.loads(record.item_id) == ["svc", 2]
    assert json.loads(record.comment) == "button:nth-child(1)"
    assert record.time_stamp == "2024-03-05T08:20:30.123Z"


@pytest.mark.parametrize("missing", [None, "", 0, False])
def test_absent_or_falsy_fields_serialize_as_empty_object(missing):
    record = parse_event({"event": "feedback", "user_id": missing, "item_id": missing,
                          "comment": missing, "timestamp": "2024-01-01T00:00:00Z"})
    assert record.user_id == "{}"
    assert record.item_id == "{}"
    assert record.comment == "{}"


@pytest.mark.parametrize("value", ["plain", {"a": [1, 2, {"b": None}]}, [1, "two"], 3.5, "ünïcode"])
def test_json_fields_round_trip(value):
    assert json.loads(to_json_text(value)) == value


def test_timestamp_fallbacks_and_formats():
    assert to_iso8601(datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=-5)))) == "2024-01-01T17:00:00.000Z"
    assert to_iso8601(datetime(2024, 1, 1, 12, 0)) == "2024-01-01T12:00:00.000Z"
    assert to_iso8601(1704067200123) == "2024-01-01T00:00:00.123Z"
    assert to_iso8601("2024-01-01") == "2024-01-01T00:00:00.000Z"
    assert to_iso8601("not a date") is None
    assert to_iso8601(None) is None

    record = parse_event({"event": "feedback", "sent_at": "2024-02-02T02:02:02Z", "now": "2030-01-01T00:00:00Z"})
    assert record.time_stamp == "2024-02-02T02:02:02.000Z"
    record = parse_event({"event": "feedback", "now": "2030-01-01T00:00:00Z"})
    assert record.time_stamp == "2030-01-01T00:00:00.000Z"


def test_unparseable_timestamp_is_kept_for_the_insert_to_reject():
    record = parse_event({"event": "feedback", "timestamp": "yesterday-ish"})
    assert record.time_stamp == "yesterday-ish"
    batch = build_batch([{"event": "feedback", "timestamp": "yesterday-ish"}], {"feedback"})
    assert len(batch) == 1


def test_as_row_follows_column_order():
    record = ParsedEvent("feedback", '"u"', '"i"', "2024-01-01T00:00:00.000Z", '"c"')
    assert record.as_row() == ("feedback", '"u"', '"i"', "2024-01-01T00:00:00.000Z", '"c"')


def test_non_string_event_names_are_skipped_not_fatal():
    batch = build_batch([
        {"event": 5, "timestamp": "2024-01-01T00:00:00Z"},
        {"event": ["feedback"], "properties": "not-a-dict"},
        {"event": "feedback", "timestamp": "2024-01-01T00:00:01Z"},
    ], frozenset({"feedback"}))
    assert [r.time_stamp for r in batch] == ["2024-01-01T00:00:01.000Z"]
