"""Unit tests for telemetry sanitizing, alias normalization and parsing."""

from __future__ import annotations

import pytest

from utpwatch.models.telemetry import (
    ActionRecord,
    LogRecord,
    MemoryLeakRecord,
    PlayerBuildInfoRecord,
    to_number,
)
from utpwatch.telemetry.normalizer import (
    TelemetryParseError,
    normalize_entry,
    parse_line,
    parse_record,
    sanitize,
)


# ---------------------------------------------------------------------------
# Test: sanitize
# ---------------------------------------------------------------------------


class TestSanitize:
    def test_strips_bom_nul_and_ansi(self):
        raw = "\ufeff\x00\x1b[32m{\"type\":\"Action\"}\x1b[0m\x00  "
        assert sanitize(raw) == '{"type":"Action"}'

    def test_empty_result_is_none(self):
        """Garbage fragments from interleaved writes sanitize to nothing."""
        assert sanitize("") is None
        assert sanitize("  \x00\ufeff \x1b[0m ") is None


# ---------------------------------------------------------------------------
# Test: normalize_entry
# ---------------------------------------------------------------------------


class TestNormalizeEntry:
    def test_legacy_aliases_populate_canonical_fields(self, sink):
        entry = {
            "type": "LogEntry",
            "stacktrace": "at Foo()",
            "fileName": "Assets/Foo.cs",
            "lineNumber": 12,
        }
        normalized = normalize_entry(entry, sink)
        assert normalized["stackTrace"] == "at Foo()"
        assert normalized["file"] == "Assets/Foo.cs"
        assert normalized["line"] == 12

    def test_canonical_fields_populate_legacy_aliases(self, sink):
        entry = {
            "type": "LogEntry",
            "stackTrace": "at Bar()",
            "file": "Assets/Bar.cs",
            "line": 7,
        }
        normalized = normalize_entry(entry, sink)
        assert normalized["stacktrace"] == "at Bar()"
        assert normalized["fileName"] == "Assets/Bar.cs"
        assert normalized["lineNumber"] == 7

    def test_existing_values_are_not_overwritten(self, sink):
        entry = {"type": "LogEntry", "file": "a.cs", "fileName": "b.cs"}
        normalized = normalize_entry(entry, sink)
        assert normalized["file"] == "a.cs"
        assert normalized["fileName"] == "b.cs"

    def test_normalization_is_idempotent(self, sink):
        entry = {"type": "LogEntry", "stacktrace": "trace", "lineNumber": 3}
        once = normalize_entry(entry, sink)
        twice = normalize_entry(once, sink)
        assert once == twice

    def test_input_is_not_mutated(self, sink):
        entry = {"type": "LogEntry", "fileName": "x.cs"}
        normalize_entry(entry, sink)
        assert "file" not in entry

    def test_missing_type_warns_but_keeps_entry(self, sink):
        normalized = normalize_entry({"message": "hello"}, sink)
        assert normalized["message"] == "hello"
        assert any("missing type" in msg for msg in sink.messages("warning"))

    def test_unknown_keys_are_reported_by_name(self, sink):
        normalize_entry({"type": "Action", "zeta": 1, "alpha": 2}, sink)
        warnings = sink.messages("warning")
        assert warnings == ["UTP entry contains unrecognized properties: alpha, zeta"]

    def test_known_keys_produce_no_warnings(self, sink):
        normalize_entry({"type": "Action", "phase": "Begin", "time": 1}, sink)
        assert sink.calls == []


# ---------------------------------------------------------------------------
# Test: parse_record / parse_line
# ---------------------------------------------------------------------------


class TestParseRecord:
    def test_action_record(self, sink):
        record = parse_record(
            {"type": "Action", "phase": "Begin", "time": 1000, "processId": 1,
             "name": "evt", "description": "Build player"},
            sink,
        )
        assert isinstance(record, ActionRecord)
        assert record.header.process_id == 1
        assert record.header.description == "Build player"

    def test_reparsing_payload_yields_same_record(self, sink):
        record = parse_record({"type": "LogEntry", "stacktrace": "t", "lineNumber": 4}, sink)
        again = parse_record(record.payload, sink)
        assert again == record
        assert again.header.stack_trace == "t"
        assert again.header.line == 4

    def test_memory_leak_labels_from_mapping_and_list(self, sink):
        from_mapping = parse_record(
            {"type": "MemoryLeaks", "allocatedMemory": 30,
             "memoryLabels": {"Default": 10, "Bad": "oops", "Other": "20"}},
            sink,
        )
        from_list = parse_record(
            {"type": "MemoryLeak", "memoryLabels": [{"Default": 10}, {"Other": 20}]},
            sink,
        )
        assert isinstance(from_mapping, MemoryLeakRecord)
        assert from_mapping.allocated_memory == 30
        assert from_mapping.memory_labels == [("Default", 10), ("Other", 20)]
        assert from_list.memory_labels == [("Default", 10), ("Other", 20)]

    def test_player_build_info_steps(self, sink):
        record = parse_record(
            {"type": "PlayerBuildInfo",
             "steps": [{"description": "Compile", "duration": 1200, "errors": 0}, "junk"]},
            sink,
        )
        assert isinstance(record, PlayerBuildInfoRecord)
        assert len(record.steps) == 1
        assert record.steps[0].description == "Compile"

    def test_untyped_record_is_kept(self, sink):
        record = parse_record({"message": "no type"}, sink)
        assert isinstance(record, LogRecord)
        assert record.header.type is None

    def test_bad_scalar_fields_are_coerced_not_rejected(self, sink):
        record = parse_record(
            {"type": "Action", "time": "not-a-number", "processId": "42",
             "duration": "12.5", "errors": "single error"},
            sink,
        )
        assert record.header.time is None
        assert record.header.process_id == 42
        assert record.header.duration == 12.5
        assert record.header.errors == ["single error"]

    def test_non_object_payload_raises(self, sink):
        with pytest.raises(TelemetryParseError):
            parse_record([1, 2, 3], sink)


class TestParseLine:
    def test_plain_line_is_not_telemetry(self, sink):
        assert parse_line("Refreshing native plugins", sink) is None

    def test_telemetry_line(self, sink):
        record = parse_line(
            '##utp:{"type":"Action","phase":"End","time":1722,"processId":1,'
            '"name":"evt","description":"Build player","duration":722,"errors":[]}',
            sink,
        )
        assert isinstance(record, ActionRecord)
        assert record.header.phase == "End"
        assert record.header.duration == 722

    def test_empty_payload_is_skipped(self, sink):
        assert parse_line("##utp:   \x00", sink) is None

    def test_malformed_json_carries_raw_text(self, sink):
        with pytest.raises(TelemetryParseError) as excinfo:
            parse_line('##utp:{"type": "Action",', sink)
        assert excinfo.value.raw == '{"type": "Action",'

    def test_oversized_integer_literal_raises_parse_error(self, sink):
        payload = '{"type":"LogEntry","version":' + "9" * 5000 + "}"
        with pytest.raises(TelemetryParseError) as excinfo:
            parse_line("##utp:" + payload, sink)
        assert excinfo.value.raw == payload

    def test_deeply_nested_payload_raises_parse_error(self, sink):
        with pytest.raises(TelemetryParseError):
            parse_line("##utp:" + "[" * 100_000 + "]" * 100_000, sink)


class TestToNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(12, 12.0), ("3.5", 3.5), (True, None), ("nan", None), (float("inf"), None)],
    )
    def test_coercion(self, value, expected):
        assert to_number(value) == expected

    def test_integer_beyond_float_range_is_dropped(self):
        assert to_number(10**400) is None

    def test_record_with_huge_duration_still_parses(self, sink):
        record = parse_record({"type": "Action", "duration": 10**400}, sink)
        assert record.header.duration is None
