"""Unit tests for TelemetryRouter line and record dispatch."""

from __future__ import annotations

import json

from utpwatch.telemetry.router import TelemetryRouter, is_loggable


# ---------------------------------------------------------------------------
# Test: Plain lines
# ---------------------------------------------------------------------------


class TestPlainLines:
    def test_plain_line_is_passed_through(self, router, stream):
        assert router.route_line("Refreshing native plugins") is None
        assert stream.getvalue() == "Refreshing native plugins\n"
        assert router.telemetry == []

    def test_telemetry_only_suppresses_plain_lines(self, sink, renderer, stream):
        router = TelemetryRouter(sink, renderer=renderer, telemetry_only=True)
        router.route_line("Refreshing native plugins")
        assert stream.getvalue() == ""

    def test_empty_telemetry_fragment_is_ignored(self, router, stream, sink):
        assert router.route_line("##utp:  ") is None
        assert stream.getvalue() == ""
        assert sink.calls == []


# ---------------------------------------------------------------------------
# Test: Actions
# ---------------------------------------------------------------------------


class TestActions:
    def test_action_pair_renders_timeline(self, router, stream, utp_line):
        common = {"type": "Action", "processId": 1, "name": "evt", "description": "Build player"}
        router.route_line(utp_line(phase="Begin", time=1000, **common))
        router.route_line(utp_line(phase="End", time=1722, errors=[], **common))

        output = stream.getvalue()
        assert "Build player" in output
        assert "722ms" in output
        assert len(router.telemetry) == 2
        snapshot = router.accumulator.snapshot()
        assert snapshot.completed[0].duration_ms == 722

    def test_immediate_action_does_not_render(self, router, stream, utp_line):
        router.route_line(utp_line(type="Action", phase="Immediate", description="Ping"))
        assert stream.getvalue() == ""
        assert len(router.telemetry) == 1

    def test_player_build_info_renders(self, router, stream, utp_line):
        router.route_line(
            utp_line(type="PlayerBuildInfo", steps=[{"description": "Compile", "duration": 1200}])
        )
        assert "Build Step" in stream.getvalue()
        assert "Compile" in stream.getvalue()


# ---------------------------------------------------------------------------
# Test: Escalation
# ---------------------------------------------------------------------------


class TestEscalation:
    def test_error_inside_project_is_annotated(self, router, sink, utp_line):
        router.route_line(
            utp_line(
                type="Compiler",
                severity="Error",
                message="CS1002: ; expected",
                file="/work/project/Assets/Foo.cs",
                line=12,
            )
        )
        assert sink.annotations == [
            ("error", "CS1002: ; expected", "/work/project/Assets/Foo.cs", 12)
        ]

    def test_windows_paths_are_normalized(self, sink, renderer, utp_line):
        router = TelemetryRouter(sink, renderer=renderer, project_path="C:\\work\\project")
        router.route_line(
            utp_line(
                type="Compiler",
                severity="Error",
                message="boom",
                fileName="C:\\work\\project\\Assets\\Foo.cs",
                lineNumber=3,
            )
        )
        assert sink.annotations == [("error", "boom", "C:/work/project/Assets/Foo.cs", 3)]

    def test_error_outside_project_is_logged(self, router, sink, utp_line):
        router.route_line(
            utp_line(
                type="LogEntry",
                severity="Exception",
                message="NullReferenceException",
                stackTrace="at Foo.Bar()",
                file="/elsewhere/Lib.cs",
            )
        )
        assert sink.annotations == []
        assert sink.messages("error") == ["NullReferenceException\nat Foo.Bar()"]

    def test_known_editor_noise_is_downgraded(self, router, sink, utp_line):
        message = "OpenCL device, baking cannot use GPU lightmapper."
        router.route_line(utp_line(type="LogEntry", severity="Error", message=message))
        assert sink.messages("info") == [message]
        assert sink.messages("error") == []

    def test_downgrade_does_not_apply_to_annotations(self, router, sink, utp_line):
        message = "OpenCL device, baking cannot use GPU lightmapper."
        router.route_line(
            utp_line(
                type="LogEntry",
                severity="Error",
                message=message,
                file="/work/project/Assets/Lighting.cs",
                line=7,
            )
        )
        assert sink.annotations == [
            ("error", message, "/work/project/Assets/Lighting.cs", 7)
        ]
        assert sink.messages("info") == []

    def test_already_annotated_message_is_skipped(self, router, sink, utp_line):
        router.route_line(
            utp_line(type="LogEntry", severity="Error", message="failed\n::error::failed")
        )
        assert sink.calls == []
        assert len(router.telemetry) == 1

    def test_warnings_are_not_escalated(self, router, sink, stream, utp_line):
        router.route_line(utp_line(type="LogEntry", severity="Warning", message="careful"))
        assert sink.calls == []
        assert json.loads(stream.getvalue())["message"] == "careful"

    def test_is_loggable_needs_message(self, make_action):
        assert not is_loggable(make_action("Begin", severity="Error"))
        assert is_loggable(make_action("Begin", severity="Assert", message="assert"))


# ---------------------------------------------------------------------------
# Test: Other records
# ---------------------------------------------------------------------------


class TestOtherRecords:
    def test_malformed_json_warns_with_raw_text(self, router, sink):
        router.route_line('##utp:{"type": "Action",')
        warnings = sink.messages("warning")
        assert len(warnings) == 1
        assert warnings[0].startswith("Failed to parse telemetry JSON: ")
        assert warnings[0].endswith('-- raw: {"type": "Action",')
        assert router.telemetry == []

    def test_non_object_json_warns(self, router, sink):
        router.route_line("##utp:[1, 2]")
        assert sink.messages("warning")[0].startswith("Failed to parse telemetry JSON")

    def test_memory_leaks_logged_at_debug(self, router, sink, utp_line):
        router.route_line(
            utp_line(type="MemoryLeaks", allocatedMemory=10, memoryLabels={"Default": 10})
        )
        debug = sink.messages("debug")
        assert len(debug) == 1
        assert debug[0].startswith("Memory Leaks Detected:")

    def test_unknown_type_is_echoed_as_json(self, router, stream, utp_line):
        router.route_line(utp_line(type="TestStatus", state=2))
        echoed = json.loads(stream.getvalue())
        assert echoed == {"type": "TestStatus", "state": 2}

    def test_normalization_warnings_reach_sink(self, router, sink, utp_line):
        router.route_line(utp_line(type="LogEntry", bogus=True))
        assert sink.messages("warning") == [
            "UTP entry contains unrecognized properties: bogus"
        ]
