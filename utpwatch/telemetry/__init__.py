"""Live build-telemetry engine.

Modules
-------
width
    Terminal display-width arithmetic (wide glyphs, variation selectors).
normalizer
    ``##utp:`` line parsing and field-alias reconciliation.
accumulator
    ``ActionAccumulator`` pairs Begin/End actions into a timeline and
    produces frozen ``ActionTableSnapshot`` views.
table
    Pure snapshot-to-text table formatting.
terminal
    Cursor control and raw writes; the only place escape codes live.
renderer
    ``LiveTableRenderer`` redraws in place on a terminal, appends elsewhere.
router
    ``TelemetryRouter`` sends each line to the timeline, the sink or output.
tailer
    ``LogTailer`` polls the growing log file and feeds the router.
"""
