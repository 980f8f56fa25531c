"""utpwatch CLI — Typer-based command-line interface.

Provides the ``utpwatch`` command with subcommands for tailing an editor
log with a live build timeline and replaying saved telemetry.
"""
