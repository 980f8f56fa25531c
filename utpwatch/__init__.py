"""utpwatch: live build telemetry for game-engine editor logs.

Tails the log a running editor writes, parses the ``##utp:`` telemetry
stream embedded in it, pairs action Begin/End events into a build timeline,
and renders that timeline as a self-updating terminal table while
escalating error telemetry to log lines or CI annotations.
"""

__version__ = "0.1.0"
__description__ = "Live build telemetry tailer for game-engine editor logs"

from utpwatch.telemetry.accumulator import ActionAccumulator
from utpwatch.telemetry.router import TelemetryRouter
from utpwatch.telemetry.tailer import LogTailer
from utpwatch.cli.app import app as cli

__all__ = ["ActionAccumulator", "LogTailer", "TelemetryRouter", "cli", "__version__"]
