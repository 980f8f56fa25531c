"""LogTailer — follows a growing editor log and feeds complete lines to a router.

The editor appends to its log while we read it, so the tailer never holds a
file handle across ticks: every poll stats the file, opens it, reads exactly
the new byte range and closes it again.  A file that shrinks below the
cursor has been truncated or rotated and is re-read from the start.

Lines are only routed once complete.  A chunk that ends mid-line leaves the
fragment buffered until the rest arrives, or until the final flush after
``stop()``.
"""

from __future__ import annotations

import codecs
import json
import logging
import threading
import time
from pathlib import Path

from utpwatch.config import config
from utpwatch.models.telemetry import TelemetryRecord
from utpwatch.telemetry.router import TelemetryRouter

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = "-utp-json.log"


def sidecar_path(log_path: Path | str) -> Path:
    """``<dir>/<log stem>-utp-json.log`` beside *log_path*."""
    path = Path(log_path)
    return path.with_name(f"{path.stem}{SIDECAR_SUFFIX}")


def wait_for_file_unlocked(
    path: Path | str, timeout: float, interval: float = 0.1
) -> bool:
    """Poll until *path* can be opened for writing, or *timeout* elapses.

    A missing file counts as unlocked.  Returns ``False`` on timeout; never
    blocks past the deadline.
    """
    path = Path(path)
    deadline = time.monotonic() + timeout
    while True:
        if not path.exists():
            return True
        try:
            with open(path, "r+b"):
                return True
        except OSError:
            pass
        if time.monotonic() >= deadline:
            return False
        time.sleep(interval)


class LogTailer:
    """Polls a log file and routes each new complete line.

    Parameters
    ----------
    log_path:
        File to follow.  It may not exist yet.
    router:
        Receives every complete line; its sink receives warnings.
    poll_interval:
        Seconds between polls.
    unlock_timeout:
        Upper bound on the wait for the writer to release the file before
        the final read.
    write_sidecar:
        Flush all telemetry to ``sidecar_path(log_path)`` on completion.

    Usage
    -----
    >>> tailer = LogTailer("Editor.log", router).start()
    >>> ...  # the editor runs
    >>> tailer.stop()
    >>> telemetry = tailer.join()
    """

    def __init__(
        self,
        log_path: Path | str,
        router: TelemetryRouter,
        *,
        poll_interval: float | None = None,
        unlock_timeout: float | None = None,
        write_sidecar: bool = False,
    ) -> None:
        self.log_path = Path(log_path)
        self.router = router
        self.poll_interval = (
            config.poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.unlock_timeout = (
            config.unlock_timeout_seconds if unlock_timeout is None else unlock_timeout
        )
        self.write_sidecar = write_sidecar

        # Tail cursor
        self._offset = 0
        self._partial = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_growth = time.monotonic()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> LogTailer:
        """Begin tailing on a background thread."""
        if self._thread is not None:
            raise RuntimeError("LogTailer already started")
        self._thread = threading.Thread(
            target=self._run, daemon=True, name=f"log-tailer:{self.log_path.name}"
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        """Ask the poll loop to finish after its current iteration."""
        self._stop.set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: float | None = None) -> list[TelemetryRecord]:
        """Wait for the tailer to finish and return all observed telemetry."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.telemetry

    @property
    def telemetry(self) -> list[TelemetryRecord]:
        return self.router.telemetry

    @property
    def offset(self) -> int:
        """Byte offset of the next read."""
        return self._offset

    @property
    def partial_line(self) -> str:
        """Buffered fragment of an incomplete trailing line."""
        return self._partial

    @property
    def idle_seconds(self) -> float:
        """Seconds since the file last grew (or since the tailer was created)."""
        return time.monotonic() - self._last_growth

    def _run(self) -> None:
        while not self._stop.wait(self.poll_interval):
            self._safe_poll()
        self.finish()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _safe_poll(self) -> None:
        try:
            self.poll()
        except OSError as exc:
            self.router.sink.warning(f"Error while tailing log file: {exc}")
        except Exception as exc:  # noqa: BLE001
            self.router.sink.warning(f"Error while processing log output: {exc}")

    def _reset_cursor(self) -> None:
        self._offset = 0
        self._partial = ""
        self._decoder.reset()

    def poll(self) -> int:
        """Read whatever was appended since the last poll and route it.

        Returns the number of complete lines routed.
        """
        if not self.log_path.exists():
            return 0

        size = self.log_path.stat().st_size
        if size < self._offset:
            logger.debug(
                "%s shrank from %d to %d bytes; re-reading from start",
                self.log_path, self._offset, size,
            )
            self._reset_cursor()

        if size == self._offset:
            return 0

        with open(self.log_path, "rb") as handle:
            handle.seek(self._offset)
            data = handle.read(size - self._offset)

        self._offset += len(data)
        self._last_growth = time.monotonic()

        chunk = self._decoder.decode(data)
        lines = (self._partial + chunk).split("\n")
        # The last element is "" when the chunk ended on a terminator,
        # otherwise an incomplete line to keep for the next poll.
        self._partial = lines.pop()

        for line in lines:
            self._route(line)
        return len(lines)

    def _route(self, line: str) -> None:
        """Route one complete line; a failure costs only that line."""
        try:
            self.router.route_line(line.removesuffix("\r"))
        except Exception as exc:  # noqa: BLE001
            self.router.sink.warning(f"Error while processing log output: {exc}")

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def finish(self) -> None:
        """Final read, flush of any partial line, separator and sidecar."""
        if not wait_for_file_unlocked(self.log_path, self.unlock_timeout):
            self.router.sink.warning(
                f"Timed out after {self.unlock_timeout:g}s waiting for "
                f"{self.log_path} to be unlocked"
            )

        self._safe_poll()

        tail = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        if tail:
            self._route(tail)

        self.router.output.write("\n")

        if self.write_sidecar:
            self.flush_sidecar()

    def flush_sidecar(self) -> Path | None:
        """Write every observed telemetry payload as a JSON array.

        Failures are reported as warnings and never raised.
        """
        target = sidecar_path(self.log_path)
        payloads = [record.payload for record in self.telemetry]
        try:
            target.write_text(
                json.dumps(payloads, indent=2, default=str), encoding="utf-8"
            )
        except (OSError, TypeError, ValueError) as exc:
            self.router.sink.warning(f"Failed to write telemetry to {target}: {exc}")
            return None
        logger.debug("Wrote %d telemetry entries to %s", len(payloads), target)
        return target
