"""Human-readable backup log.

Each entry is one line, ``[YYYY-MM-DD HH:MM:SS] message``, appended to
the log file and echoed to stdout. The file is opened in append mode and
never truncated. A failed file write never fails the caller; the echo to
stdout always happens.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from borg_timemachine.config.settings import LOG_TIMESTAMP_FORMAT
from borg_timemachine.errors import JournalError

logger = logging.getLogger(__name__)


def format_entry(message: str, when: datetime) -> str:
    return f"[{when.strftime(LOG_TIMESTAMP_FORMAT)}] {message}"


class Journal:
    """Append-only log sink owned by one backup cycle.

    Usage::

        with Journal.open("/var/log/borg-timemachine.log") as journal:
            journal.write("Starting backup")
    """

    def __init__(self, handle=None, path: Path | None = None, clock=datetime.now):
        self.path = path
        self._handle = handle
        self._clock = clock
        self._write_failed = False

    @classmethod
    def open(cls, path: str | Path, clock=datetime.now) -> "Journal":
        """Open ``path`` for appending, creating it and its directory if needed."""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handle = path.open("a", encoding="utf-8")
        except OSError as exc:
            raise JournalError(f"Failed to open log file {path}: {exc}") from exc
        return cls(handle=handle, path=path, clock=clock)

    @classmethod
    def console_only(cls, clock=datetime.now) -> "Journal":
        return cls(clock=clock)

    def write(self, message: str) -> str:
        line = format_entry(message, self._clock())
        print(line, file=sys.stdout, flush=True)

        if self._handle is not None:
            try:
                self._handle.write(line + "\n")
                self._handle.flush()
            except (OSError, ValueError) as exc:
                if not self._write_failed:
                    logger.warning("Could not write to log file %s: %s", self.path, exc)
                    self._write_failed = True
        return line

    def close(self) -> None:
        if self._handle is not None:
            try:
                self._handle.close()
            except OSError as exc:
                logger.warning("Could not close log file %s: %s", self.path, exc)
            self._handle = None

    @property
    def closed(self) -> bool:
        return self._handle is None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
