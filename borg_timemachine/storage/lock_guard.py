"""Advisory lock backed by a marker file.

The marker is a zero-length file whose existence means "a backup cycle
is running". Acquisition checks for the marker and then creates it as
two separate steps, so two invocations starting at the same instant can
both succeed. This only guards against accidental overlap (a timer
firing while a manual run is still going), not against a determined
concurrent caller. Operators may delete the marker by hand to override
a stale lock left behind by a killed process.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from borg_timemachine.errors import LockError, LockHeld

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockToken:
    """Proof of acquisition, handed back to ``release``."""
    path: Path


class LockGuard:
    def __init__(self, lock_file: str | Path):
        self.lock_file = Path(lock_file)

    def is_held(self) -> bool:
        return self.lock_file.exists()

    def try_acquire(self) -> LockToken:
        """Create the marker. Raises LockHeld if it already exists."""
        if self.lock_file.exists():
            raise LockHeld(str(self.lock_file))
        try:
            self.lock_file.write_bytes(b"")
        except OSError as exc:
            raise LockError(f"Failed to create lock file {self.lock_file}: {exc}") from exc
        logger.debug("Acquired lock %s", self.lock_file)
        return LockToken(self.lock_file)

    def release(self, token: LockToken) -> None:
        """Remove the marker. A marker that is already gone is fine."""
        try:
            os.remove(token.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error("Failed to remove lock file %s: %s", token.path, exc)
        else:
            logger.debug("Released lock %s", token.path)
