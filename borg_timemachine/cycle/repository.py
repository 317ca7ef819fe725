"""One-shot repository commands: init, list, mount, info and check.

These run outside the backup cycle and take no lock. init, list, mount
and info fail on any non-zero exit. A standalone check follows
the same schedule as the in-cycle check (maintenance.check_day) and
tolerates warnings like it does.
"""

import logging
from datetime import datetime

from borg_timemachine.archiver.client import RESULT_WARNING, Archiver
from borg_timemachine.archiver.commands import init_args, mount_args, repository_args
from borg_timemachine.cycle.orchestrator import check_due
from borg_timemachine.errors import RepositoryExistsError

logger = logging.getLogger(__name__)


class RepositoryOperations:
    def __init__(self, archiver: Archiver, encryption: str, check_day: int = 0, clock=datetime.now):
        self.archiver = archiver
        self.encryption = encryption
        self.check_day = check_day
        self._clock = clock

    @property
    def path(self) -> str:
        return self.archiver.repository

    def exists(self) -> bool:
        """True if ``borg info`` can open the repository."""
        outcome = self.archiver.run(repository_args("info", self.path), quiet=True)
        logger.debug("Existence check for %s: %s", self.path, outcome)
        return outcome.succeeded

    def init(self) -> None:
        print(f"Initializing Borg repository at: {self.path}")
        if self.exists():
            raise RepositoryExistsError(
                f"Repository already exists at {self.path}. "
                "Remove it first or use a different path."
            )

        self.archiver.run_strict("init", init_args(self.path, self.encryption))

        print("Repository initialized successfully!")
        print("\nIMPORTANT: Export and backup your encryption key:")
        print(f"  borg key export {self.path} ~/borg-key-backup.txt")
        print(f"  borg key export --paper {self.path} borg-key-qr.html")

    def list_archives(self) -> None:
        self.archiver.run_strict("list", repository_args("list", self.path))

    def info(self) -> None:
        self.archiver.run_strict("info", repository_args("info", self.path))

    def mount(self, mount_point: str) -> None:
        print(f"Mounting repository to {mount_point}")
        self.archiver.run_strict("mount", mount_args(self.path, mount_point))
        print("Mounted successfully!")
        print(f"Browse backups: ls {mount_point}")
        print(f"Unmount with: fusermount -u {mount_point}")

    def check(self) -> str | None:
        """Run ``borg check`` if today is the configured check day.

        Returns None without spawning borg on any other day, and always
        when check_day is 0.
        """
        if not check_due(self.check_day, self._clock()):
            print(f"Integrity check not scheduled today (check_day={self.check_day})")
            return None

        result = self.archiver.run_stage("check", repository_args("check", self.path))
        if result == RESULT_WARNING:
            print("Integrity check completed with warnings")
        else:
            print("Integrity check completed successfully")
        return result
