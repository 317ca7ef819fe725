"""Backup cycle orchestration.

One cycle runs these stages in order, each waiting for its borg process
to exit before the next starts:

    create   -> new archive covering every enabled job
    prune    -> retention policy, limited to this host's archive prefix
    compact  -> only when maintenance.auto_compact is set
    check    -> only on maintenance.check_day (ISO weekday, 0 = never)

The whole cycle runs under the advisory lock. Exit code 1 from any stage
is logged as a warning and the cycle continues; 2 or above, a signal, or
a borg binary that cannot be started aborts the cycle. An aborted cycle
writes one ERROR line to the journal, sends a failure notification, and
releases the lock before the error is re-raised.
"""

import logging
import socket
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from borg_timemachine.alerts.notifier import (
    NotificationDispatcher,
    failure_body,
    failure_subject,
)
from borg_timemachine.archiver.client import RESULT_WARNING, Archiver
from borg_timemachine.archiver.commands import (
    archive_name,
    create_args,
    prune_args,
    repository_args,
)
from borg_timemachine.archiver.process_runner import ProcessRunner
from borg_timemachine.config.settings import Config
from borg_timemachine.errors import BorgTimeMachineError, JournalError
from borg_timemachine.storage.journal import Journal
from borg_timemachine.storage.lock_guard import LockGuard

logger = logging.getLogger(__name__)

STAGE_CREATE = "create"
STAGE_PRUNE = "prune"
STAGE_COMPACT = "compact"
STAGE_CHECK = "check"


class CycleState(str, Enum):
    IDLE = "idle"
    LOCKED = "locked"
    LOGGING_OPEN = "logging_open"
    CREATING = "creating"
    PRUNING = "pruning"
    COMPACTING = "compacting"
    CHECKING = "checking"
    DONE = "done"
    FAILED = "failed"


def short_hostname() -> str:
    """Host name without the domain part, as ``hostname -s`` prints it."""
    return socket.gethostname().split(".")[0]


def check_due(check_day: int, today: datetime) -> bool:
    """True when the integrity check is scheduled for ``today``."""
    return check_day != 0 and today.isoweekday() == check_day


@dataclass
class CycleResult:
    """What one successful cycle did."""
    archive_name: str
    stages_run: list[str] = field(default_factory=list)
    stages_skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class CycleOrchestrator:
    """Runs the create/prune/compact/check cycle for one configuration.

    Parameters
    ----------
    config:
        Loaded configuration. Never modified.
    runner:
        Executes borg and mail. Tests pass a fake that records calls.
    notifier:
        Receives the failure report. Built from ``config.notifications``
        when omitted.
    hostname:
        Archive name prefix. Defaults to the short system host name.
    passphrase:
        Placed in borg's environment only.
    clock:
        Source of "now" for archive names, journal timestamps and the
        check-day decision.
    """

    def __init__(
        self,
        config: Config,
        runner: ProcessRunner | None = None,
        notifier: NotificationDispatcher | None = None,
        hostname: str | None = None,
        passphrase: str | None = None,
        clock=datetime.now,
    ):
        self.config = config
        self.runner = runner or ProcessRunner()
        self.archiver = Archiver(self.runner, config.repository.path, passphrase)
        self.notifier = notifier or NotificationDispatcher.from_config(
            config.notifications, runner=self.runner
        )
        self.hostname = hostname or short_hostname()
        self.lock = LockGuard(config.logging.lock_file)
        self.state = CycleState.IDLE
        self._clock = clock

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> CycleResult:
        """Run one full cycle.

        Raises LockHeld without touching anything else when another
        cycle holds the lock. Any other failure is logged, reported, and
        re-raised after the lock is released.
        """
        token = self.lock.try_acquire()
        self.state = CycleState.LOCKED
        try:
            return self._run_locked()
        finally:
            self.lock.release(token)

    def _run_locked(self) -> CycleResult:
        try:
            journal = Journal.open(self.config.logging.log_file, clock=self._clock)
        except JournalError as exc:
            self._fail(Journal.console_only(clock=self._clock), exc)
            raise
        self.state = CycleState.LOGGING_OPEN

        with journal:
            try:
                result = self._run_stages(journal)
            except BorgTimeMachineError as exc:
                self._fail(journal, exc)
                raise
            journal.write("Backup cycle complete")
        self.state = CycleState.DONE
        return result

    def _fail(self, journal: Journal, error: BorgTimeMachineError) -> None:
        self.state = CycleState.FAILED
        journal.write(f"ERROR: {error}")
        self.notifier.notify_failure(
            failure_subject(self.hostname), failure_body(error)
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run_stages(self, journal: Journal) -> CycleResult:
        archive = archive_name(self.hostname, self._clock())
        result = CycleResult(archive_name=archive)

        self.state = CycleState.CREATING
        journal.write(f"Starting backup: {archive}")
        self._stage(
            journal, result, STAGE_CREATE,
            create_args(self.config, archive),
            ok="Backup created successfully",
            warn="Backup created with warnings (some files may have been skipped)",
        )

        self.state = CycleState.PRUNING
        journal.write("Pruning old backups...")
        self._stage(
            journal, result, STAGE_PRUNE,
            prune_args(self.config.repository.path, self.config.retention, self.hostname),
            ok="Prune completed successfully",
            warn="Prune completed with warnings",
        )

        if self.config.maintenance.auto_compact:
            self.state = CycleState.COMPACTING
            journal.write("Compacting repository...")
            self._stage(
                journal, result, STAGE_COMPACT,
                repository_args(STAGE_COMPACT, self.config.repository.path),
                ok="Compact completed successfully",
                warn="Compact completed with warnings",
            )
        else:
            logger.debug("auto_compact disabled, skipping compact")
            result.stages_skipped.append(STAGE_COMPACT)

        if check_due(self.config.maintenance.check_day, self._clock()):
            self.state = CycleState.CHECKING
            journal.write("Running weekly integrity check...")
            self._stage(
                journal, result, STAGE_CHECK,
                repository_args(STAGE_CHECK, self.config.repository.path),
                ok="Integrity check completed successfully",
                warn="Integrity check completed with warnings",
            )
        else:
            logger.debug(
                "Integrity check not scheduled today (check_day=%d)",
                self.config.maintenance.check_day,
            )
            result.stages_skipped.append(STAGE_CHECK)

        return result

    def _stage(self, journal, result, stage, args, ok, warn):
        outcome = self.archiver.run_stage(stage, args)
        result.stages_run.append(stage)
        if outcome == RESULT_WARNING:
            result.warnings.append(stage)
            journal.write(warn)
        else:
            journal.write(ok)
