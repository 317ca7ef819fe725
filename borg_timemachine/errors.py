"""Exception hierarchy for the backup tool.

Every failure that should reach the operator derives from
``BorgTimeMachineError``. The CLI maps any of them to exit status 1.
NotificationError never leaves the notifier.
"""


class BorgTimeMachineError(RuntimeError):
    """Base class for all reported failures."""


class ConfigError(BorgTimeMachineError):
    """Configuration or passphrase file is unreadable or malformed."""


class LockHeld(BorgTimeMachineError):
    """Another backup cycle appears to be running."""

    def __init__(self, lock_file: str):
        self.lock_file = lock_file
        super().__init__(
            f"Lock file exists at {lock_file}. Another backup may be running."
        )


class LockError(BorgTimeMachineError):
    """The lock marker could not be created."""


class JournalError(BorgTimeMachineError):
    """The log file could not be opened."""


class SpawnError(BorgTimeMachineError):
    """An external program could not be launched at all."""

    def __init__(self, program: str, reason: str):
        self.program = program
        self.reason = reason
        super().__init__(f"Failed to run {program}: {reason}")


class StageExitError(BorgTimeMachineError):
    """The archiver exited with a failure-class status."""

    def __init__(self, stage: str, outcome):
        self.stage = stage
        self.outcome = outcome
        if outcome.signal is not None:
            detail = f"terminated by signal {outcome.signal}"
        else:
            detail = f"failed with exit code {outcome.returncode}"
        super().__init__(f"borg {stage} {detail}")


class RepositoryExistsError(BorgTimeMachineError):
    """``init`` was asked to create a repository that already exists."""


class NotificationError(BorgTimeMachineError):
    """Failure report could not be delivered. Always swallowed."""
