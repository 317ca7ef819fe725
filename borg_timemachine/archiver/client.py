"""borg invocation and exit-status policy.

borg exit codes:
    0     success
    1     warning (operation completed, some inputs were skipped)
    2+    error (operation did not complete)
A child killed by a signal counts as an error.

create/prune/compact/check tolerate warnings. One-shot commands
(init, list, mount, info) treat anything but 0 as failure.
"""

import logging
import os

from borg_timemachine.archiver.process_runner import ExitOutcome, ProcessRunner
from borg_timemachine.config.settings import BORG_PROGRAM, PASSPHRASE_ENV_VAR
from borg_timemachine.errors import StageExitError

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_WARNING = 1
EXIT_ERROR = 2

RESULT_SUCCESS = "success"
RESULT_WARNING = "warning"


def classify_exit(stage: str, outcome: ExitOutcome) -> str:
    """Map an exit outcome to RESULT_SUCCESS or RESULT_WARNING.

    Raises StageExitError for error codes and signal termination.
    """
    if outcome.returncode is None or outcome.returncode >= EXIT_ERROR:
        raise StageExitError(stage, outcome)
    if outcome.returncode == EXIT_WARNING:
        return RESULT_WARNING
    return RESULT_SUCCESS


def require_success(stage: str, outcome: ExitOutcome) -> None:
    """Strict check for one-shot commands."""
    if not outcome.succeeded:
        raise StageExitError(stage, outcome)


class Archiver:
    """Runs borg against one repository with the passphrase in its environment.

    The passphrase is only placed in the child's environment; this
    process's own ``os.environ`` is left untouched.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        repository: str,
        passphrase: str | None = None,
        program: str = BORG_PROGRAM,
    ):
        self.runner = runner
        self.repository = repository
        self.program = program
        self._passphrase = passphrase

    def _environment(self) -> dict[str, str] | None:
        if self._passphrase is None:
            return None
        env = dict(os.environ)
        env[PASSPHRASE_ENV_VAR] = self._passphrase
        return env

    def run(self, args: list[str], quiet: bool = False) -> ExitOutcome:
        return self.runner.run(
            self.program, args, env=self._environment(), quiet=quiet
        )

    def run_stage(self, stage: str, args: list[str]) -> str:
        """Run a cycle stage under the warning-tolerant policy."""
        result = classify_exit(stage, self.run(args))
        if result == RESULT_WARNING:
            logger.warning("borg %s finished with warnings", stage)
        return result

    def run_strict(self, stage: str, args: list[str]) -> None:
        require_success(stage, self.run(args))

    def __repr__(self):
        return f"Archiver(program={self.program!r}, repository={self.repository!r})"
