"""External process execution.

Runs a program to completion and reports how it exited. The runner is
the only place that touches ``subprocess``; the orchestrator and the
notifier receive it as a collaborator so tests can substitute a fake
that records invocations and returns scripted outcomes.

There is no timeout. A child that never exits blocks the caller
indefinitely.
"""

import logging
import subprocess
from dataclasses import dataclass

from borg_timemachine.errors import SpawnError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExitOutcome:
    """How a child process finished.

    ``returncode`` is None when the child was killed by a signal, in
    which case ``signal`` holds the signal number.
    """
    returncode: int | None
    signal: int | None = None

    @classmethod
    def from_returncode(cls, returncode: int) -> "ExitOutcome":
        # POSIX Popen reports death-by-signal as a negative return code
        if returncode < 0:
            return cls(returncode=None, signal=-returncode)
        return cls(returncode=returncode)

    @classmethod
    def killed(cls, signum: int) -> "ExitOutcome":
        return cls(returncode=None, signal=signum)

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    def __str__(self):
        if self.signal is not None:
            return f"signal {self.signal}"
        return f"exit code {self.returncode}"


class ProcessRunner:
    """Blocking subprocess executor."""

    def run(
        self,
        program: str,
        args: list[str],
        env: dict[str, str] | None = None,
        stdin: str | None = None,
        quiet: bool = False,
    ) -> ExitOutcome:
        """Run ``program`` with ``args`` and wait for it to exit.

        ``env`` replaces the child environment when given. ``stdin`` is
        written to the child's standard input and the pipe closed.
        ``quiet`` discards the child's stdout and stderr; otherwise they
        pass straight through to ours.

        Raises SpawnError if the program cannot be launched.
        """
        argv = [program, *args]
        logger.debug("Running: %s", " ".join(argv))

        output = subprocess.DEVNULL if quiet else None
        try:
            proc = subprocess.Popen(
                argv,
                env=env,
                stdin=subprocess.PIPE if stdin is not None else None,
                stdout=output,
                stderr=output,
                text=stdin is not None,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise SpawnError(program, exc.strerror or str(exc)) from exc
        except OSError as exc:
            raise SpawnError(program, str(exc)) from exc

        if stdin is not None:
            try:
                proc.communicate(input=stdin)
            except BrokenPipeError:
                # Child exited without reading its input; its status still counts
                proc.wait()
        else:
            proc.wait()

        outcome = ExitOutcome.from_returncode(proc.returncode)
        logger.debug("%s exited: %s", program, outcome)
        return outcome
