"""Failure notification by mail.

Hands the failure report to the system ``mail`` program. Delivery is
best effort: a missing mail binary or a non-zero exit is logged and
otherwise ignored so the original backup error is what the caller sees.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from borg_timemachine.archiver.process_runner import ProcessRunner
from borg_timemachine.config.settings import MAIL_PROGRAM, Notifications
from borg_timemachine.errors import NotificationError, SpawnError

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """Record of one failure report."""
    timestamp: str
    subject: str
    recipient: str
    attempted: bool
    delivered: bool
    error: str | None = None


def failure_subject(hostname: str) -> str:
    return f"Backup Failure on {hostname}"


def failure_body(error) -> str:
    return f"Borg backup failed: {error}"


class NotificationDispatcher:
    """Sends failure reports to the configured operator address.

    When disabled every call is a no-op and nothing is spawned.
    """

    def __init__(
        self,
        enabled: bool,
        recipient: str,
        runner: ProcessRunner | None = None,
        program: str = MAIL_PROGRAM,
    ):
        self.enabled = enabled
        self.recipient = recipient
        self.runner = runner or ProcessRunner()
        self.program = program
        self._sent: list[Notification] = []

    @classmethod
    def from_config(cls, notifications: Notifications, runner: ProcessRunner | None = None):
        return cls(
            enabled=notifications.enabled,
            recipient=notifications.email,
            runner=runner,
        )

    def notify_failure(self, subject: str, body: str) -> Notification:
        record = Notification(
            timestamp=datetime.now().isoformat(),
            subject=subject,
            recipient=self.recipient,
            attempted=self.enabled,
            delivered=False,
        )
        if self.enabled:
            try:
                self._deliver(subject, body)
                record.delivered = True
                logger.info("Failure notification sent to %s", self.recipient)
            except NotificationError as exc:
                record.error = str(exc)
                logger.warning("Failure notification not delivered: %s", exc)
        self._sent.append(record)
        return record

    def _deliver(self, subject: str, body: str) -> None:
        try:
            outcome = self.runner.run(
                self.program, ["-s", subject, self.recipient], stdin=body
            )
        except SpawnError as exc:
            raise NotificationError(str(exc)) from exc
        except (OSError, ValueError) as exc:
            # broken pipe to mail, or a body that cannot be encoded
            raise NotificationError(f"{self.program}: {exc}") from exc
        if not outcome.succeeded:
            raise NotificationError(f"{self.program} failed with {outcome}")

    @property
    def sent(self) -> list[Notification]:
        return list(self._sent)
