"""Argument assembly for borg subcommands.

borg parses ``create`` positionally: an ``--exclude`` that follows a
source path belongs with that source. ``ArgumentBuilder.source`` appends
a path together with its exclusions in one call so the pairing cannot be
broken by a caller interleaving other tokens.
"""

from datetime import datetime

from borg_timemachine.config.settings import (
    ARCHIVE_TIMESTAMP_FORMAT,
    Config,
    Retention,
)


def archive_prefix(hostname: str) -> str:
    """Prefix shared by every archive this host creates."""
    return f"{hostname}-"


def archive_name(hostname: str, when: datetime) -> str:
    """``{hostname}-{YYYY-mm-dd-HHMMSS}``; sorts lexically by creation time."""
    return f"{archive_prefix(hostname)}{when.strftime(ARCHIVE_TIMESTAMP_FORMAT)}"


class ArgumentBuilder:
    """Accumulates a flat, ordered list of command-line tokens."""

    def __init__(self, subcommand: str):
        self._tokens: list[str] = [subcommand]

    def flag(self, name: str, enabled: bool = True) -> "ArgumentBuilder":
        if enabled:
            self._tokens.append(f"--{name}")
        return self

    def option(self, name: str, value) -> "ArgumentBuilder":
        self._tokens.append(f"--{name}={value}")
        return self

    def exclude(self, pattern: str) -> "ArgumentBuilder":
        self._tokens.extend(["--exclude", pattern])
        return self

    def positional(self, value: str) -> "ArgumentBuilder":
        self._tokens.append(value)
        return self

    def source(self, path: str, excludes=()) -> "ArgumentBuilder":
        self._tokens.append(path)
        for pattern in excludes:
            self.exclude(pattern)
        return self

    def build(self) -> list[str]:
        return list(self._tokens)


def create_args(config: Config, archive: str) -> list[str]:
    """Arguments for ``borg create`` covering every enabled job."""
    opts = config.options
    builder = (
        ArgumentBuilder("create")
        .flag("stats", opts.show_stats)
        .flag("progress", opts.show_progress)
        .flag("one-file-system", opts.one_file_system)
        .flag("exclude-caches", opts.exclude_caches)
        .option("compression", config.compression)
    )
    for pattern in config.exclusions:
        builder.exclude(pattern)

    builder.positional(f"{config.repository.path}::{archive}")

    for job in config.enabled_jobs():
        builder.source(job.source, job.exclude)
    return builder.build()


def prune_args(repository: str, retention: Retention, hostname: str) -> list[str]:
    """Arguments for ``borg prune``, scoped to this host's archives."""
    return (
        ArgumentBuilder("prune")
        .flag("list")
        .option("prefix", archive_prefix(hostname))
        .option("keep-within", retention.within)
        .option("keep-hourly", retention.hourly)
        .option("keep-daily", retention.daily)
        .option("keep-weekly", retention.weekly)
        .option("keep-monthly", retention.monthly)
        .option("keep-yearly", retention.yearly)
        .positional(repository)
        .build()
    )


def init_args(repository: str, encryption: str) -> list[str]:
    return (
        ArgumentBuilder("init")
        .option("encryption", encryption)
        .positional(repository)
        .build()
    )


def mount_args(repository: str, mount_point: str) -> list[str]:
    return ArgumentBuilder("mount").positional(repository).positional(mount_point).build()


def repository_args(subcommand: str, repository: str) -> list[str]:
    """``<subcommand> <repo>`` for compact, check, list and info."""
    return ArgumentBuilder(subcommand).positional(repository).build()
