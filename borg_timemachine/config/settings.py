"""Backup configuration, defaults and passphrase loading.

The configuration document is YAML. It is parsed once per invocation
into frozen dataclasses; nothing mutates it afterwards.
"""

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

import yaml

from borg_timemachine.errors import ConfigError

logger = logging.getLogger(__name__)

# Bundled example configuration, used when no --config is given
DEFAULT_CONFIG_PATH = Path(__file__).resolve().with_name("borg-config.yaml")
DEFAULT_OUTPUT_NAME = "borg-config.yaml"

BORG_PROGRAM = "borg"
MAIL_PROGRAM = "mail"
PASSPHRASE_ENV_VAR = "BORG_PASSPHRASE"

# Passphrase file should be owner read/write only
PASSPHRASE_FILE_MODE = 0o600

# Archive names: {hostname}-2025-02-01-143000
ARCHIVE_TIMESTAMP_FORMAT = "%Y-%m-%d-%H%M%S"
# Journal lines: [2025-02-01 14:30:00] message
LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_CHECK_DAY = 7


def _section(data: dict, key: str) -> dict:
    if key not in data:
        raise ConfigError(f"Missing required section '{key}'")
    value = data[key]
    if not isinstance(value, dict):
        raise ConfigError(f"Section '{key}' must be a mapping")
    return value


def _str(data: dict, key: str, where: str) -> str:
    if key not in data:
        raise ConfigError(f"Missing required field '{where}.{key}'")
    value = data[key]
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Field '{where}.{key}' must be a non-empty string")
    return value


def _bool(data: dict, key: str, where: str, default: bool | None = None) -> bool:
    if key not in data:
        if default is None:
            raise ConfigError(f"Missing required field '{where}.{key}'")
        return default
    value = data[key]
    if not isinstance(value, bool):
        raise ConfigError(f"Field '{where}.{key}' must be true or false")
    return value


def _count(data: dict, key: str, where: str) -> int:
    if key not in data:
        raise ConfigError(f"Missing required field '{where}.{key}'")
    value = data[key]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"Field '{where}.{key}' must be a non-negative integer")
    return value


def _patterns(data: dict, key: str, where: str) -> tuple[str, ...]:
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise ConfigError(f"Field '{where}.{key}' must be a list of strings")
    return tuple(value)


@dataclass(frozen=True)
class Repository:
    path: str
    encryption: str

    @classmethod
    def from_dict(cls, data: dict) -> "Repository":
        return cls(
            path=_str(data, "path", "repository"),
            encryption=_str(data, "encryption", "repository"),
        )


@dataclass(frozen=True)
class Job:
    """One backup source. Only enabled jobs take part in a cycle."""
    name: str
    source: str
    destination: str
    enabled: bool = True
    exclude: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data) -> "Job":
        if not isinstance(data, dict):
            raise ConfigError("Each entry in 'jobs' must be a mapping")
        name = _str(data, "name", "jobs")
        where = f"jobs[{name}]"
        return cls(
            name=name,
            source=_str(data, "source", where),
            destination=_str(data, "destination", where),
            enabled=_bool(data, "enabled", where, default=True),
            exclude=_patterns(data, "exclude", where),
        )


@dataclass(frozen=True)
class Options:
    one_file_system: bool
    exclude_caches: bool
    show_progress: bool
    show_stats: bool

    @classmethod
    def from_dict(cls, data: dict) -> "Options":
        return cls(
            one_file_system=_bool(data, "one_file_system", "options"),
            exclude_caches=_bool(data, "exclude_caches", "options"),
            show_progress=_bool(data, "show_progress", "options"),
            show_stats=_bool(data, "show_stats", "options"),
        )


@dataclass(frozen=True)
class Retention:
    """Values handed verbatim to ``borg prune --keep-*``."""
    within: str
    hourly: int
    daily: int
    weekly: int
    monthly: int
    yearly: int

    @classmethod
    def from_dict(cls, data: dict) -> "Retention":
        return cls(
            within=_str(data, "within", "retention"),
            hourly=_count(data, "hourly", "retention"),
            daily=_count(data, "daily", "retention"),
            weekly=_count(data, "weekly", "retention"),
            monthly=_count(data, "monthly", "retention"),
            yearly=_count(data, "yearly", "retention"),
        )


@dataclass(frozen=True)
class Notifications:
    enabled: bool
    email: str

    @classmethod
    def from_dict(cls, data: dict) -> "Notifications":
        enabled = _bool(data, "enabled", "notifications")
        email = data.get("email", "")
        if not isinstance(email, str):
            raise ConfigError("Field 'notifications.email' must be a string")
        if enabled and not email:
            raise ConfigError("Notifications are enabled but 'notifications.email' is empty")
        return cls(enabled=enabled, email=email)


@dataclass(frozen=True)
class Logging:
    log_file: str
    lock_file: str

    @classmethod
    def from_dict(cls, data: dict) -> "Logging":
        return cls(
            log_file=_str(data, "log_file", "logging"),
            lock_file=_str(data, "lock_file", "logging"),
        )


@dataclass(frozen=True)
class Maintenance:
    """``check_day``: 0 disables the check, 1 = Monday ... 7 = Sunday."""
    check_day: int
    auto_compact: bool

    @classmethod
    def from_dict(cls, data: dict) -> "Maintenance":
        check_day = _count(data, "check_day", "maintenance")
        if check_day > MAX_CHECK_DAY:
            raise ConfigError(
                f"Field 'maintenance.check_day' must be between 0 and {MAX_CHECK_DAY}"
            )
        return cls(
            check_day=check_day,
            auto_compact=_bool(data, "auto_compact", "maintenance"),
        )


@dataclass(frozen=True)
class Security:
    passphrase_file: str

    @classmethod
    def from_dict(cls, data: dict) -> "Security":
        return cls(passphrase_file=_str(data, "passphrase_file", "security"))


@dataclass(frozen=True)
class Config:
    repository: Repository
    jobs: tuple[Job, ...]
    exclusions: tuple[str, ...]
    compression: str
    options: Options
    retention: Retention
    notifications: Notifications
    logging: Logging
    maintenance: Maintenance
    security: Security

    @classmethod
    def from_dict(cls, data) -> "Config":
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping at the top level")

        jobs = data.get("jobs")
        if not isinstance(jobs, list):
            raise ConfigError("Missing required list 'jobs'")
        compression = data.get("compression")
        if not isinstance(compression, str) or not compression:
            raise ConfigError("Field 'compression' must be a non-empty string")

        return cls(
            repository=Repository.from_dict(_section(data, "repository")),
            jobs=tuple(Job.from_dict(item) for item in jobs),
            exclusions=_patterns(data, "exclusions", "config"),
            compression=compression,
            options=Options.from_dict(_section(data, "options")),
            retention=Retention.from_dict(_section(data, "retention")),
            notifications=Notifications.from_dict(_section(data, "notifications")),
            logging=Logging.from_dict(_section(data, "logging")),
            maintenance=Maintenance.from_dict(_section(data, "maintenance")),
            security=Security.from_dict(_section(data, "security")),
        )

    def enabled_jobs(self) -> list[Job]:
        return [job for job in self.jobs if job.enabled]


def parse_config(text: str, source: str = "<string>") -> Config:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config file {source}: {exc}") from exc
    return Config.from_dict(data)


def load_config(path: str | Path) -> Config:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    return parse_config(text, source=str(path))


def load_or_default(path: str | Path | None = None) -> Config:
    """Load ``path``, or the bundled example configuration when None."""
    if path is not None:
        return load_config(path)
    logger.info("No config file given, using bundled defaults")
    return load_config(DEFAULT_CONFIG_PATH)


def write_example_config(output: str | Path) -> Path:
    """Copy the bundled example configuration to ``output``."""
    output = Path(output)
    try:
        output.write_text(DEFAULT_CONFIG_PATH.read_text(encoding="utf-8"), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to write example config: {exc}") from exc
    return output


def load_passphrase(path: str | Path) -> str:
    """Read the repository passphrase, stripped of surrounding whitespace.

    Warns if the file is readable by group or others.
    """
    path = Path(path)
    try:
        mode = stat.S_IMODE(os.stat(path).st_mode)
        passphrase = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Error reading passphrase file {path}: {exc}") from exc

    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        logger.warning(
            "Passphrase file %s has mode %o; expected %o",
            path, mode, PASSPHRASE_FILE_MODE,
        )
    if not passphrase:
        raise ConfigError(f"Passphrase file {path} is empty")
    return passphrase
