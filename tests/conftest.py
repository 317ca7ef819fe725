"""Shared fixtures: a recording process runner and a config factory."""

import copy
from dataclasses import dataclass
from datetime import datetime

import pytest

from borg_timemachine.archiver.process_runner import ExitOutcome
from borg_timemachine.config.settings import Config

# 2025-03-09 is a Sunday (ISO weekday 7)
SUNDAY = datetime(2025, 3, 9, 14, 30, 0)
MONDAY = datetime(2025, 3, 10, 2, 0, 5)


@dataclass
class Call:
    program: str
    args: list
    env: dict | None
    stdin: str | None
    quiet: bool


class FakeRunner:
    """Records every invocation and returns scripted outcomes.

    Outcomes are keyed by borg subcommand (``create``, ``prune``...) or,
    for other programs, by program name. A scripted exception is raised
    instead of returned. Unscripted calls exit 0.
    """

    def __init__(self):
        self.calls: list[Call] = []
        self.outcomes: dict = {}
        self.on_run = None

    def script(self, key, outcome):
        if isinstance(outcome, int):
            outcome = ExitOutcome(returncode=outcome)
        self.outcomes[key] = outcome
        return self

    def run(self, program, args, env=None, stdin=None, quiet=False):
        self.calls.append(Call(program, list(args), env, stdin, quiet))
        if self.on_run is not None:
            self.on_run(program, list(args))
        key = args[0] if program == "borg" else program
        result = self.outcomes.get(key, ExitOutcome(returncode=0))
        if isinstance(result, BaseException):
            raise result
        return result

    def borg_calls(self) -> list[Call]:
        return [c for c in self.calls if c.program == "borg"]

    def subcommands(self) -> list[str]:
        return [c.args[0] for c in self.borg_calls()]

    def calls_to(self, program) -> list[Call]:
        return [c for c in self.calls if c.program == program]


BASE_CONFIG = {
    "repository": {"path": "/srv/borg/repo", "encryption": "repokey-blake2"},
    "jobs": [
        {"name": "system-config", "source": "/etc", "destination": "system",
         "exclude": ["*.tmp"]},
    ],
    "exclusions": [],
    "compression": "lz4",
    "options": {
        "one_file_system": False,
        "exclude_caches": False,
        "show_progress": False,
        "show_stats": False,
    },
    "retention": {
        "within": "24H", "hourly": 24, "daily": 7,
        "weekly": 4, "monthly": 12, "yearly": 2,
    },
    "notifications": {"enabled": True, "email": "ops@example.com"},
    "logging": {"log_file": "", "lock_file": ""},
    "maintenance": {"check_day": 0, "auto_compact": True},
    "security": {"passphrase_file": ""},
}


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def config_dict(tmp_path):
    """A valid raw configuration with file paths under tmp_path."""
    data = copy.deepcopy(BASE_CONFIG)
    data["logging"] = {
        "log_file": str(tmp_path / "logs" / "backup.log"),
        "lock_file": str(tmp_path / "backup.lock"),
    }
    data["security"] = {"passphrase_file": str(tmp_path / "passphrase")}
    return data


@pytest.fixture
def make_config(config_dict):
    """Build a Config, replacing keys inside top-level sections.

    ``make_config(maintenance={"check_day": 3})`` merges into the
    section; list and scalar values replace the top-level key.
    """
    def _make(**overrides):
        data = copy.deepcopy(config_dict)
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key].update(value)
            else:
                data[key] = value
        return Config.from_dict(data)
    return _make
