"""Tests for the subprocess runner and the borg exit policy.

The runner has no timeout: a child that never exits blocks the caller
forever. That is a known limitation of the cycle, so nothing here tries
to exercise a hung child.
"""

import os
import signal
import sys

import pytest

from borg_timemachine.archiver.client import (
    RESULT_SUCCESS,
    RESULT_WARNING,
    Archiver,
    classify_exit,
    require_success,
)
from borg_timemachine.archiver.process_runner import ExitOutcome, ProcessRunner
from borg_timemachine.config.settings import PASSPHRASE_ENV_VAR
from borg_timemachine.errors import SpawnError, StageExitError

PY = sys.executable


@pytest.fixture
def runner():
    return ProcessRunner()


# ---------------------------------------------------------------------------
# ExitOutcome
# ---------------------------------------------------------------------------

class TestExitOutcome:
    def test_zero_succeeds(self):
        assert ExitOutcome.from_returncode(0).succeeded

    def test_negative_means_signal(self):
        outcome = ExitOutcome.from_returncode(-9)
        assert outcome.returncode is None
        assert outcome.signal == 9
        assert not outcome.succeeded

    def test_str(self):
        assert str(ExitOutcome(2)) == "exit code 2"
        assert str(ExitOutcome.killed(15)) == "signal 15"


# ---------------------------------------------------------------------------
# Real subprocesses
# ---------------------------------------------------------------------------

class TestProcessRunner:
    def test_exit_code_zero(self, runner):
        assert runner.run(PY, ["-c", "pass"]) == ExitOutcome(0)

    @pytest.mark.parametrize("code", [1, 2, 3])
    def test_exit_code_propagated(self, runner, code):
        outcome = runner.run(PY, ["-c", f"import sys; sys.exit({code})"])
        assert outcome.returncode == code

    def test_missing_program_is_spawn_error(self, runner, tmp_path):
        with pytest.raises(SpawnError) as excinfo:
            runner.run(str(tmp_path / "no-such-borg"), ["create"])
        assert "no-such-borg" in str(excinfo.value)

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_non_executable_is_spawn_error(self, runner, tmp_path):
        script = tmp_path / "borg"
        script.write_text("#!/bin/sh\nexit 0\n")
        os.chmod(script, 0o644)
        with pytest.raises(SpawnError):
            runner.run(str(script), ["info"])

    @pytest.mark.skipif(os.name != "posix", reason="POSIX signals")
    def test_killed_by_signal(self, runner):
        outcome = runner.run(
            PY, ["-c", "import os, signal; os.kill(os.getpid(), signal.SIGKILL)"]
        )
        assert outcome.returncode is None
        assert outcome.signal == signal.SIGKILL

    def test_stdin_is_piped(self, runner):
        code = "import sys; sys.exit(0 if sys.stdin.read() == 'report body' else 5)"
        assert runner.run(PY, ["-c", code], stdin="report body").succeeded

    def test_env_passed_to_child(self, runner):
        env = dict(os.environ, BTM_MARKER="yes")
        code = "import os, sys; sys.exit(0 if os.environ.get('BTM_MARKER') == 'yes' else 4)"
        assert runner.run(PY, ["-c", code], env=env).succeeded

    def test_quiet_discards_output(self, runner, capfd):
        runner.run(PY, ["-c", "print('noise')"], quiet=True)
        assert "noise" not in capfd.readouterr().out

    def test_output_passes_through(self, runner, capfd):
        runner.run(PY, ["-c", "print('visible')"])
        assert "visible" in capfd.readouterr().out

    def test_blocks_until_child_exits(self, runner, tmp_path):
        marker = tmp_path / "done"
        code = (
            "import time, pathlib; time.sleep(0.2); "
            f"pathlib.Path({str(marker)!r}).write_text('x')"
        )
        runner.run(PY, ["-c", code])
        assert marker.exists()


# ---------------------------------------------------------------------------
# Exit policy
# ---------------------------------------------------------------------------

class TestClassifyExit:
    def test_zero_is_success(self):
        assert classify_exit("create", ExitOutcome(0)) == RESULT_SUCCESS

    def test_one_is_warning(self):
        assert classify_exit("create", ExitOutcome(1)) == RESULT_WARNING

    @pytest.mark.parametrize("code", [2, 3, 99, 127, 128, 255])
    def test_two_and_above_fail(self, code):
        with pytest.raises(StageExitError, match=f"exit code {code}"):
            classify_exit("prune", ExitOutcome(code))

    def test_signal_fails(self):
        with pytest.raises(StageExitError, match="borg check terminated by signal 15"):
            classify_exit("check", ExitOutcome.killed(15))


class TestRequireSuccess:
    def test_zero_passes(self):
        require_success("list", ExitOutcome(0))

    def test_warning_code_fails_strict_check(self):
        with pytest.raises(StageExitError, match="borg list failed with exit code 1"):
            require_success("list", ExitOutcome(1))


class TestArchiver:
    def test_passphrase_only_in_child_env(self, fake_runner, monkeypatch):
        monkeypatch.delenv(PASSPHRASE_ENV_VAR, raising=False)
        archiver = Archiver(fake_runner, "/r", passphrase="pw")
        archiver.run(["list", "/r"])
        assert fake_runner.calls[0].program == "borg"
        assert fake_runner.calls[0].env[PASSPHRASE_ENV_VAR] == "pw"
        assert PASSPHRASE_ENV_VAR not in os.environ

    def test_child_env_keeps_parent_vars(self, fake_runner, monkeypatch):
        monkeypatch.setenv("BORG_REPO_HINT", "x")
        Archiver(fake_runner, "/r", passphrase="pw").run(["info", "/r"])
        assert fake_runner.calls[0].env["BORG_REPO_HINT"] == "x"

    def test_no_passphrase_inherits_env(self, fake_runner):
        Archiver(fake_runner, "/r").run(["info", "/r"])
        assert fake_runner.calls[0].env is None

    def test_repr_hides_passphrase(self, fake_runner):
        assert "pw" not in repr(Archiver(fake_runner, "/r", passphrase="pw"))

    def test_run_stage_warning(self, fake_runner):
        fake_runner.script("prune", 1)
        assert Archiver(fake_runner, "/r").run_stage("prune", ["prune", "/r"]) == RESULT_WARNING

    def test_run_strict_failure(self, fake_runner):
        fake_runner.script("mount", 2)
        with pytest.raises(StageExitError):
            Archiver(fake_runner, "/r").run_strict("mount", ["mount", "/r", "/mnt"])
