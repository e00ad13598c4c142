import sys

import pytest

from crossbuild.errors import CrossError, ExecutionFailed
from crossbuild.services.command_runner import CommandRunner


class DummyLogger:
    def __init__(self):
        self.infos = []

    def debug(self, *_args, **_kwargs):
        return None

    def info(self, message, *args, **_kwargs):
        self.infos.append(message % args)


def test_command_runner_raises_with_stderr():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(ExecutionFailed, match="boom") as excinfo:
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"],
            check=True,
            capture_output=True,
        )

    assert excinfo.value.returncode == 3


def test_command_runner_returns_when_check_disabled():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; sys.exit(1)"],
        check=False,
        capture_output=True,
    )

    assert result.returncode == 1


def test_command_runner_timeout_raises_error():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(CrossError, match="timed out"):
        runner.run(
            [sys.executable, "-c", "import time; time.sleep(2)"],
            check=True,
            capture_output=True,
            timeout=0.1,
        )


def test_command_runner_missing_executable():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(CrossError, match="Required command not found"):
        runner.run(["crossbuild-definitely-missing-binary"])


def test_command_runner_output_returns_stdout():
    runner = CommandRunner(logger=DummyLogger())

    assert runner.output([sys.executable, "-c", "print('hello')"]).strip() == "hello"


def test_dry_run_skips_mutating_commands(tmp_path):
    logger = DummyLogger()
    runner = CommandRunner(logger=logger, dry_run=True)
    marker = tmp_path / "marker"

    result = runner.run([sys.executable, "-c", f"open({str(marker)!r}, 'w').close()"])

    assert result.returncode == 0
    assert not marker.exists()
    assert logger.infos and logger.infos[0].startswith("Would execute:")


def test_dry_run_still_runs_read_only_queries():
    runner = CommandRunner(logger=DummyLogger(), dry_run=True)

    assert runner.output([sys.executable, "-c", "print('query')"]).strip() == "query"
