import subprocess

import pytest

from crossbuild.errors import ExecutionFailed


class FakeRunner:
    """Records commands instead of running them and replays scripted results."""

    def __init__(self):
        self.calls = []
        self.responses = []
        self.dry_run = False

    def respond(self, *tokens, returncode=0, stdout=""):
        # matches when the tokens appear contiguously in the command
        width = len(tokens)

        def matcher(cmd):
            return any(tuple(cmd[i : i + width]) == tokens for i in range(len(cmd) - width + 1))

        self.respond_when(matcher, returncode=returncode, stdout=stdout)

    def respond_when(self, matcher, returncode=0, stdout=""):
        # the first registered response that matches wins
        self.responses.append((matcher, returncode, stdout))

    def _match(self, cmd):
        for matcher, returncode, stdout in self.responses:
            if matcher(cmd):
                return returncode, stdout
        return 0, ""

    def run(self, cmd, check=True, capture_output=False, read_only=False, timeout=None):
        cmd = [str(part) for part in cmd]
        self.calls.append(cmd)
        returncode, stdout = self._match(cmd)
        if check and returncode != 0:
            raise ExecutionFailed(f"Command failed ({returncode}): {' '.join(cmd)}", returncode=returncode)
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")

    def output(self, cmd, read_only=True):
        return self.run(cmd, capture_output=True, read_only=read_only).stdout or ""

    def index(self, *tokens):
        """Position of the first recorded command containing all ``tokens``."""
        for position, cmd in enumerate(self.calls):
            if all(token in cmd for token in tokens):
                return position
        raise AssertionError(f"no command containing {tokens!r} in {self.calls!r}")


@pytest.fixture
def fake_runner():
    return FakeRunner()
