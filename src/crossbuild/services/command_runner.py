"""Subprocess execution service for crossbuild."""

import shlex
import subprocess
from typing import List, Optional

from crossbuild.errors import CrossError, ExecutionFailed


class CommandRunner:
    """Runs external commands with consistent logging, dry-run and error handling.

    In dry-run mode commands that change engine state are logged instead of
    executed. Commands flagged ``read_only`` always run, since later steps
    need their output to plan the remaining work.
    """

    def __init__(self, logger, dry_run: bool = False, default_timeout: Optional[float] = None):
        self.logger = logger
        self.dry_run = dry_run
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        read_only: bool = False,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        cmd = [str(part) for part in cmd]
        cmd_str = shlex.join(cmd)

        if self.dry_run and not read_only:
            self.logger.info("Would execute: %s", cmd_str)
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        self.logger.debug("Executing: %s", cmd_str)
        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
            )
        except FileNotFoundError as exc:
            raise CrossError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CrossError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise CrossError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0 or not check:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"
        raise ExecutionFailed(message, returncode=result.returncode)

    def output(self, cmd: List[str], read_only: bool = True) -> str:
        """Runs a query command and returns its standard output."""
        return self.run(cmd, capture_output=True, read_only=read_only).stdout or ""
