"""Container engine subcommands used by crossbuild."""

import shlex
import subprocess
from pathlib import PurePosixPath
from typing import List, Optional, Sequence

from crossbuild.services.lifecycle import ContainerState


class ContainerRuntimeService:
    """Wraps the volume, container and copy subcommands of one engine."""

    def __init__(self, engine, runner, logger):
        self.engine = engine
        self.runner = runner
        self.logger = logger

    def _run(self, *args, **kwargs) -> subprocess.CompletedProcess:
        return self.runner.run(self.engine.command(*args), **kwargs)

    def volume_create(self, volume: str):
        self._run("volume", "create", volume, capture_output=True)

    def volume_rm(self, volume: str):
        self._run("volume", "rm", volume, capture_output=True)

    def volume_exists(self, volume: str) -> bool:
        result = self._run("volume", "inspect", volume, check=False, capture_output=True, read_only=True)
        return result.returncode == 0 and bool((result.stdout or "").strip())

    def container_stop(self, container: str):
        self._run("stop", container, capture_output=True)

    def container_rm(self, container: str):
        self._run("rm", container, capture_output=True)

    def container_state(self, container: str) -> ContainerState:
        result = self._run(
            "ps",
            "-a",
            "--filter",
            f"name=^{container}$",
            "--format",
            "{{.State}}",
            capture_output=True,
            read_only=True,
        )
        return ContainerState.new((result.stdout or "").strip())

    def exec(
        self,
        container: str,
        script: str,
        options: Optional[Sequence[str]] = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        args: List[str] = ["exec"]
        args.extend(options or [])
        args.extend([container, "sh", "-c", script])
        return self._run(*args, check=check)

    def create_dir(self, container: str, directory: PurePosixPath):
        self.exec(container, f"mkdir -p {shlex.quote(str(directory))}")

    def copy_to(self, container: str, src, dst: PurePosixPath):
        self._run("cp", "-a", str(src), f"{container}:{dst}")

    def copy_from(self, container: str, src: PurePosixPath, dst):
        self._run("cp", "-a", f"{container}:{src}", str(dst))
