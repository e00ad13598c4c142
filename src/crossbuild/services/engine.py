"""Container engine detection for crossbuild."""

import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from crossbuild.constants import DOCKER, PODMAN
from crossbuild.errors import EngineNotFound
from crossbuild.errors_catalog import actionable_error

ENGINE_ENV_VAR = "CROSS_CONTAINER_ENGINE"


class EngineType(Enum):
    DOCKER = "docker"
    PODMAN = "podman"
    PODMAN_REMOTE = "podman-remote"
    OTHER = "other"


def classify_help_output(output: str) -> EngineType:
    """Classifies an engine by its `--help` text rather than its file name.

    The same executable name is often an alias or a shim for another engine.
    """
    text = output.lower()
    if "podman-remote" in text:
        return EngineType.PODMAN_REMOTE
    if "podman" in text:
        return EngineType.PODMAN
    if "docker" in text and "emulate" not in text:
        return EngineType.DOCKER
    return EngineType.OTHER


@dataclass(frozen=True)
class Engine:
    kind: EngineType
    path: Path
    is_remote: bool = False

    @property
    def needs_remote(self) -> bool:
        # podman-remote is always remote, plain podman needs the flag
        return self.is_remote and self.kind is EngineType.PODMAN

    @property
    def is_docker(self) -> bool:
        return self.kind is EngineType.DOCKER

    @property
    def needs_user_flag(self) -> bool:
        # podman maps the calling user into the container on its own
        return self.is_docker

    @property
    def is_podman(self) -> bool:
        return self.kind in (EngineType.PODMAN, EngineType.PODMAN_REMOTE)

    def command(self, *args: str) -> List[str]:
        cmd = [str(self.path)]
        if self.needs_remote:
            cmd.append("--remote")
        cmd.extend(str(arg) for arg in args)
        return cmd


class EngineDetector:
    """Finds the installed engine executable and its dialect."""

    def __init__(
        self,
        runner,
        logger,
        which: Callable[[str], Optional[str]] = shutil.which,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.runner = runner
        self.logger = logger
        self.which = which
        self.environ = os.environ if environ is None else environ

    def find_engine_path(self, override: Optional[str] = None) -> Path:
        requested = override or self.environ.get(ENGINE_ENV_VAR)
        candidates = [requested] if requested else [DOCKER, PODMAN]

        for candidate in candidates:
            resolved = self.which(candidate)
            if resolved:
                return Path(resolved)

        raise EngineNotFound(actionable_error("engine_not_found"))

    def detect_kind(self, path: Path) -> EngineType:
        output = self.runner.output([str(path), "--help"])
        kind = classify_help_output(output)
        self.logger.debug("Detected container engine %s as %s", path, kind.value)
        return kind

    def create(self, is_remote: bool = False, override: Optional[str] = None) -> Engine:
        path = self.find_engine_path(override)
        return Engine(kind=self.detect_kind(path), path=path, is_remote=is_remote)
