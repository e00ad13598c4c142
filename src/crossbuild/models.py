"""Shared domain models for crossbuild."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Tuple


@dataclass(frozen=True)
class Target:
    """A target triple and the platform predicates derived from it."""

    triple: str

    @property
    def is_android(self) -> bool:
        return "android" in self.triple

    @property
    def needs_docker_seccomp(self) -> bool:
        arch_32bit = self.triple.startswith(("arm", "thumb", "i586", "i686"))
        return arch_32bit and self.is_android

    def __str__(self) -> str:
        return self.triple


@dataclass(frozen=True)
class Package:
    id: str
    name: str
    manifest_path: Path
    source: Optional[str] = None

    @property
    def crate_path(self) -> Optional[Path]:
        # no source means a path dependency or a workspace member
        if self.source is None:
            return self.manifest_path.parent
        return None


@dataclass(frozen=True)
class ProjectMetadata:
    """The subset of `cargo metadata` output the orchestration needs."""

    workspace_root: Path
    target_directory: Path
    packages: Tuple[Package, ...] = ()
    workspace_members: Tuple[str, ...] = ()

    def path_dependencies(self) -> Iterator[Path]:
        for package in self.packages:
            if package.id in self.workspace_members:
                continue
            if package.crate_path is not None:
                yield package.crate_path


@dataclass(frozen=True)
class EnvConfig:
    passthrough: Tuple[str, ...] = ()
    volumes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TargetConfig:
    image: Optional[str] = None
    runner: Optional[str] = None
    xargo: Optional[bool] = None
    env: EnvConfig = field(default_factory=EnvConfig)


@dataclass(frozen=True)
class MountDetail:
    """A path on the engine's host and where it is visible to this process."""

    source: Path
    destination: Path
