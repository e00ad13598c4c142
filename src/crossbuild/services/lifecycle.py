"""Container and volume lifecycle for remote builds."""

import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from crossbuild.constants import CONTAINER_PREFIX, KEEP_VOLUME_SUFFIX
from crossbuild.errors import CrossError, UnknownContainerState
from crossbuild.models import ProjectMetadata, Target


class ContainerState(Enum):
    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    RESTARTING = "restarting"
    DEAD = "dead"
    EXITED = "exited"
    DOES_NOT_EXIST = ""

    @classmethod
    def new(cls, state: str) -> "ContainerState":
        try:
            return cls(state)
        except ValueError as exc:
            raise UnknownContainerState(f"Unknown container state: got {state!r}") from exc

    @property
    def is_stopped(self) -> bool:
        return self in (ContainerState.EXITED, ContainerState.DOES_NOT_EXIST)

    @property
    def exists(self) -> bool:
        return self is not ContainerState.DOES_NOT_EXIST


class VolumeKind(Enum):
    KEEP = "keep"
    DISCARD = "discard"


@dataclass(frozen=True)
class VolumeId:
    """A persistent user-managed volume, or an ephemeral one owned by this run."""

    name: str
    kind: VolumeKind

    @classmethod
    def keep(cls, name: str) -> "VolumeId":
        return cls(name=name, kind=VolumeKind.KEEP)

    @classmethod
    def discard(cls, name: str) -> "VolumeId":
        return cls(name=name, kind=VolumeKind.DISCARD)

    @property
    def is_discard(self) -> bool:
        return self.kind is VolumeKind.DISCARD

    def __str__(self) -> str:
        return self.name


def keep_volume_name(container: str) -> str:
    return f"{container}{KEEP_VOLUME_SUFFIX}"


def path_hash(path) -> str:
    return hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:5]


def remote_identifier(
    package_name: str,
    triple: str,
    manifest_path,
    sysroot,
    commit_hash: str,
) -> str:
    """Names the container for a project, target and toolchain combination.

    Repeated invocations with the same inputs reuse the same name, which is
    what lets a persistent `-keep` volume be found again.
    """
    project_hash = path_hash(manifest_path)
    toolchain_hash = path_hash(sysroot)
    return f"{CONTAINER_PREFIX}{package_name}-{triple}-{project_hash}-{toolchain_hash}-{commit_hash}"


def project_identifier(
    target: Target,
    metadata: ProjectMetadata,
    sysroot: Path,
    commit_hash: str,
) -> str:
    if not metadata.packages:
        raise CrossError("Unable to name the build container: the project has no packages.")

    workspace_root = Path(metadata.workspace_root)
    package = next(
        (p for p in metadata.packages if Path(p.manifest_path).parent == workspace_root),
        metadata.packages[0],
    )
    return remote_identifier(package.name, target.triple, package.manifest_path, sysroot, commit_hash)


class ResourceLifecycle:
    """Reclaims leftovers, creates the data volume and always releases it.

    Used as a context manager around everything that touches the container:
    on exit the container is stopped and removed, then an ephemeral volume is
    removed. Release failures are logged and never replace the error that
    ended the block.
    """

    def __init__(self, runtime, container: str, logger, console):
        self.runtime = runtime
        self.container = container
        self.logger = logger
        self.console = console
        self.volume: Optional[VolumeId] = None

    def _warn(self, message: str):
        self.console.print(f"[yellow]Warning: {message}[/yellow]")
        self.logger.warning(message)

    def discover(self) -> VolumeId:
        keep_name = keep_volume_name(self.container)
        if self.runtime.volume_exists(keep_name):
            self.volume = VolumeId.keep(keep_name)
        else:
            self.volume = VolumeId.discard(self.container)
        return self.volume

    def reconcile(self):
        # leftovers here come from a run that did not exit gracefully
        state = self.runtime.container_state(self.container)
        if not state.is_stopped:
            self._warn(f"container {self.container} was running.")
            self.runtime.container_stop(self.container)
        if state.exists:
            self._warn(f"container {self.container} was exited.")
            self.runtime.container_rm(self.container)

        if self.volume.is_discard and self.runtime.volume_exists(self.volume.name):
            self._warn(f"temporary volume {self.volume.name} existed.")
            self.runtime.volume_rm(self.volume.name)

    def acquire(self):
        if self.volume.is_discard:
            self.runtime.volume_create(self.volume.name)

    def release(self):
        for action, name in (
            (self.runtime.container_stop, self.container),
            (self.runtime.container_rm, self.container),
        ):
            self._best_effort(action, name)

        if self.volume is not None and self.volume.is_discard:
            self._best_effort(self.runtime.volume_rm, self.volume.name)

    def _best_effort(self, action, name: str):
        try:
            action(name)
        except CrossError as exc:
            self.logger.debug("Ignoring cleanup failure for %s: %s", name, exc)

    def __enter__(self) -> "ResourceLifecycle":
        self.discover()
        self.reconcile()
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
