"""Mount-aware directory resolution for crossbuild."""

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Mapping, Optional

from crossbuild.errors import CrossError
from crossbuild.models import ProjectMetadata
from crossbuild.services.mounts import MountFinder

logger = logging.getLogger("crossbuild")


def is_windows_host(platform: Optional[str] = None) -> bool:
    return (platform or sys.platform) == "win32"


def wslpath(path: Path, runner) -> PurePosixPath:
    """Converts a Windows path to the form WSL-backed engines accept for mounts."""
    wsl = shutil.which("wsl.exe")
    if not wsl:
        raise CrossError(
            "Could not find wsl.exe: mounting paths requires WSL on Windows. "
            "Suggested action: is WSL installed on the host?"
        )

    output = runner.output([wsl, "-e", "wslpath", "-a", str(path)])
    return PurePosixPath(output.strip())


def canonicalize_mount_path(path: Path, runner, platform: Optional[str] = None):
    if is_windows_host(platform):
        return wslpath(path, runner)
    return path


def _ensure_dir(path: Path):
    # created up front, otherwise the engine creates them owned by root
    try:
        path.mkdir(exist_ok=True)
    except OSError as exc:
        logger.debug("Could not create %s: %s", path, exc)


def is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class Directories:
    cargo: Path
    xargo: Path
    target: Path
    nix_store: Optional[Path]
    host_root: Path
    mount_root: Path
    mount_cwd: Path
    sysroot: Path

    @classmethod
    def create(
        cls,
        metadata: ProjectMetadata,
        cwd: Path,
        sysroot: Path,
        mount_finder: Optional[MountFinder] = None,
        runner=None,
        environ: Optional[Mapping[str, str]] = None,
        platform: Optional[str] = None,
    ) -> "Directories":
        environ = os.environ if environ is None else environ
        mount_finder = mount_finder or MountFinder()
        cwd = Path(cwd)

        home = Path.home()
        cargo = Path(environ.get("CARGO_HOME") or home / ".cargo")
        xargo = Path(environ.get("XARGO_HOME") or home / ".xargo")
        nix_store = Path(environ["NIX_STORE"]) if environ.get("NIX_STORE") else None
        target = Path(metadata.target_directory)

        for directory in (cargo, xargo, target):
            _ensure_dir(directory)

        cargo = mount_finder.find_mount_path(cargo)
        xargo = mount_finder.find_mount_path(xargo)
        target = mount_finder.find_mount_path(target)

        # mount whichever of cwd and the workspace root contains the other
        workspace_root = Path(metadata.workspace_root)
        root = cwd if is_within(workspace_root, cwd) else workspace_root
        host_root = mount_finder.find_mount_path(root)

        if is_windows_host(platform):
            mount_root = wslpath(host_root, runner)
            mount_cwd = wslpath(cwd, runner)
        else:
            mount_root = host_root
            mount_cwd = mount_finder.find_mount_path(cwd)

        return cls(
            cargo=cargo,
            xargo=xargo,
            target=target,
            nix_store=nix_store,
            host_root=host_root,
            mount_root=mount_root,
            mount_cwd=mount_cwd,
            sysroot=mount_finder.find_mount_path(sysroot),
        )
