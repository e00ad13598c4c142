"""Copies host data into a container volume for remote builds."""

import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Callable, Mapping, Optional

from crossbuild.constants import CACHEDIR_SIGNATURE, CACHEDIR_TAG
from crossbuild.services.config_loader import env_flag
from crossbuild.termination import tempdir

SkipFn = Callable[[os.DirEntry, int], bool]

CARGO_SKIPPED_DIRS = ("git", "registry")
SYSROOT_DIRS = ("bin", "libexec", "etc")


def is_cachedir_tag(path: Path) -> bool:
    """Checks for the exact cache directory signature, nothing more or less."""
    try:
        with open(path, "rb") as file_obj:
            content = file_obj.read(len(CACHEDIR_SIGNATURE) + 1)
    except OSError:
        return False
    return content == CACHEDIR_SIGNATURE


def is_cachedir(entry: os.DirEntry) -> bool:
    # see https://bford.info/cachedir/
    try:
        if not entry.is_dir():
            return False
    except OSError:
        return False
    return is_cachedir_tag(Path(entry.path) / CACHEDIR_TAG)


def copy_dir(src: Path, dst: Path, skip: SkipFn, depth: int = 0):
    """Recursively copies ``src`` into ``dst``, leaving out skipped entries."""
    with os.scandir(src) as entries:
        for entry in entries:
            if skip(entry, depth):
                continue

            dst_path = Path(dst) / entry.name
            if entry.is_symlink():
                os.symlink(os.readlink(entry.path), dst_path)
            elif entry.is_file():
                shutil.copy2(entry.path, dst_path)
            else:
                dst_path.mkdir(exist_ok=True)
                copy_dir(Path(entry.path), dst_path, skip, depth + 1)


class VolumeStager:
    """Stages toolchain, cache and project data under a container's mount prefix."""

    def __init__(self, runtime, runner, logger, environ: Optional[Mapping[str, str]] = None):
        self.runtime = runtime
        self.runner = runner
        self.logger = logger
        self.environ = os.environ if environ is None else environ

    @property
    def copy_cache(self) -> bool:
        return env_flag("CROSS_REMOTE_COPY_CACHE", environ=self.environ)

    def copy_files(self, container: str, src: Path, dst: PurePosixPath):
        self.runtime.copy_to(container, src, dst)

    def copy_files_nocache(self, container: str, src: Path, dst: PurePosixPath):
        with tempdir() as temppath:
            copy_dir(Path(src), temppath, lambda entry, _depth: is_cachedir(entry))
            self.runtime.copy_to(container, f"{temppath}{os.sep}.", dst)

    def copy_tree(self, container: str, src: Path, dst: PurePosixPath):
        if self.copy_cache:
            self.runtime.copy_to(container, f"{src}{os.sep}.", dst)
        else:
            self.copy_files_nocache(container, src, dst)

    def copy_xargo(self, container: str, xargo_dir: Path, target, mount_prefix: PurePosixPath):
        # only the rustlib files for the current target are needed
        relpath = PurePosixPath("lib", "rustlib", target.triple)
        src = Path(xargo_dir).joinpath(*relpath.parts)
        dst = mount_prefix / "xargo" / relpath
        if src.exists():
            self.runtime.create_dir(container, dst.parent)
            self.copy_files(container, src, dst)

    def copy_cargo(
        self,
        container: str,
        cargo_dir: Path,
        mount_prefix: PurePosixPath,
        copy_registry: bool = False,
    ):
        dst = mount_prefix / "cargo"
        copy_registry = env_flag("CROSS_REMOTE_COPY_REGISTRY", default=copy_registry, environ=self.environ)

        if copy_registry:
            self.copy_files(container, cargo_dir, dst)
            return

        # the registry and git checkouts are refetched inside the container
        self.runtime.create_dir(container, dst)
        for entry in sorted(os.scandir(cargo_dir), key=lambda item: item.name):
            if entry.name.startswith(".") or entry.name in CARGO_SKIPPED_DIRS:
                continue
            self.copy_files(container, Path(entry.path), dst)

    def copy_rust(self, container: str, sysroot: Path, target, mount_prefix: PurePosixPath):
        """Copies the subset of the toolchain that a build for ``target`` uses."""
        sysroot = Path(sysroot)
        dst = mount_prefix / "rust"
        self.runtime.create_dir(container, dst)
        for basename in SYSROOT_DIRS:
            path = sysroot / basename
            if path.exists():
                self.copy_files(container, path, dst)
            else:
                self.logger.debug("Toolchain has no %s directory, skipping", basename)

        src_rustlib = sysroot / "lib" / "rustlib"
        dst_rustlib = dst / "lib" / "rustlib"

        with tempdir() as temppath:
            copy_dir(sysroot / "lib", temppath, lambda entry, depth: depth == 0 and entry.name == "rustlib")
            (temppath / "rustlib").mkdir(exist_ok=True)
            if src_rustlib.exists():
                copy_dir(src_rustlib, temppath / "rustlib", _skip_rustlib_targets)
            self.copy_files(container, temppath, dst / "lib")

        # after the copy above, otherwise the temp dir lands inside lib
        self.runtime.create_dir(container, dst_rustlib)

        toolchain_path = src_rustlib / target.triple
        if toolchain_path.exists():
            self.copy_files(container, toolchain_path, dst_rustlib)

        # the host toolchain is needed to find std and proc-macro libraries
        libdir = self.runner.output([str(sysroot / "bin" / "rustc"), "--print", "target-libdir"]).strip()
        if not libdir:
            self.logger.debug("Could not determine the host target libdir, skipping host toolchain")
            return
        host_toolchain_path = Path(libdir).parent
        if host_toolchain_path != toolchain_path:
            self.copy_files(container, host_toolchain_path, dst_rustlib)


def _skip_rustlib_targets(entry: os.DirEntry, depth: int) -> bool:
    if depth != 0:
        return False
    try:
        is_file = entry.is_file()
    except OSError:
        return True
    return not (is_file or entry.name in ("src", "etc"))
