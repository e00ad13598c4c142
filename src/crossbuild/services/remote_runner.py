"""Builds through a data volume when the engine cannot see our filesystem."""

import os
import shlex
from pathlib import Path, PurePosixPath
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from crossbuild.constants import MOUNT_PREFIX
from crossbuild.errors import ExecutionFailed, SymlinkCollision
from crossbuild.errors_catalog import actionable_error
from crossbuild.services import container_args
from crossbuild.services.directories import canonicalize_mount_path, is_within
from crossbuild.services.lifecycle import ResourceLifecycle, project_identifier
from crossbuild.services.seccomp import seccomp_args
from crossbuild.services.staging import VolumeStager

COLLISION_EXIT_CODE = 3


def symlink_script(
    mount_prefix: PurePosixPath,
    uid: str,
    gid: str,
    to_symlink: Sequence[Tuple[PurePosixPath, str]] = (),
    verbose: bool = False,
    root: str = "",
) -> str:
    """Shell script that makes staged data appear at its canonical paths.

    Every staged entry whose canonical path is free gets one symlink;
    existing directories are descended into, and a regular file in the way
    aborts with a dedicated exit status. ``root`` is prepended to every
    canonical path.
    """
    lines = ["set -e"]
    if verbose:
        lines.append("set -x")
    lines.append(f"chown -R {uid}:{gid} {mount_prefix}/*")
    lines.append(
        f"""prefix="{mount_prefix}"
root="{root}"

symlink_recurse() {{
    for f in "${{1}}"/*; do
        [ -e "${{f}}" ] || continue
        dst=${{root}}${{f#"$prefix"}}
        if [ -f "${{dst}}" ]; then
            echo "invalid: got unexpected file at ${{dst}}" 1>&2
            exit {COLLISION_EXIT_CODE}
        elif [ -d "${{dst}}" ]; then
            symlink_recurse "${{f}}"
        else
            ln -s "${{f}}" "${{dst}}"
        fi
    done
}}

symlink_recurse "${{prefix}}"
"""
    )
    for src, dst in to_symlink:
        lines.append(f"ln -s {shlex.quote(str(src))} {shlex.quote(root + str(dst))}")
    return "\n".join(lines)


class RemoteRunner:
    """Runs the build in a long-lived container fed through `cp`."""

    def __init__(
        self,
        engine,
        runtime,
        runner,
        config,
        image_resolver,
        logger,
        console,
        environ: Optional[Mapping[str, str]] = None,
        platform: Optional[str] = None,
        interactive: Callable[[], bool] = container_args.is_interactive,
        verbose: bool = False,
    ):
        self.engine = engine
        self.runtime = runtime
        self.runner = runner
        self.config = config
        self.image_resolver = image_resolver
        self.logger = logger
        self.console = console
        self.environ = os.environ if environ is None else environ
        self.platform = platform
        self.interactive = interactive
        self.verbose = verbose
        self.stager = VolumeStager(runtime, runner, logger, environ=self.environ)

    def _mount(self, value: str):
        host_path = container_args.resolve_host_path(value)
        mount_path = canonicalize_mount_path(host_path, self.runner, self.platform)
        return [], PurePosixPath(str(mount_path))

    def start_command(self, container: str, volume: str, target, metadata, mounts) -> List[str]:
        cmd: List[str] = ["run", "--userns", "host", "--name", container]
        cmd.extend(["-v", f"{volume}:{MOUNT_PREFIX}"])
        cmd.extend(
            container_args.envvar_args(self.config, target, self.logger, self.console, self.environ)
        )
        cmd.extend(mounts.args)
        cmd.extend(
            seccomp_args(self.engine, target, metadata.target_directory, self.runner, self.platform)
        )
        # an empty volume over bin keeps host-installed binaries out
        cmd.extend(["-v", f"{MOUNT_PREFIX}/cargo/bin"])
        cmd.append("-d")
        if self.interactive():
            cmd.append("-t")
        cmd.append(self.image_resolver.resolve(target))
        # keep the container alive until it is stopped
        cmd.extend(["sh", "-c", "sleep infinity"])
        return self.engine.command(*cmd)

    def run(
        self,
        target,
        args: List[str],
        metadata,
        dirs,
        cwd: Path,
        uses_xargo: bool,
        commit_hash: str,
    ) -> int:
        container = project_identifier(target, metadata, dirs.sysroot, commit_hash)
        mount_prefix = PurePosixPath(MOUNT_PREFIX)

        mounts = container_args.extra_mounts(
            metadata, self.config, target, cwd, self._mount, self.environ
        )
        volumes = list(mounts.volumes)
        if dirs.nix_store is not None:
            volumes.append((str(dirs.nix_store), PurePosixPath(str(dirs.nix_store))))

        with ResourceLifecycle(self.runtime, container, self.logger, self.console) as lifecycle:
            volume = lifecycle.volume
            self.runner.run(self.start_command(container, volume.name, target, metadata, mounts))

            if volume.is_discard:
                self.stager.copy_xargo(container, dirs.xargo, target, mount_prefix)
                self.stager.copy_cargo(container, dirs.cargo, mount_prefix)
                self.stager.copy_rust(container, dirs.sysroot, target, mount_prefix)

            if mounts.needed:
                rel_mount_root = PurePosixPath(str(dirs.mount_root)).relative_to("/")
                mount_root = mount_prefix / rel_mount_root
                if rel_mount_root.parts:
                    self.runtime.create_dir(container, mount_root.parent)
            else:
                mount_root = mount_prefix / "project"
            self.stager.copy_tree(container, dirs.host_root, mount_root)

            copied = [
                (Path(dirs.xargo), mount_prefix / "xargo"),
                (Path(dirs.cargo), mount_prefix / "cargo"),
                (Path(dirs.sysroot), mount_prefix / "rust"),
                (Path(dirs.host_root), mount_root),
            ]
            to_symlink: List[Tuple[PurePosixPath, str]] = []

            target_dir = Path(dirs.target).resolve()
            host_root = Path(dirs.host_root).resolve()
            if is_within(target_dir, host_root):
                relpath = target_dir.relative_to(host_root)
                container_target = mount_root.joinpath(*relpath.parts)
                to_symlink.append((container_target, "/target"))
            else:
                container_target = mount_prefix / "target"
                if self.stager.copy_cache:
                    self.stager.copy_tree(container, Path(dirs.target), container_target)
                else:
                    self.runtime.create_dir(container, container_target)
                copied.append((Path(dirs.target), container_target))

            for src, dst in volumes:
                src_path = Path(src)
                covered = next((item for item in copied if is_within(src_path, item[0])), None)
                if covered is not None:
                    relpath = src_path.relative_to(covered[0])
                    to_symlink.append((covered[1].joinpath(*relpath.parts), str(dst)))
                    continue

                rel_dst = PurePosixPath(str(dst)).relative_to("/")
                mount_dst = mount_prefix / rel_dst
                if rel_dst.parts:
                    self.runtime.create_dir(container, mount_dst.parent)
                self.stager.copy_tree(container, src_path, mount_dst)

            self._link_staged_data(container, mount_prefix, to_symlink)

            options = container_args.user_args(self.engine, self.environ)
            options.extend(["-w", container_args.working_dir(metadata, dirs, cwd, mounts.needed)])
            self.logger.info("Building for %s in remote container %s", target.triple, container)
            result = self.runtime.exec(
                container,
                container_args.build_tool_command(uses_xargo, args),
                options=options,
                check=False,
            )

            self.runtime.copy_from(container, container_target, Path(dirs.target).parent)
            return result.returncode

    def _link_staged_data(self, container: str, mount_prefix: PurePosixPath, to_symlink):
        script = symlink_script(
            mount_prefix,
            container_args.user_id(self.environ),
            container_args.group_id(self.environ),
            to_symlink,
            verbose=self.verbose,
        )
        result = self.runtime.exec(container, script, check=False)
        if result.returncode == COLLISION_EXIT_CODE:
            raise SymlinkCollision(actionable_error("symlink_collision", container=container))
        if result.returncode != 0:
            raise ExecutionFailed(
                f"Could not link staged data in container {container} (exit code {result.returncode}).",
                returncode=result.returncode,
            )
