"""Builds with bind mounts when the engine shares our filesystem."""

import os
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from crossbuild.services import container_args
from crossbuild.services.directories import canonicalize_mount_path
from crossbuild.services.seccomp import seccomp_args


class LocalRunner:
    """Runs the build tool in a single throwaway container."""

    def __init__(
        self,
        engine,
        runner,
        config,
        image_resolver,
        logger,
        console,
        environ: Optional[Mapping[str, str]] = None,
        platform: Optional[str] = None,
        interactive: Callable[[], bool] = container_args.is_interactive,
    ):
        self.engine = engine
        self.runner = runner
        self.config = config
        self.image_resolver = image_resolver
        self.logger = logger
        self.console = console
        self.environ = os.environ if environ is None else environ
        self.platform = platform
        self.interactive = interactive

    def _mount(self, value: str):
        host_path = container_args.resolve_host_path(value)
        mount_path = canonicalize_mount_path(host_path, self.runner, self.platform)
        return ["-v", f"{host_path}:{mount_path}"], mount_path

    def build_command(self, target, args: List[str], metadata, dirs, cwd: Path, uses_xargo: bool) -> List[str]:
        cmd: List[str] = ["run", "--userns", "host"]
        cmd.extend(
            container_args.envvar_args(self.config, target, self.logger, self.console, self.environ)
        )

        mounts = container_args.extra_mounts(
            metadata, self.config, target, cwd, self._mount, self.environ
        )
        cmd.extend(mounts.args)
        cmd.append("--rm")
        cmd.extend(
            seccomp_args(self.engine, target, metadata.target_directory, self.runner, self.platform)
        )
        cmd.extend(container_args.user_args(self.engine, self.environ))

        cmd.extend(["-v", f"{dirs.xargo}:/xargo:Z"])
        cmd.extend(["-v", f"{dirs.cargo}:/cargo:Z"])
        # an empty volume over bin keeps host-installed binaries out
        cmd.extend(["-v", "/cargo/bin"])
        if mounts.needed:
            cmd.extend(["-v", f"{dirs.host_root}:{dirs.mount_root}:Z"])
        else:
            cmd.extend(["-v", f"{dirs.host_root}:{container_args.PROJECT_DIR}:Z"])
        cmd.extend(["-v", f"{dirs.sysroot}:/rust:Z,ro"])
        cmd.extend(["-v", f"{dirs.target}:/target:Z"])
        cmd.extend(["-w", container_args.working_dir(metadata, dirs, cwd, mounts.needed)])

        if dirs.nix_store is not None:
            cmd.extend(["-v", f"{dirs.nix_store}:{dirs.nix_store}:Z"])

        if self.interactive():
            cmd.extend(["-i", "-t"])

        cmd.append(self.image_resolver.resolve(target))
        cmd.extend(["sh", "-c", container_args.build_tool_command(uses_xargo, args)])
        return self.engine.command(*cmd)

    def run(self, target, args: List[str], metadata, dirs, cwd: Path, uses_xargo: bool) -> int:
        cmd = self.build_command(target, args, metadata, dirs, cwd, uses_xargo)
        self.logger.info("Building for %s in a local container", target.triple)
        return self.runner.run(cmd, check=False).returncode
