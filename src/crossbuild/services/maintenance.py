"""Housekeeping for volumes, containers and images crossbuild leaves behind."""

import re
import shlex
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, List, Optional

from crossbuild.constants import CONTAINER_PREFIX, CROSS_IMAGE, MOUNT_PREFIX, UBUNTU_BASE
from crossbuild.errors import CrossError, PreconditionViolated
from crossbuild.errors_catalog import actionable_error
from crossbuild.services import container_args
from crossbuild.services.lifecycle import ContainerState, keep_volume_name, project_identifier

GHCR_PREFIX = f"{CROSS_IMAGE}/"
RUST_EMBEDDED_REPOSITORIES = ("rustembedded/cross", "docker.io/rustembedded/cross")
_TARGET_COMPONENT = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True, order=True)
class Image:
    repository: str
    tag: str
    # images are removed by ID, not by tag
    id: str

    @property
    def name(self) -> str:
        return f"{self.repository}:{self.tag}"


def parse_image(line: str) -> Image:
    # formatted as `${repository}:${tag} ${id}`
    name, _, image_id = line.strip().rpartition(" ")
    repository, _, tag = name.rpartition(":")
    return Image(repository=repository, tag=tag, id=image_id)


def is_cross_image(repository: str) -> bool:
    return repository.startswith(GHCR_PREFIX) or repository in RUST_EMBEDDED_REPOSITORIES


def is_local_image(tag: str) -> bool:
    return tag.startswith("local")


def rustembedded_target(tag: str) -> str:
    """Extracts the triple from an old `rustembedded/cross` tag like `arm-unknown-linux-gnueabi-0.2.1`."""
    components = []
    for index, component in enumerate(tag.split("-")):
        if index <= 2 or _TARGET_COMPONENT.match(component):
            components.append(component)
        else:
            break
    return "-".join(components)


def image_target(image: Image) -> str:
    if image.repository.startswith(GHCR_PREFIX):
        return image.repository[len(GHCR_PREFIX):]
    if image.repository in RUST_EMBEDDED_REPOSITORIES:
        return rustembedded_target(image.tag)
    raise CrossError(f"Cannot get target for image {image.name}")


class MaintenanceService:
    """Lists and removes engine resources by their `cross-` naming scheme."""

    def __init__(self, engine, runtime, runner, logger, console):
        self.engine = engine
        self.runtime = runtime
        self.runner = runner
        self.logger = logger
        self.console = console

    def _lines(self, *args: str) -> List[str]:
        output = self.runner.output(self.engine.command(*args))
        return sorted(line.strip() for line in output.splitlines() if line.strip())

    def _execute_or_print(self, commands: Iterable[List[str]], execute: bool, what: str):
        commands = list(commands)
        if execute:
            for cmd in commands:
                self.runner.run(cmd)
            return

        for cmd in commands:
            self.console.print(shlex.join(cmd))
        self.console.print(f"[dim]Note: this is a dry run. To {what}, pass the `--execute` flag.[/dim]")

    def cross_volumes(self) -> List[str]:
        return self._lines("volume", "list", "--format", "{{.Name}}", "--filter", f"name=^{CONTAINER_PREFIX}")

    def list_volumes(self):
        for volume in self.cross_volumes():
            self.console.print(volume)

    def remove_all_volumes(self, force: bool = False, execute: bool = False):
        volumes = self.cross_volumes()
        if not volumes:
            self.logger.info("No crossbuild volumes to remove.")
            return

        args = ["volume", "rm"]
        if force:
            args.append("--force")
        args.extend(volumes)
        self._execute_or_print([self.engine.command(*args)], execute, "remove the volumes")

    def prune_volumes(self, execute: bool = False):
        self._execute_or_print(
            [self.engine.command("volume", "prune", "--force")], execute, "prune the volumes"
        )

    def create_persistent_volume(
        self,
        stager,
        target,
        metadata,
        dirs,
        commit_hash: str,
        copy_registry: bool = False,
    ) -> str:
        """Creates the `-keep` volume and fills it with the toolchain and caches."""
        container = project_identifier(target, metadata, dirs.sysroot, commit_hash)
        volume = keep_volume_name(container)

        if self.runtime.volume_exists(volume):
            raise PreconditionViolated(actionable_error("volume_exists", volume=volume))

        self.runtime.volume_create(volume)

        state = self.runtime.container_state(container)
        if not state.is_stopped:
            self._warn(f"container {container} was running.")
            self.runtime.container_stop(container)
        if state.exists:
            self._warn(f"container {container} was exited.")
            self.runtime.container_rm(container)

        mount_prefix = PurePosixPath(MOUNT_PREFIX)
        cmd = ["run", "--name", container, "-v", f"{volume}:{mount_prefix}", "-d"]
        if container_args.is_interactive():
            cmd.append("-t")
        cmd.extend([UBUNTU_BASE, "sh", "-c", "sleep infinity"])
        self.runner.run(self.engine.command(*cmd))

        try:
            stager.copy_xargo(container, dirs.xargo, target, mount_prefix)
            stager.copy_cargo(container, dirs.cargo, mount_prefix, copy_registry=copy_registry)
            stager.copy_rust(container, dirs.sysroot, target, mount_prefix)
        finally:
            for action in (self.runtime.container_stop, self.runtime.container_rm):
                try:
                    action(container)
                except CrossError as exc:
                    self.logger.debug("Ignoring cleanup failure for %s: %s", container, exc)

        self.console.print(f"[green]Created volume {volume}.[/green]")
        return volume

    def remove_persistent_volume(self, target, metadata, dirs, commit_hash: str) -> str:
        container = project_identifier(target, metadata, dirs.sysroot, commit_hash)
        volume = keep_volume_name(container)

        if not self.runtime.volume_exists(volume):
            raise PreconditionViolated(actionable_error("volume_missing", volume=volume))

        self.runtime.volume_rm(volume)
        self.console.print(f"[green]Removed volume {volume}.[/green]")
        return volume

    def cross_containers(self) -> List[str]:
        return self._lines(
            "ps", "-a", "--format", "{{.Names}}: {{.State}}", "--filter", f"name=^{CONTAINER_PREFIX}"
        )

    def list_containers(self):
        for line in self.cross_containers():
            self.console.print(line)

    def remove_all_containers(self, force: bool = False, execute: bool = False):
        running = []
        stopped = []
        for line in self.cross_containers():
            name, _, state = line.partition(":")
            if ContainerState.new(state.strip()).is_stopped:
                stopped.append(name.strip())
            else:
                running.append(name.strip())

        commands = []
        if running:
            commands.append(self.engine.command("stop", *running))
        if running or stopped:
            args = ["rm"]
            if force:
                args.append("--force")
            commands.append(self.engine.command(*args, *running, *stopped))

        if not commands:
            self.logger.info("No crossbuild containers to remove.")
            return
        self._execute_or_print(commands, execute, "remove the containers")

    def cross_images(self, local: bool = False) -> List[Image]:
        lines = self._lines("images", "--format", "{{.Repository}}:{{.Tag}} {{.ID}}")
        images = [parse_image(line) for line in lines]
        return sorted(
            image
            for image in images
            if is_cross_image(image.repository) and (local or not is_local_image(image.tag))
        )

    def list_images(self):
        for image in self.cross_images(local=True):
            self.console.print(image.name)

    def remove_images(
        self,
        targets: Optional[Iterable[str]] = None,
        force: bool = False,
        local: bool = False,
        execute: bool = False,
    ):
        images = self.cross_images(local=local)
        targets = set(targets or [])
        if targets:
            images = [image for image in images if image_target(image) in targets]

        if not images:
            self.logger.info("No crossbuild images to remove.")
            return

        args = ["rmi"]
        if force:
            args.append("--force")
        args.extend(image.id for image in images)
        self._execute_or_print([self.engine.command(*args)], execute, "remove the images")

    def _warn(self, message: str):
        self.console.print(f"[yellow]Warning: {message}[/yellow]")
        self.logger.warning(message)
