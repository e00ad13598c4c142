import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from rich.console import Console

from .constants import FAILURE_EXIT_CODE, INTERRUPTED_EXIT_CODE
from .errors import CrossError
from .models import ProjectMetadata, Target
from .services.command_runner import CommandRunner
from .services.config_loader import DEFAULT_CONFIG_FILE, Config, ConfigLoader, env_flag
from .services.container_runtime import ContainerRuntimeService
from .services.directories import Directories
from .services.engine import Engine, EngineDetector
from .services.image import ImageResolver
from .services.local_runner import LocalRunner
from .services.maintenance import MaintenanceService
from .services.metadata import MetadataService
from .services.mounts import MountFinder, read_mount_paths
from .services.remote_runner import RemoteRunner
from .services.staging import VolumeStager
from .services.toolchain import ToolchainService, VersionMeta

console = Console()
logger = logging.getLogger("crossbuild")

__all__ = ["BuildContext", "CrossBuilder", "CrossError"]


@dataclass(frozen=True)
class BuildContext:
    config: Config
    metadata: ProjectMetadata
    engine: Engine
    dirs: Directories
    version_meta: VersionMeta
    uses_xargo: bool


class CrossBuilder:
    """Runs one build, or one volume operation, for a single target."""

    def __init__(
        self,
        target: Optional[str] = None,
        args: Sequence[str] = (),
        engine: Optional[str] = None,
        remote: Optional[bool] = None,
        docker_in_docker: Optional[bool] = None,
        xargo: Optional[bool] = None,
        config_path: Optional[str] = None,
        manifest_path: Optional[str] = None,
        verbose: bool = False,
        dry_run: bool = False,
        cwd: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.environ = os.environ if environ is None else environ
        self.args: List[str] = list(args)
        self.engine_override = engine
        self.remote = env_flag("CROSS_REMOTE", environ=self.environ) if remote is None else remote
        self.docker_in_docker = (
            env_flag("CROSS_DOCKER_IN_DOCKER", environ=self.environ)
            if docker_in_docker is None
            else docker_in_docker
        )
        self.xargo = xargo
        self.manifest_path = manifest_path
        self.verbose = verbose
        self.dry_run = dry_run
        self.cwd = Path(cwd or os.getcwd())
        self.config_path = config_path or self._default_config_path()

        self.command_runner = CommandRunner(logger=logger, dry_run=dry_run)
        self.toolchain_service = ToolchainService(runner=self.command_runner, logger=logger)
        self.metadata_service = MetadataService(runner=self.command_runner, logger=logger)
        self.engine_detector = EngineDetector(
            runner=self.command_runner,
            logger=logger,
            environ=self.environ,
        )
        self._target = target
        self._mount_finder: Optional[MountFinder] = None

    def _default_config_path(self) -> Optional[str]:
        candidate = self.cwd / DEFAULT_CONFIG_FILE
        if candidate.exists():
            return str(candidate)
        return None

    @property
    def target(self) -> Target:
        triple = self._target
        if not triple:
            triple = self.toolchain_service.version_meta().host
            self._target = triple
        return Target(triple)

    def load_config(self) -> Config:
        data = ConfigLoader().load(self.config_path)
        return Config.from_mapping(data, environ=self.environ)

    def create_engine(self) -> Engine:
        engine = self.engine_detector.create(is_remote=self.remote, override=self.engine_override)
        logger.debug("Using %s engine at %s", engine.kind.value, engine.path)
        return engine

    def mount_finder(self, engine: Engine) -> MountFinder:
        """Host mount table, read once and only when running inside a container."""
        if self._mount_finder is None:
            if self.docker_in_docker:
                mounts = read_mount_paths(engine, self.command_runner, self.environ)
                self._mount_finder = MountFinder(mounts)
            else:
                self._mount_finder = MountFinder()
        return self._mount_finder

    def prepare(self) -> BuildContext:
        config = self.load_config()
        sysroot = self.toolchain_service.sysroot()
        version_meta = self.toolchain_service.version_meta()
        metadata = self.metadata_service.load(self.manifest_path)
        engine = self.create_engine()

        dirs = Directories.create(
            metadata,
            self.cwd,
            sysroot,
            mount_finder=self.mount_finder(engine),
            runner=self.command_runner,
            environ=self.environ,
        )

        target = self.target
        uses_xargo = self.xargo if self.xargo is not None else config.xargo(target)
        return BuildContext(
            config=config,
            metadata=metadata,
            engine=engine,
            dirs=dirs,
            version_meta=version_meta,
            uses_xargo=uses_xargo,
        )

    def build(self, context: BuildContext) -> int:
        target = self.target
        image_resolver = ImageResolver(context.config)

        if self.remote:
            runtime = ContainerRuntimeService(context.engine, self.command_runner, logger)
            remote_runner = RemoteRunner(
                engine=context.engine,
                runtime=runtime,
                runner=self.command_runner,
                config=context.config,
                image_resolver=image_resolver,
                logger=logger,
                console=console,
                environ=self.environ,
                verbose=self.verbose,
            )
            return remote_runner.run(
                target,
                self.args,
                context.metadata,
                context.dirs,
                self.cwd,
                context.uses_xargo,
                context.version_meta.identifier,
            )

        local_runner = LocalRunner(
            engine=context.engine,
            runner=self.command_runner,
            config=context.config,
            image_resolver=image_resolver,
            logger=logger,
            console=console,
            environ=self.environ,
        )
        return local_runner.run(
            target,
            self.args,
            context.metadata,
            context.dirs,
            self.cwd,
            context.uses_xargo,
        )

    def run(self) -> int:
        try:
            logger.info("Starting crossbuild for %s...", self.target.triple)
            context = self.prepare()
            status = self.build(context)
            if status != 0:
                logger.error("Build tool exited with status %s", status)
            return status
        # only reachable for library callers; the CLI exits from its SIGINT handler
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return INTERRUPTED_EXIT_CODE
        except CrossError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return FAILURE_EXIT_CODE
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return FAILURE_EXIT_CODE

    def maintenance(self, engine: Optional[Engine] = None) -> MaintenanceService:
        engine = engine or self.create_engine()
        runtime = ContainerRuntimeService(engine, self.command_runner, logger)
        return MaintenanceService(
            engine=engine,
            runtime=runtime,
            runner=self.command_runner,
            logger=logger,
            console=console,
        )

    def create_volume(self, copy_registry: bool = False) -> int:
        """Creates the persistent data volume remote builds of this project reuse."""
        try:
            context = self.prepare()
            service = self.maintenance(context.engine)
            stager = VolumeStager(service.runtime, self.command_runner, logger, environ=self.environ)
            service.create_persistent_volume(
                stager,
                self.target,
                context.metadata,
                context.dirs,
                context.version_meta.identifier,
                copy_registry=copy_registry,
            )
            return 0
        except CrossError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return FAILURE_EXIT_CODE
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return FAILURE_EXIT_CODE

    def remove_volume(self) -> int:
        try:
            context = self.prepare()
            self.maintenance(context.engine).remove_persistent_volume(
                self.target,
                context.metadata,
                context.dirs,
                context.version_meta.identifier,
            )
            return 0
        except CrossError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return FAILURE_EXIT_CODE
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return FAILURE_EXIT_CODE
