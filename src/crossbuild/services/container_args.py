"""Engine arguments shared by the local and remote runners."""

import getpass
import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, List, Mapping, Optional, Tuple

from crossbuild.constants import RESERVED_ENV_VAR
from crossbuild.errors import ConfigError, CrossError
from crossbuild.errors_catalog import actionable_error
from crossbuild.services.directories import is_within

PROJECT_DIR = PurePosixPath("/project")
TOOLCHAIN_BIN = "/rust/bin"

MountCallback = Callable[[str], Tuple[List[str], PurePosixPath]]


def user_id(environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    if environ.get("CROSS_CONTAINER_UID"):
        return environ["CROSS_CONTAINER_UID"]
    return str(os.getuid()) if hasattr(os, "getuid") else "1000"


def group_id(environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    if environ.get("CROSS_CONTAINER_GID"):
        return environ["CROSS_CONTAINER_GID"]
    return str(os.getgid()) if hasattr(os, "getgid") else "1000"


def username() -> Optional[str]:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return None


def is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty() and sys.stderr.isatty()


def validate_env_var(var: str) -> Tuple[str, Optional[str]]:
    key, sep, value = var.partition("=")
    if key == RESERVED_ENV_VAR:
        raise ConfigError(actionable_error("reserved_env_var", name=RESERVED_ENV_VAR))
    return key, (value if sep else None)


def parse_docker_opts(value: str) -> List[str]:
    try:
        return shlex.split(value)
    except ValueError as exc:
        raise ConfigError(f"Could not parse container options {value!r}: {exc}") from exc


def user_args(engine, environ: Optional[Mapping[str, str]] = None) -> List[str]:
    if not engine.needs_user_flag:
        return []
    return ["--user", f"{user_id(environ)}:{group_id(environ)}"]


def envvar_args(
    config,
    target,
    logger,
    console,
    environ: Optional[Mapping[str, str]] = None,
) -> List[str]:
    environ = os.environ if environ is None else environ
    args: List[str] = []

    for var in config.env_passthrough(target):
        validate_env_var(var)
        # a bare name forwards the value from the calling environment
        args.extend(["-e", var])

    runner = config.runner(target) or ""
    args.extend(
        [
            "-e",
            "PKG_CONFIG_ALLOW_CROSS=1",
            "-e",
            "XARGO_HOME=/xargo",
            "-e",
            "CARGO_HOME=/cargo",
            "-e",
            "CARGO_TARGET_DIR=/target",
            "-e",
            f"{RESERVED_ENV_VAR}={runner}",
        ]
    )

    user = username()
    if user:
        args.extend(["-e", f"USER={user}"])

    for name in ("QEMU_STRACE", "CROSS_DEBUG"):
        if name in environ:
            args.extend(["-e", f"{name}={environ[name]}"])

    if "CROSS_CONTAINER_OPTS" in environ:
        if "DOCKER_OPTS" in environ:
            message = "using both `CROSS_CONTAINER_OPTS` and `DOCKER_OPTS`."
            console.print(f"[yellow]Warning: {message}[/yellow]")
            logger.warning(message)
        args.extend(parse_docker_opts(environ["CROSS_CONTAINER_OPTS"]))
    elif "DOCKER_OPTS" in environ:
        # TODO: drop DOCKER_OPTS once the deprecation period for it ends
        args.extend(parse_docker_opts(environ["DOCKER_OPTS"]))

    return args


@dataclass
class ExtraMounts:
    """Mounts beyond the project root, and whether any were needed."""

    args: List[str] = field(default_factory=list)
    volumes: List[Tuple[str, PurePosixPath]] = field(default_factory=list)
    needed: bool = False


def resolve_host_path(value: str) -> Path:
    try:
        return Path(value).resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise CrossError(f"Could not canonicalize volume path `{value}`: {exc}") from exc


def extra_mounts(
    metadata,
    config,
    target,
    cwd: Path,
    mount_cb: MountCallback,
    environ: Optional[Mapping[str, str]] = None,
) -> ExtraMounts:
    environ = os.environ if environ is None else environ
    mounts = ExtraMounts()

    # outside the workspace the simple /project layout cannot work
    if not is_within(Path(cwd), Path(metadata.workspace_root)):
        mounts.needed = True

    for entry in config.env_volumes(target):
        name, value = validate_env_var(entry)
        if value is None:
            value = environ.get(name)
        if value is None:
            continue

        args, mount_path = mount_cb(value)
        mounts.args.extend(args)
        mounts.args.extend(["-e", f"{name}={mount_path}"])
        mounts.volumes.append((value, mount_path))
        mounts.needed = True

    for path in metadata.path_dependencies():
        args, mount_path = mount_cb(str(path))
        mounts.args.extend(args)
        mounts.volumes.append((str(path), mount_path))
        mounts.needed = True

    return mounts


def working_dir(metadata, dirs, cwd: Path, mounts_needed: bool) -> str:
    if mounts_needed:
        return str(dirs.mount_cwd)

    workspace_root = Path(metadata.workspace_root)
    if Path(cwd) == workspace_root:
        return str(PROJECT_DIR)

    # rebuilt part by part so host separators never reach the container
    relative = Path(cwd).relative_to(workspace_root)
    return str(PurePosixPath(PROJECT_DIR, *relative.parts))


def build_tool_command(uses_xargo: bool, args: List[str]) -> str:
    tool = "xargo" if uses_xargo else "cargo"
    return f"PATH={TOOLCHAIN_BIN}:$PATH {shlex.join([tool, *args])}"
