"""Host path translation for crossbuild running inside a container."""

import json
import os
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from crossbuild.errors import MountTranslationFailure, UnsupportedStorageDriver
from crossbuild.errors_catalog import actionable_error
from crossbuild.models import MountDetail

SUPPORTED_STORAGE_DRIVER = "overlay2"


class MountFinder:
    """Rewrites paths seen by this process into paths seen by the engine's host.

    Destinations are tried longest first, so a mount nested inside another
    mount takes priority over its parent.
    """

    def __init__(self, mounts: Optional[Iterable[MountDetail]] = None):
        self.mounts: List[MountDetail] = sorted(
            mounts or [],
            key=lambda detail: len(str(detail.destination)),
            reverse=True,
        )

    def find_mount_path(self, path) -> Path:
        path = Path(path)
        for detail in self.mounts:
            try:
                stripped = path.relative_to(detail.destination)
            except ValueError:
                continue
            return Path(detail.source) / stripped
        return path


def parse_user_mounts(info: Any) -> List[MountDetail]:
    try:
        mounts = info[0].get("Mounts") or []
    except (IndexError, KeyError, TypeError, AttributeError):
        return []

    details = []
    for mount in mounts:
        try:
            details.append(
                MountDetail(source=Path(mount["Source"]), destination=Path(mount["Destination"]))
            )
        except (KeyError, TypeError) as exc:
            raise MountTranslationFailure(f"Malformed mount entry in inspect output: {mount}") from exc
    return details


def parse_root_mount(info: Any) -> MountDetail:
    try:
        driver = info[0]["GraphDriver"]
        driver_name = driver["Name"]
    except (IndexError, KeyError, TypeError) as exc:
        raise MountTranslationFailure("No storage driver name found in inspect output.") from exc

    if driver_name != SUPPORTED_STORAGE_DRIVER:
        raise UnsupportedStorageDriver(
            actionable_error("unsupported_storage_driver", driver=str(driver_name))
        )

    try:
        merged_dir = driver["Data"]["MergedDir"]
    except (KeyError, TypeError) as exc:
        raise MountTranslationFailure("No merged directory found in inspect output.") from exc

    return MountDetail(source=Path(merged_dir), destination=Path("/"))


def parse_mounts(info: Any) -> List[MountDetail]:
    mounts = parse_user_mounts(info)
    mounts.append(parse_root_mount(info))
    return mounts


def read_mount_paths(engine, runner, environ: Optional[Mapping[str, str]] = None) -> List[MountDetail]:
    """Asks the engine how the container running this process is mounted."""
    environ = os.environ if environ is None else environ
    hostname = environ.get("HOSTNAME")
    if not hostname:
        raise MountTranslationFailure("HOSTNAME environment variable not found.")

    output = runner.output(engine.command("inspect", hostname))
    try:
        info = json.loads(output)
    except json.JSONDecodeError as exc:
        raise MountTranslationFailure(f"Failed to parse inspect output for {hostname}: {exc}") from exc

    return parse_mounts(info)
