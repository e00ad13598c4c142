"""Project metadata retrieval through `cargo metadata`."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from crossbuild.errors import CrossError
from crossbuild.models import Package, ProjectMetadata


def parse_metadata(data: Dict[str, Any]) -> ProjectMetadata:
    try:
        packages = tuple(
            Package(
                id=item["id"],
                name=item["name"],
                manifest_path=Path(item["manifest_path"]),
                source=item.get("source"),
            )
            for item in data.get("packages") or []
        )
        return ProjectMetadata(
            workspace_root=Path(data["workspace_root"]),
            target_directory=Path(data["target_directory"]),
            packages=packages,
            workspace_members=tuple(data.get("workspace_members") or []),
        )
    except (KeyError, TypeError) as exc:
        raise CrossError(f"Unexpected `cargo metadata` output: missing {exc}") from exc


class MetadataService:
    """Loads workspace layout and packages for the current project."""

    def __init__(self, runner, logger):
        self.runner = runner
        self.logger = logger

    def load(self, manifest_path: Optional[str] = None) -> ProjectMetadata:
        cmd = ["cargo", "metadata", "--format-version", "1"]
        if manifest_path:
            cmd.extend(["--manifest-path", manifest_path])

        output = self.runner.output(cmd)
        try:
            data = json.loads(output)
        except json.JSONDecodeError as exc:
            raise CrossError(f"Unable to get project metadata: {exc}") from exc

        metadata = parse_metadata(data)
        self.logger.debug("Workspace root: %s", metadata.workspace_root)
        return metadata
