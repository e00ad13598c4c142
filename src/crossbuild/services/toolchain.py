"""Host toolchain queries for crossbuild."""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from crossbuild.errors import CrossError

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass(frozen=True)
class VersionMeta:
    short_version: str
    host: str
    release: str
    commit_hash: Optional[str] = None

    @property
    def identifier(self) -> str:
        """Commit hash of the compiler, or its version when built without one."""
        if self.commit_hash:
            return self.commit_hash
        return _UNSAFE_NAME_CHARS.sub("-", self.short_version).strip("-")


def parse_version_meta(output: str) -> VersionMeta:
    lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
    if not lines:
        raise CrossError("Empty output from `rustc -vV`.")

    fields: Dict[str, str] = {}
    for line in lines[1:]:
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip()] = value.strip()

    if "host" not in fields:
        raise CrossError("Could not find the host triple in `rustc -vV` output.")

    commit_hash = fields.get("commit-hash")
    if commit_hash == "unknown":
        commit_hash = None

    return VersionMeta(
        short_version=lines[0],
        host=fields["host"],
        release=fields.get("release", ""),
        commit_hash=commit_hash,
    )


class ToolchainService:
    """Asks the installed `rustc` about itself."""

    def __init__(self, runner, logger, rustc: str = "rustc"):
        self.runner = runner
        self.logger = logger
        self.rustc = rustc

    def sysroot(self) -> Path:
        output = self.runner.output([self.rustc, "--print", "sysroot"]).strip()
        if not output:
            raise CrossError("Could not determine the toolchain sysroot from `rustc --print sysroot`.")
        return Path(output)

    def version_meta(self) -> VersionMeta:
        meta = parse_version_meta(self.runner.output([self.rustc, "-vV"]))
        self.logger.debug("Host toolchain %s (%s)", meta.short_version, meta.host)
        return meta
