"""Seccomp profile handling for targets that need extra syscalls."""

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from crossbuild.services.directories import wslpath

# Docker's default denials minus `clone` and `clone3`, matching podman.
DENIED_SYSCALLS = (
    "acct",
    "add_key",
    "bpf",
    "clock_adjtime",
    "clock_settime",
    "create_module",
    "delete_module",
    "finit_module",
    "get_kernel_syms",
    "get_mempolicy",
    "init_module",
    "ioperm",
    "iopl",
    "kcmp",
    "kexec_file_load",
    "kexec_load",
    "keyctl",
    "lookup_dcookie",
    "mbind",
    "mount",
    "move_pages",
    "name_to_handle_at",
    "nfsservctl",
    "open_by_handle_at",
    "perf_event_open",
    "pivot_root",
    "process_vm_readv",
    "process_vm_writev",
    "ptrace",
    "query_module",
    "quotactl",
    "reboot",
    "request_key",
    "set_mempolicy",
    "setns",
    "settimeofday",
    "stime",
    "swapon",
    "swapoff",
    "sysfs",
    "_sysctl",
    "umount",
    "umount2",
    "unshare",
    "uselib",
    "userfaultfd",
    "ustat",
    "vm86",
    "vm86old",
)


def seccomp_profile() -> Dict:
    return {
        "defaultAction": "SCMP_ACT_ALLOW",
        "syscalls": [
            {
                "names": list(DENIED_SYSCALLS),
                "action": "SCMP_ACT_ERRNO",
                "errnoRet": 1,
            }
        ],
    }


def write_seccomp_profile(path: Path) -> Path:
    """Writes the profile once; an existing file is left untouched."""
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(seccomp_profile(), indent=2) + "\n", encoding="utf-8")
    return path


def seccomp_args(
    engine,
    target,
    target_dir: Path,
    runner=None,
    platform: Optional[str] = None,
) -> List[str]:
    if not target.needs_docker_seccomp:
        return []

    on_windows = (platform or sys.platform) == "win32"
    if on_windows and engine.is_docker:
        # docker on windows fails to read profiles from disk
        value = "unconfined"
    else:
        path = write_seccomp_profile(Path(target_dir) / target.triple / "seccomp.json")
        value = str(wslpath(path, runner)) if on_windows and engine.is_podman else str(path)

    return ["--security-opt", f"seccomp={value}"]
