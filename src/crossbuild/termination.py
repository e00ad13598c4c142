"""Interrupt handling for crossbuild.

The process holds exactly one piece of global mutable state: whether a
termination signal was received, together with the temporary directories
that must not outlive the process. The handler only flips the flag, deletes
those directories and exits. Context-manager cleanup of containers and
volumes does not run on this path, so an interrupted remote build can leave
a container behind; the next run for the same project reclaims it.
"""

import os
import shutil
import signal
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

from crossbuild.constants import INTERRUPTED_EXIT_CODE

_state = {"terminated": False}
_tempdirs: List[str] = []


def is_terminated() -> bool:
    return _state["terminated"]


def has_tempdirs() -> bool:
    return bool(_tempdirs)


def clean_tempdirs():
    while _tempdirs:
        shutil.rmtree(_tempdirs.pop(), ignore_errors=True)


@contextmanager
def tempdir(prefix: str = "crossbuild-") -> Iterator[Path]:
    path = tempfile.mkdtemp(prefix=prefix)
    _tempdirs.append(path)
    try:
        yield Path(path)
    finally:
        if path in _tempdirs:
            _tempdirs.remove(path)
        shutil.rmtree(path, ignore_errors=True)


def termination_handler(_signum=None, _frame=None):
    if not _state["terminated"]:
        _state["terminated"] = True
        if has_tempdirs():
            clean_tempdirs()
    os._exit(INTERRUPTED_EXIT_CODE)


def install_termination_hook():
    signal.signal(signal.SIGINT, termination_handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, termination_handler)
