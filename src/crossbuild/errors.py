"""Domain errors for crossbuild."""

from typing import Optional


class CrossError(RuntimeError):
    """Raised when the build orchestration cannot continue safely."""


class EngineNotFound(CrossError):
    """No container engine executable could be resolved."""


class UnsupportedStorageDriver(CrossError):
    """Self-inspection found a storage driver other than overlay2."""


class MountTranslationFailure(CrossError):
    """The engine's description of the current container was unusable."""


class PreconditionViolated(CrossError):
    """A persistent volume was in the wrong state for the requested operation."""


class UnknownContainerState(CrossError):
    """The engine reported a container state outside the known set."""


class ImageNotAvailable(CrossError):
    """No configured and no built-in image exists for a target."""


class SymlinkCollision(CrossError):
    """A real file already occupies a path that must become a symlink."""


class ConfigError(CrossError):
    """Invalid configuration value or file."""


class ExecutionFailed(CrossError):
    """A child process exited with a non-zero status."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode
