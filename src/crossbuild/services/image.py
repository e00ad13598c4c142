"""Image selection for crossbuild targets."""

from typing import Iterable, Optional

from crossbuild.constants import (
    BUILD_COMMIT_INFO,
    CROSS_IMAGE,
    DEVELOPMENT_TAG,
    SUPPORTED_TARGETS,
)
from crossbuild.errors import ImageNotAvailable
from crossbuild.errors_catalog import actionable_error
from crossbuild.models import Target


class ImageResolver:
    """Picks the image reference a target builds in."""

    def __init__(
        self,
        config,
        version: Optional[str] = None,
        commit_info: str = BUILD_COMMIT_INFO,
        supported_targets: Iterable[str] = SUPPORTED_TARGETS,
    ):
        self.config = config
        self.version = version
        self.commit_info = commit_info
        self.supported_targets = frozenset(supported_targets)

    def tag(self) -> str:
        if self.commit_info:
            return DEVELOPMENT_TAG
        if self.version is not None:
            return self.version

        from crossbuild import __version__

        return __version__

    def resolve(self, target: Target) -> str:
        image = self.config.image(target)
        if image:
            return image

        if target.triple not in self.supported_targets:
            raise ImageNotAvailable(actionable_error("image_not_available", target=target.triple))

        return f"{CROSS_IMAGE}/{target.triple}:{self.tag()}"
