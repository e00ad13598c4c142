"""Actionable error catalog for crossbuild."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "engine_not_found": {
        "what": "No container engine found.",
        "next": "Is docker or podman installed? Set `CROSS_CONTAINER_ENGINE` to pick one explicitly.",
    },
    "image_not_available": {
        "what": "crossbuild does not provide a Docker image for target {target}.",
        "next": "Specify a custom image for the target in `.crossbuild.yml`.",
    },
    "unsupported_storage_driver": {
        "what": "Want storage driver overlay2, got {driver}.",
        "next": "Run the outer container with the overlay2 storage driver or disable docker-in-docker.",
    },
    "symlink_collision": {
        "what": "Could not mirror staged data in container {container}: a file exists where a symlink is needed.",
        "next": "Remove the conflicting path from the image or from the configured volumes.",
    },
    "volume_exists": {
        "what": "Volume {volume} already exists.",
        "next": "Remove it with `crossbuild volumes remove` before creating it again.",
    },
    "volume_missing": {
        "what": "Volume {volume} does not exist.",
        "next": "Create it with `crossbuild volumes create` first.",
    },
    "reserved_env_var": {
        "what": "{name} environment variable name is reserved and cannot be passed through.",
        "next": "Remove {name} from the `env.passthrough` and `env.volumes` lists.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
