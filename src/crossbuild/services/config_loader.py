"""Configuration loader for crossbuild."""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from crossbuild.errors import ConfigError
from crossbuild.models import EnvConfig, Target, TargetConfig

DEFAULT_CONFIG_FILE = ".crossbuild.yml"


def bool_from_envvar(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(lowered) != 0
    except ValueError:
        return bool(value)


def env_flag(name: str, default: bool = False, environ: Optional[Mapping[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    if name not in environ:
        return default
    return bool_from_envvar(environ[name])


class ConfigLoader:
    """Loads the YAML project configuration."""

    SUPPORTED_KEYS = {"build", "target"}
    BUILD_KEYS = {"env", "xargo"}
    TARGET_KEYS = {"image", "runner", "xargo", "env"}
    ENV_KEYS = {"passthrough", "volumes"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")

        self._check_keys(parsed, self.SUPPORTED_KEYS, "configuration")
        build = parsed.get("build") or {}
        self._check_mapping(build, "build")
        self._check_keys(build, self.BUILD_KEYS, "build")
        self._check_env(build.get("env"), "build.env")

        targets = parsed.get("target") or {}
        self._check_mapping(targets, "target")
        for triple, section in targets.items():
            self._check_mapping(section, f"target.{triple}")
            self._check_keys(section, self.TARGET_KEYS, f"target.{triple}")
            self._check_env(section.get("env"), f"target.{triple}.env")

        return parsed

    def _check_env(self, env: Any, label: str):
        if env is None:
            return
        self._check_mapping(env, label)
        self._check_keys(env, self.ENV_KEYS, label)
        for key in self.ENV_KEYS:
            values = env.get(key)
            if values is not None and not isinstance(values, list):
                raise ConfigError(f"`{label}.{key}` must be a list of strings.")

    def _check_mapping(self, value: Any, label: str):
        if not isinstance(value, dict):
            raise ConfigError(f"`{label}` must be a mapping.")

    def _check_keys(self, value: Dict[str, Any], allowed, label: str):
        unknown = sorted(set(value.keys()) - allowed)
        if unknown:
            unknown_list = ", ".join(str(key) for key in unknown)
            raise ConfigError(f"Unknown {label} keys: {unknown_list}")


def _env_config(section: Optional[Dict[str, Any]]) -> EnvConfig:
    section = section or {}
    return EnvConfig(
        passthrough=tuple(str(item) for item in section.get("passthrough") or []),
        volumes=tuple(str(item) for item in section.get("volumes") or []),
    )


class Config:
    """Per-target settings with environment overrides."""

    def __init__(
        self,
        build_env: Optional[EnvConfig] = None,
        build_xargo: Optional[bool] = None,
        targets: Optional[Dict[str, TargetConfig]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.build_env = build_env or EnvConfig()
        self.build_xargo = build_xargo
        self.targets = targets or {}
        self.environ = os.environ if environ is None else environ

    @classmethod
    def from_mapping(cls, data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None):
        build = data.get("build") or {}
        targets = {
            str(triple): TargetConfig(
                image=section.get("image"),
                runner=section.get("runner"),
                xargo=section.get("xargo"),
                env=_env_config(section.get("env")),
            )
            for triple, section in (data.get("target") or {}).items()
        }
        return cls(
            build_env=_env_config(build.get("env")),
            build_xargo=build.get("xargo"),
            targets=targets,
            environ=environ,
        )

    def _target_env_var(self, target: Target, key: str) -> Optional[str]:
        name = f"CROSS_TARGET_{target.triple.upper().replace('-', '_')}_{key}"
        return self.environ.get(name)

    def _target(self, target: Target) -> TargetConfig:
        return self.targets.get(target.triple, TargetConfig())

    def image(self, target: Target) -> Optional[str]:
        return self._target_env_var(target, "IMAGE") or self._target(target).image

    def runner(self, target: Target) -> Optional[str]:
        return self._target_env_var(target, "RUNNER") or self._target(target).runner

    def xargo(self, target: Target) -> bool:
        value = self._target(target).xargo
        if value is None:
            value = self.build_xargo
        return bool(value)

    def env_passthrough(self, target: Target) -> List[str]:
        return list(self.build_env.passthrough) + list(self._target(target).env.passthrough)

    def env_volumes(self, target: Target) -> List[str]:
        return list(self.build_env.volumes) + list(self._target(target).env.volumes)
