from pathlib import Path

import pytest

import crossbuild.services.container_args as container_args
from crossbuild.models import Package, ProjectMetadata, Target
from crossbuild.services.config_loader import Config
from crossbuild.services.directories import Directories
from crossbuild.services.engine import Engine, EngineType
from crossbuild.services.image import ImageResolver
from crossbuild.services.local_runner import LocalRunner

TARGET = Target("aarch64-unknown-linux-gnu")
IMAGE = "ghcr.io/cross-rs/aarch64-unknown-linux-gnu:0.2.2"


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


@pytest.fixture(autouse=True)
def fixed_username(monkeypatch):
    monkeypatch.setattr(container_args, "username", lambda: "tester")


def _metadata(root):
    return ProjectMetadata(
        workspace_root=root,
        target_directory=root / "target",
        packages=(Package(id="a", name="a", manifest_path=root / "crates" / "a" / "Cargo.toml"),),
        workspace_members=("a",),
    )


def _dirs(root, nix_store=None):
    return Directories(
        cargo=Path("/home/u/.cargo"),
        xargo=Path("/home/u/.xargo"),
        target=root / "target",
        nix_store=nix_store,
        host_root=root,
        mount_root=root,
        mount_cwd=root,
        sysroot=Path("/home/u/.rustup/toolchains/stable"),
    )


def _runner(fake_runner, kind=EngineType.DOCKER, interactive=False):
    config = Config.from_mapping({}, environ={})
    return LocalRunner(
        engine=Engine(kind=kind, path=Path("docker")),
        runner=fake_runner,
        config=config,
        image_resolver=ImageResolver(config, version="0.2.2", commit_info=""),
        logger=DummyLogger(),
        console=DummyConsole(),
        environ={"CROSS_CONTAINER_UID": "1000", "CROSS_CONTAINER_GID": "1000"},
        platform="linux",
        interactive=lambda: interactive,
    )


def _pairs(cmd, flag):
    return [cmd[i + 1] for i, part in enumerate(cmd) if part == flag]


def test_member_crate_builds_in_project_subdirectory(fake_runner):
    root = Path("/ws")
    cwd = root / "crates" / "a"
    runner = _runner(fake_runner)

    cmd = runner.build_command(TARGET, ["build", "--release"], _metadata(root), _dirs(root), cwd, False)

    assert cmd[:4] == ["docker", "run", "--userns", "host"]
    assert "/ws:/project:Z" in _pairs(cmd, "-v")
    assert _pairs(cmd, "-w") == ["/project/crates/a"]
    assert cmd[-4:] == [IMAGE, "sh", "-c", "PATH=/rust/bin:$PATH cargo build --release"]


def test_command_mounts_toolchain_and_caches(fake_runner):
    root = Path("/ws")
    runner = _runner(fake_runner)

    cmd = runner.build_command(TARGET, ["build"], _metadata(root), _dirs(root), root, True)

    assert _pairs(cmd, "-v") == [
        "/home/u/.xargo:/xargo:Z",
        "/home/u/.cargo:/cargo:Z",
        "/cargo/bin",
        "/ws:/project:Z",
        "/home/u/.rustup/toolchains/stable:/rust:Z,ro",
        "/ws/target:/target:Z",
    ]
    assert "--rm" in cmd
    assert _pairs(cmd, "--user") == ["1000:1000"]
    assert "-i" not in cmd and "-t" not in cmd
    assert cmd[-1] == "PATH=/rust/bin:$PATH xargo build"


def test_podman_skips_user_flag_and_tty_is_forwarded(fake_runner):
    root = Path("/ws")
    runner = _runner(fake_runner, kind=EngineType.PODMAN, interactive=True)

    cmd = runner.build_command(TARGET, ["test"], _metadata(root), _dirs(root), root, False)

    assert "--user" not in cmd
    index = cmd.index(IMAGE)
    assert cmd[index - 2 : index] == ["-i", "-t"]


def test_nix_store_is_mounted_when_present(fake_runner):
    root = Path("/ws")
    runner = _runner(fake_runner)

    cmd = runner.build_command(
        TARGET, ["build"], _metadata(root), _dirs(root, nix_store=Path("/nix/store")), root, False
    )

    assert "/nix/store:/nix/store:Z" in _pairs(cmd, "-v")


def test_run_returns_engine_status(fake_runner):
    root = Path("/ws")
    fake_runner.respond("run", returncode=101)
    runner = _runner(fake_runner)

    status = runner.run(TARGET, ["build"], _metadata(root), _dirs(root), root, False)

    assert status == 101
    assert len(fake_runner.calls) == 1
