import json
from pathlib import Path

import pytest

import crossbuild.core as core_module
from crossbuild.core import CrossBuilder
from crossbuild.services.engine import Engine, EngineType

RUSTC_VV = """rustc 1.70.0 (90c541806 2023-05-31)
binary: rustc
commit-hash: 90c541806f23a127002de5b4038be731ba1458ca
host: x86_64-unknown-linux-gnu
release: 1.70.0
"""


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    (root / "crates" / "a").mkdir(parents=True)
    (tmp_path / "sysroot").mkdir()
    return root


@pytest.fixture
def environ(tmp_path):
    return {
        "CARGO_HOME": str(tmp_path / "cargo"),
        "XARGO_HOME": str(tmp_path / "xargo"),
        "CROSS_CONTAINER_UID": "1000",
        "CROSS_CONTAINER_GID": "1000",
    }


@pytest.fixture
def scripted_runner(fake_runner, monkeypatch, workspace, tmp_path):
    metadata = {
        "packages": [
            {
                "id": "a 0.1.0",
                "name": "a",
                "manifest_path": str(workspace / "crates" / "a" / "Cargo.toml"),
                "source": None,
            }
        ],
        "workspace_members": ["a 0.1.0"],
        "workspace_root": str(workspace),
        "target_directory": str(workspace / "target"),
    }
    fake_runner.respond("--print", "sysroot", stdout=f"{tmp_path / 'sysroot'}\n")
    fake_runner.respond("-vV", stdout=RUSTC_VV)
    fake_runner.respond("metadata", stdout=json.dumps(metadata))
    fake_runner.respond("--help", stdout="Usage: docker [OPTIONS] COMMAND")
    monkeypatch.setattr(core_module, "CommandRunner", lambda logger, dry_run: fake_runner)
    return fake_runner


def _builder(cwd, environ, **kwargs):
    builder = CrossBuilder(cwd=str(cwd), environ=environ, **kwargs)
    builder.engine_detector.which = lambda name: f"/usr/bin/{name}"
    return builder


def test_local_build_in_member_crate(scripted_runner, workspace, environ):
    scripted_runner.respond("run", returncode=101)
    cwd = workspace / "crates" / "a"
    builder = _builder(cwd, environ, target="aarch64-unknown-linux-gnu", args=["build", "--release"])

    status = builder.run()

    assert status == 101
    run_cmd = scripted_runner.calls[scripted_runner.index("run", "--rm")]
    assert f"{workspace}:/project:Z" in run_cmd
    assert run_cmd[run_cmd.index("-w") + 1] == "/project/crates/a"
    assert run_cmd[-1] == "PATH=/rust/bin:$PATH cargo build --release"
    assert (workspace / "target").is_dir()


def test_target_defaults_to_host(scripted_runner, workspace, environ):
    builder = _builder(workspace, environ)

    assert builder.target.triple == "x86_64-unknown-linux-gnu"


def test_missing_engine_returns_failure(scripted_runner, workspace, environ):
    builder = _builder(workspace, environ, target="aarch64-unknown-linux-gnu")
    builder.engine_detector.which = lambda _name: None

    assert builder.run() == 1
    assert not any("run" in cmd for cmd in scripted_runner.calls)


def test_unsupported_target_without_image_returns_failure(scripted_runner, workspace, environ):
    builder = _builder(workspace, environ, target="riscv64gc-unknown-none-elf")

    assert builder.run() == 1


def test_config_file_supplies_image(scripted_runner, workspace, environ):
    (workspace / ".crossbuild.yml").write_text(
        "target:\n  riscv64gc-unknown-none-elf:\n    image: example/riscv:edge\n",
        encoding="utf-8",
    )
    builder = _builder(workspace, environ, target="riscv64gc-unknown-none-elf", args=["build"])

    assert builder.run() == 0
    assert "example/riscv:edge" in scripted_runner.calls[scripted_runner.index("run", "--rm")]


def test_remote_flag_from_environment_selects_remote_runner(scripted_runner, workspace, environ, monkeypatch):
    captured = {}

    class FakeRemoteRunner:
        def __init__(self, **kwargs):
            captured.update(kwargs)

        def run(self, target, args, metadata, dirs, cwd, uses_xargo, commit_hash):
            captured["commit_hash"] = commit_hash
            return 0

    monkeypatch.setattr(core_module, "RemoteRunner", FakeRemoteRunner)
    environ["CROSS_REMOTE"] = "1"
    builder = _builder(workspace, environ, target="aarch64-unknown-linux-gnu")

    assert builder.run() == 0
    assert captured["commit_hash"] == "90c541806f23a127002de5b4038be731ba1458ca"
    assert captured["engine"].is_remote


def test_mount_table_is_read_once(scripted_runner, workspace, environ):
    inspect = [
        {
            "Mounts": [{"Source": "/host/ws", "Destination": str(workspace)}],
            "GraphDriver": {"Name": "overlay2", "Data": {"MergedDir": "/merged"}},
        }
    ]
    scripted_runner.respond("inspect", stdout=json.dumps(inspect))
    environ["HOSTNAME"] = "abc123"
    builder = _builder(workspace, environ, docker_in_docker=True)
    engine = Engine(kind=EngineType.DOCKER, path=Path("/usr/bin/docker"))

    first = builder.mount_finder(engine)
    second = builder.mount_finder(engine)

    assert first is second
    assert first.find_mount_path(workspace / "src") == Path("/host/ws/src")
    assert len([cmd for cmd in scripted_runner.calls if "inspect" in cmd]) == 1


def test_mount_table_empty_without_docker_in_docker(scripted_runner, workspace, environ):
    builder = _builder(workspace, environ)
    engine = Engine(kind=EngineType.DOCKER, path=Path("/usr/bin/docker"))

    assert builder.mount_finder(engine).mounts == []
    assert scripted_runner.calls == []


def test_unexpected_error_returns_failure(scripted_runner, workspace, environ, monkeypatch):
    class BrokenRemoteRunner:
        def __init__(self, **kwargs):
            pass

        def run(self, *args):
            raise FileNotFoundError(2, "No such file or directory", str(workspace / "dangling"))

    monkeypatch.setattr(core_module, "RemoteRunner", BrokenRemoteRunner)
    builder = _builder(workspace, environ, target="aarch64-unknown-linux-gnu", remote=True)

    assert builder.run() == 1


def test_create_volume_unexpected_error_returns_failure(scripted_runner, workspace, environ, monkeypatch):
    def broken_create(self, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(workspace))

    monkeypatch.setattr(core_module.MaintenanceService, "create_persistent_volume", broken_create)
    builder = _builder(workspace, environ, target="aarch64-unknown-linux-gnu", remote=True)

    assert builder.create_volume() == 1
