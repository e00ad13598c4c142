from pathlib import Path, PurePosixPath

import pytest

from crossbuild.errors import UnknownContainerState
from crossbuild.services.container_runtime import ContainerRuntimeService
from crossbuild.services.engine import Engine, EngineType
from crossbuild.services.lifecycle import ContainerState


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


@pytest.fixture
def runtime(fake_runner):
    engine = Engine(kind=EngineType.PODMAN, path=Path("podman"), is_remote=True)
    return ContainerRuntimeService(engine, fake_runner, DummyLogger())


def test_commands_carry_remote_flag(runtime, fake_runner):
    runtime.volume_create("cross-demo")
    runtime.container_stop("cross-demo")

    assert fake_runner.calls == [
        ["podman", "--remote", "volume", "create", "cross-demo"],
        ["podman", "--remote", "stop", "cross-demo"],
    ]


def test_volume_exists_needs_success_and_output(runtime, fake_runner):
    fake_runner.respond("inspect", "present", stdout='[{"Name": "present"}]')
    fake_runner.respond("inspect", "missing", returncode=1)

    assert runtime.volume_exists("present")
    assert not runtime.volume_exists("missing")
    assert not runtime.volume_exists("empty")


def test_container_state_filters_by_exact_name(runtime, fake_runner):
    fake_runner.respond("ps", stdout="running\n")

    assert runtime.container_state("cross-demo") is ContainerState.RUNNING
    assert "name=^cross-demo$" in fake_runner.calls[0]


def test_container_state_missing_container(runtime):
    assert runtime.container_state("cross-demo") is ContainerState.DOES_NOT_EXIST


def test_container_state_unknown_value(runtime, fake_runner):
    fake_runner.respond("ps", stdout="removing\n")

    with pytest.raises(UnknownContainerState):
        runtime.container_state("cross-demo")


def test_exec_and_copy(runtime, fake_runner):
    runtime.create_dir("cross-demo", PurePosixPath("/cross/ws"))
    runtime.exec("cross-demo", "true", options=["-w", "/project"])
    runtime.copy_to("cross-demo", Path("/host/src"), PurePosixPath("/cross/src"))
    runtime.copy_from("cross-demo", PurePosixPath("/cross/target"), Path("/host"))

    assert fake_runner.calls == [
        ["podman", "--remote", "exec", "cross-demo", "sh", "-c", "mkdir -p /cross/ws"],
        ["podman", "--remote", "exec", "-w", "/project", "cross-demo", "sh", "-c", "true"],
        ["podman", "--remote", "cp", "-a", str(Path("/host/src")), "cross-demo:/cross/src"],
        ["podman", "--remote", "cp", "-a", "cross-demo:/cross/target", str(Path("/host"))],
    ]


def test_create_dir_quotes_path(runtime, fake_runner):
    runtime.create_dir("cross-demo", PurePosixPath("/cross/home/o'brien/ws"))

    script = fake_runner.calls[0][-1]
    assert script == "mkdir -p '/cross/home/o'\"'\"'brien/ws'"
