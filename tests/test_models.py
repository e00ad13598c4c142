from pathlib import Path

import pytest

from crossbuild.models import Package, ProjectMetadata, Target


@pytest.mark.parametrize(
    "triple, expected",
    [
        ("armv7-linux-androideabi", True),
        ("arm-linux-androideabi", True),
        ("thumbv7neon-linux-androideabi", True),
        ("i686-linux-android", True),
        ("aarch64-linux-android", False),
        ("x86_64-linux-android", False),
        ("armv7-unknown-linux-gnueabihf", False),
    ],
)
def test_needs_docker_seccomp(triple, expected):
    assert Target(triple).needs_docker_seccomp is expected


def test_target_predicates():
    assert Target("armv7-linux-androideabi").is_android
    assert not Target("x86_64-unknown-linux-gnu").is_android
    assert str(Target("x86_64-unknown-linux-gnu")) == "x86_64-unknown-linux-gnu"


def test_path_dependencies_skip_members_and_registry_crates():
    metadata = ProjectMetadata(
        workspace_root=Path("/ws"),
        target_directory=Path("/ws/target"),
        packages=(
            Package(id="m", name="m", manifest_path=Path("/ws/Cargo.toml")),
            Package(id="p", name="p", manifest_path=Path("/deps/p/Cargo.toml")),
            Package(id="r", name="r", manifest_path=Path("/reg/r/Cargo.toml"), source="registry+x"),
        ),
        workspace_members=("m",),
    )

    assert list(metadata.path_dependencies()) == [Path("/deps/p")]
