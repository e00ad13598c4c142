from pathlib import Path

import pytest

from crossbuild.errors import CrossError
from crossbuild.services.toolchain import ToolchainService, parse_version_meta

RUSTC_VV = """rustc 1.70.0 (90c541806 2023-05-31)
binary: rustc
commit-hash: 90c541806f23a127002de5b4038be731ba1458ca
commit-date: 2023-05-31
host: x86_64-unknown-linux-gnu
release: 1.70.0
LLVM version: 16.0.2
"""


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


def test_parse_version_meta():
    meta = parse_version_meta(RUSTC_VV)

    assert meta.host == "x86_64-unknown-linux-gnu"
    assert meta.release == "1.70.0"
    assert meta.identifier == "90c541806f23a127002de5b4038be731ba1458ca"


def test_identifier_falls_back_to_version_without_commit():
    meta = parse_version_meta(RUSTC_VV.replace("90c541806f23a127002de5b4038be731ba1458ca", "unknown"))

    assert meta.commit_hash is None
    assert meta.identifier == "rustc-1.70.0-90c541806-2023-05-31"


def test_parse_version_meta_requires_host():
    with pytest.raises(CrossError, match="host triple"):
        parse_version_meta("rustc 1.70.0\nrelease: 1.70.0\n")


def test_toolchain_service_queries_rustc(fake_runner):
    fake_runner.respond("sysroot", stdout="/home/u/.rustup/toolchains/stable\n")
    fake_runner.respond("-vV", stdout=RUSTC_VV)
    service = ToolchainService(fake_runner, DummyLogger())

    assert service.sysroot() == Path("/home/u/.rustup/toolchains/stable")
    assert service.version_meta().host == "x86_64-unknown-linux-gnu"
    assert fake_runner.calls == [["rustc", "--print", "sysroot"], ["rustc", "-vV"]]


def test_empty_sysroot_is_an_error(fake_runner):
    with pytest.raises(CrossError, match="sysroot"):
        ToolchainService(fake_runner, DummyLogger()).sysroot()
