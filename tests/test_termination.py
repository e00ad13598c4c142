import pytest

import crossbuild.termination as termination


@pytest.fixture(autouse=True)
def reset_state(monkeypatch):
    monkeypatch.setitem(termination._state, "terminated", False)
    monkeypatch.setattr(termination, "_tempdirs", [])


def test_tempdir_is_registered_and_removed():
    with termination.tempdir() as path:
        assert path.is_dir()
        assert termination.has_tempdirs()

    assert not path.exists()
    assert not termination.has_tempdirs()


def test_handler_cleans_tempdirs_and_exits(monkeypatch):
    exits = []
    monkeypatch.setattr(termination.os, "_exit", exits.append)

    with termination.tempdir() as path:
        termination.termination_handler()

        assert termination.is_terminated()
        assert not path.exists()
        assert exits == [130]


def test_second_signal_does_not_clean_again(monkeypatch):
    exits = []
    cleaned = []
    monkeypatch.setattr(termination.os, "_exit", exits.append)
    monkeypatch.setattr(termination, "clean_tempdirs", lambda: cleaned.append(True))

    with termination.tempdir():
        termination.termination_handler()
        termination.termination_handler()

    assert cleaned == [True]
    assert exits == [130, 130]
