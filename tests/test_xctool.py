"""Tests for the xctool build and test backends."""

import asyncio
from pathlib import Path

import pytest

from conftest import make_spec
from parasim.orchestrator.errors import BuildFailure, RunnerCrash, RunnerLaunchError
from parasim.orchestrator.types import DeviceInstance
from parasim.simulator.xctool import XctoolBuilder, XctoolRunner

TARGET = ["-workspace", "App.xcworkspace", "-scheme", "App"]


class FakeProcess:
    def __init__(self, returncode):
        self.returncode = returncode

    async def wait(self):
        return self.returncode


def _fake_exec(monkeypatch, returncode=0, error=None):
    launched = []

    async def create_subprocess_exec(*args, **kwargs):
        launched.append(list(args))
        if error is not None:
            raise error
        return FakeProcess(returncode)

    monkeypatch.setattr(asyncio, "create_subprocess_exec", create_subprocess_exec)
    return launched


def _instance():
    return DeviceInstance(device_id="AAAA", spec=make_spec("ci-iphone-15"))


def _run(runner, scope="", tmp=Path("/tmp/out")):
    return asyncio.run(
        runner.run(_instance(), scope, tmp / "a.log", tmp / "a.xml", tmp / "dd")
    )


def test_runner_command_with_scope():
    command = XctoolRunner(TARGET).command(
        "AAAA",
        "AppTests:LoginTests/testValid*",
        Path("out/a.log"),
        Path("out/a.xml"),
        Path("dd"),
    )

    assert command == [
        "xctool", *TARGET,
        "-sdk", "iphonesimulator",
        "-derivedDataPath", "dd",
        "-destination", "id=AAAA",
        "run-tests",
        "-only", "AppTests:LoginTests/testValid*",
        "-reporter", "plain:out/a.log",
        "-reporter", "junit:out/a.xml",
    ]


def test_runner_command_unscoped_omits_only():
    command = XctoolRunner(TARGET).command(
        "AAAA", "", Path("a.log"), Path("a.xml"), Path("dd")
    )
    assert "-only" not in command
    assert "run-tests" in command


def test_runner_returns_exit_status(monkeypatch):
    launched = _fake_exec(monkeypatch, returncode=1)
    assert _run(XctoolRunner(TARGET), "AppTests") == 1
    assert launched[0][0] == "xctool"


def test_runner_signal_is_a_crash(monkeypatch):
    _fake_exec(monkeypatch, returncode=-11)
    with pytest.raises(RunnerCrash) as excinfo:
        _run(XctoolRunner(TARGET))
    assert excinfo.value.signal == 11


def test_runner_launch_failure(monkeypatch):
    _fake_exec(monkeypatch, error=FileNotFoundError(2, "No such file", "xctool"))
    with pytest.raises(RunnerLaunchError) as excinfo:
        _run(XctoolRunner(TARGET))
    assert excinfo.value.device_id == "AAAA"


def test_builder_command(tmp_path):
    builder = XctoolBuilder(TARGET, tmp_path / "dd", tmp_path / "build.log")
    command = builder.command()

    assert command[: len(TARGET) + 1] == ["xctool", *TARGET]
    assert "build-tests" in command
    assert command[command.index("-derivedDataPath") + 1] == str(tmp_path / "dd")


def test_builder_returns_artifacts_dir(monkeypatch, tmp_path):
    _fake_exec(monkeypatch, returncode=0)
    builder = XctoolBuilder(TARGET, tmp_path / "dd", tmp_path / "logs" / "build.log")

    assert asyncio.run(builder.build()) == tmp_path / "dd"
    assert (tmp_path / "logs").is_dir()


def test_builder_failure(monkeypatch, tmp_path):
    _fake_exec(monkeypatch, returncode=65)
    builder = XctoolBuilder(TARGET, tmp_path / "dd", tmp_path / "build.log")

    with pytest.raises(BuildFailure) as excinfo:
        asyncio.run(builder.build())
    assert excinfo.value.exit_status == 65
    assert excinfo.value.log_path == tmp_path / "build.log"


def test_builder_missing_tool(monkeypatch, tmp_path):
    _fake_exec(monkeypatch, error=FileNotFoundError("xctool"))
    builder = XctoolBuilder(TARGET, tmp_path / "dd", tmp_path / "build.log")

    with pytest.raises(BuildFailure, match="cannot start xctool"):
        asyncio.run(builder.build())


def test_builder_unwritable_log_dir(monkeypatch, tmp_path):
    launched = _fake_exec(monkeypatch, returncode=0)
    blocker = tmp_path / "reports"
    blocker.write_text("not a directory")
    builder = XctoolBuilder(TARGET, tmp_path / "dd", blocker / "build.log")

    with pytest.raises(BuildFailure, match="cannot prepare"):
        asyncio.run(builder.build())
    assert launched == []
