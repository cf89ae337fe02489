"""Shared fakes for the orchestrator tests."""

from __future__ import annotations

import asyncio
import dataclasses
from pathlib import Path

import pytest

from parasim.config import RunConfig
from parasim.orchestrator.errors import BuildFailure, RunnerCrash, RunnerLaunchError
from parasim.orchestrator.types import DeviceInstance, DeviceSpec, DeviceState, LifecycleConfig


def make_spec(name: str) -> DeviceSpec:
    return DeviceSpec(
        name=name,
        device_type="com.apple.CoreSimulator.SimDeviceType.iPhone-15",
        runtime="com.apple.CoreSimulator.SimRuntime.iOS-17-0",
    )


def fast_lifecycle(**overrides) -> LifecycleConfig:
    values = dict(
        boot_timeout_ms=2000,
        shutdown_timeout_ms=2000,
        shutdown_grace_ms=500,
        poll_interval_ms=1,
    )
    values.update(overrides)
    return LifecycleConfig(**values)


def make_config(tmp_path: Path, names: list[str], **lifecycle) -> RunConfig:
    settings = dataclasses.asdict(fast_lifecycle(**lifecycle))
    return RunConfig(
        workspace="App.xcworkspace",
        scheme="App",
        build_dir=tmp_path / "DerivedData",
        output_dir=tmp_path / "reports",
        lifecycle=settings,
        devices=[make_spec(n) for n in names],
    )


class FakeDeviceManager:
    """In-memory DeviceManager. Boots take ``boot_polls`` state queries."""

    def __init__(self, events: list | None = None, boot_polls: int = 2) -> None:
        self.events = events if events is not None else []
        self.boot_polls = boot_polls
        self.devices: dict[str, DeviceInstance] = {}
        self.polls: dict[str, int] = {}
        self.fail_create: set[str] = set()
        self.fail_boot: set[str] = set()
        self.fail_destroy: set[str] = set()
        self.never_ready: set[str] = set()
        self.ignore_shutdown: set[str] = set()
        self._counter = 0

    def seed(self, spec: DeviceSpec, state: DeviceState = DeviceState.SHUTDOWN) -> str:
        self._counter += 1
        udid = f"STALE-{self._counter}"
        self.devices[udid] = DeviceInstance(device_id=udid, spec=spec, state=state)
        return udid

    def calls(self, op: str) -> list[str]:
        return [name for kind, name in self.events if kind == op]

    async def create(self, spec: DeviceSpec) -> DeviceInstance:
        await asyncio.sleep(0)
        if spec.name in self.fail_create:
            raise RuntimeError(f"unsupported runtime for {spec.name}")
        self._counter += 1
        udid = f"UDID-{self._counter}"
        self.devices[udid] = DeviceInstance(
            device_id=udid, spec=spec, state=DeviceState.SHUTDOWN
        )
        self.events.append(("create", spec.name))
        return DeviceInstance(device_id=udid, spec=spec)

    async def destroy(self, instance: DeviceInstance) -> None:
        await asyncio.sleep(0)
        if instance.name in self.fail_destroy:
            raise RuntimeError("device busy")
        self.devices.pop(instance.device_id, None)
        self.events.append(("destroy", instance.name))

    async def boot(self, instance: DeviceInstance) -> None:
        await asyncio.sleep(0)
        if instance.name in self.fail_boot:
            raise RuntimeError("boot rejected")
        self.devices[instance.device_id].state = DeviceState.BOOTING
        self.polls[instance.device_id] = 0
        self.events.append(("boot", instance.name))

    async def shutdown(self, instance: DeviceInstance, force: bool = False) -> None:
        await asyncio.sleep(0)
        self.events.append(("force_shutdown" if force else "shutdown", instance.name))
        device = self.devices.get(instance.device_id)
        if device is None:
            return
        if force or instance.name not in self.ignore_shutdown:
            if device.state != DeviceState.SHUTDOWN:
                device.state = DeviceState.SHUTTING_DOWN

    async def state(self, instance: DeviceInstance) -> DeviceState:
        await asyncio.sleep(0)
        device = self.devices.get(instance.device_id)
        if device is None:
            return DeviceState.DELETED
        if device.state == DeviceState.BOOTING and instance.name not in self.never_ready:
            self.polls[instance.device_id] += 1
            if self.polls[instance.device_id] >= self.boot_polls:
                device.state = DeviceState.READY
        elif device.state == DeviceState.SHUTTING_DOWN:
            device.state = DeviceState.SHUTDOWN
            return DeviceState.SHUTTING_DOWN
        return device.state

    async def list(self) -> list[DeviceInstance]:
        await asyncio.sleep(0)
        return [
            DeviceInstance(device_id=d.device_id, spec=d.spec, state=d.state)
            for d in self.devices.values()
        ]


class FakeBuilder:
    def __init__(self, artifacts_dir: Path, fail: bool = False, events: list | None = None):
        self.artifacts_dir = artifacts_dir
        self.fail = fail
        self.events = events if events is not None else []
        self.calls = 0

    async def build(self) -> Path:
        self.calls += 1
        self.events.append(("build", ""))
        await asyncio.sleep(0.01)
        if self.fail:
            raise BuildFailure("compile error", exit_status=65)
        return self.artifacts_dir


class FakeRunner:
    """
    TestRunner scripted per device name.

    ``script[name]`` is ``(delay_s, result)`` where result is an exit status
    or one of "crash" / "launch".
    """

    def __init__(self, script: dict | None = None, events: list | None = None):
        self.script = script or {}
        self.events = events if events is not None else []
        self.invocations: list[dict] = []

    async def run(self, instance, scope_expression, log_path, report_path, artifacts_dir):
        self.invocations.append(
            dict(
                device_id=instance.device_id,
                name=instance.name,
                state=instance.state,
                scope=scope_expression,
                log_path=log_path,
                report_path=report_path,
                artifacts_dir=artifacts_dir,
            )
        )
        delay, result = self.script.get(instance.name, (0.0, 0))
        if result == "launch":
            raise RunnerLaunchError(instance.device_id, "xctool: command not found")
        self.events.append(("run_start", instance.name))
        await asyncio.sleep(delay)
        self.events.append(("run_end", instance.name))
        if result == "crash":
            raise RunnerCrash(instance.device_id, 9)
        return result


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def manager(events) -> FakeDeviceManager:
    return FakeDeviceManager(events)
