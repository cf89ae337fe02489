"""Tests for the simctl device manager."""

import asyncio
import json

import pytest

from conftest import make_spec
from parasim.orchestrator.types import DeviceInstance, DeviceState
from parasim.simulator import simctl
from parasim.simulator.errors import SimctlError
from parasim.simulator.process import CommandResult
from parasim.simulator.simctl import SimctlDeviceManager, parse_device_list

RUNTIME = "com.apple.CoreSimulator.SimRuntime.iOS-17-0"

LISTING = json.dumps(
    {
        "devices": {
            RUNTIME: [
                {
                    "udid": "AAAA",
                    "name": "ci-iphone-15",
                    "state": "Booted",
                    "isAvailable": True,
                    "deviceTypeIdentifier": "com.apple.CoreSimulator.SimDeviceType.iPhone-15",
                },
                {"udid": "BBBB", "name": "ci-ipad", "state": "Shutting Down"},
            ],
            "com.apple.CoreSimulator.SimRuntime.iOS-16-4": [
                {"udid": "CCCC", "name": "old", "state": "Shutdown"},
            ],
        }
    }
)


class ScriptedCommands:
    """Stands in for run_command, answering by subcommand."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.commands = []

    async def __call__(self, *args, timeout=None):
        self.commands.append(list(args))
        key = args[2] if args[0] == "xcrun" else args[0]
        return self.responses.get(key, CommandResult(0, "", ""))


@pytest.fixture
def commands(monkeypatch):
    scripted = ScriptedCommands({"list": CommandResult(0, LISTING, "")})
    monkeypatch.setattr(simctl, "run_command", scripted)
    return scripted


def _instance(udid="AAAA"):
    return DeviceInstance(device_id=udid, spec=make_spec("ci-iphone-15"))


def test_parse_device_list_maps_states():
    devices = parse_device_list(LISTING)

    assert [(d.device_id, d.state) for d in devices] == [
        ("AAAA", DeviceState.READY),
        ("BBBB", DeviceState.SHUTTING_DOWN),
        ("CCCC", DeviceState.SHUTDOWN),
    ]
    assert devices[0].spec.runtime == RUNTIME
    assert devices[1].spec.device_type == "unknown"


def test_create_returns_printed_udid(commands):
    commands.responses["create"] = CommandResult(0, "DDDD\n", "")
    spec = make_spec("ci-iphone-15")

    instance = asyncio.run(SimctlDeviceManager().create(spec))

    assert instance.device_id == "DDDD"
    assert instance.state == DeviceState.CREATED
    assert commands.commands[-1] == [
        "xcrun", "simctl", "create", spec.name, spec.device_type, spec.runtime,
    ]


def test_create_failure_raises_simctl_error(commands):
    commands.responses["create"] = CommandResult(
        161, "", "Invalid runtime: com.apple.CoreSimulator.SimRuntime.iOS-99"
    )
    with pytest.raises(SimctlError) as excinfo:
        asyncio.run(SimctlDeviceManager().create(make_spec("x")))
    assert excinfo.value.returncode == 161
    assert "Invalid runtime" in str(excinfo.value)


def test_state_of_listed_and_missing_devices(commands):
    manager = SimctlDeviceManager()
    assert asyncio.run(manager.state(_instance("AAAA"))) == DeviceState.READY
    assert asyncio.run(manager.state(_instance("ZZZZ"))) == DeviceState.DELETED


def test_boot_tolerates_already_booted(commands):
    commands.responses["boot"] = CommandResult(
        149, "", "Unable to boot device in current state: Booted"
    )
    asyncio.run(SimctlDeviceManager().boot(_instance()))


def test_boot_failure_raises(commands):
    commands.responses["boot"] = CommandResult(1, "", "Invalid device")
    with pytest.raises(SimctlError):
        asyncio.run(SimctlDeviceManager().boot(_instance()))


def test_graceful_and_forced_shutdown(commands):
    manager = SimctlDeviceManager()
    asyncio.run(manager.shutdown(_instance()))
    asyncio.run(manager.shutdown(_instance(), force=True))

    assert commands.commands[0] == ["xcrun", "simctl", "shutdown", "AAAA"]
    assert commands.commands[1] == ["pkill", "-9", "-f", "AAAA"]


def test_shutdown_tolerates_already_shut_down(commands):
    commands.responses["shutdown"] = CommandResult(
        149, "", "Unable to shutdown device in current state: Shutdown"
    )
    asyncio.run(SimctlDeviceManager().shutdown(_instance()))


def test_destroy_deletes_by_udid(commands):
    asyncio.run(SimctlDeviceManager(xcrun_path="/usr/bin/xcrun").destroy(_instance()))
    assert commands.commands == [["/usr/bin/xcrun", "simctl", "delete", "AAAA"]]
