"""
Simulator device management via ``xcrun simctl``.

Implements the DeviceManager protocol on top of the CoreSimulator command-line
tool: create, boot, shut down, delete and list simulator devices.
"""

import json
from typing import Dict, List, Optional

from loguru import logger

from parasim.orchestrator.types import DeviceInstance, DeviceSpec, DeviceState
from parasim.simulator.errors import SimctlError
from parasim.simulator.process import CommandResult, run_command

# simctl "state" strings
SIMCTL_STATES: Dict[str, DeviceState] = {
    "Creating": DeviceState.CREATED,
    "Booting": DeviceState.BOOTING,
    "Booted": DeviceState.READY,
    "Shutting Down": DeviceState.SHUTTING_DOWN,
    "Shutdown": DeviceState.SHUTDOWN,
}


def parse_device_list(payload: str) -> List[DeviceInstance]:
    """
    Parse the output of ``simctl list devices -j``.

    Args:
        payload: JSON document printed by simctl.

    Returns:
        One DeviceInstance per listed device, with its mapped state.
    """
    data = json.loads(payload)
    devices: List[DeviceInstance] = []

    for runtime, entries in data.get("devices", {}).items():
        for entry in entries:
            raw_state = entry.get("state", "")
            state = SIMCTL_STATES.get(raw_state)
            if state is None:
                logger.debug(f"Unknown simctl state {raw_state!r} for {entry.get('udid')}")
                state = DeviceState.CREATED

            spec = DeviceSpec(
                name=entry["name"],
                device_type=entry.get("deviceTypeIdentifier") or "unknown",
                runtime=runtime,
            )
            devices.append(
                DeviceInstance(device_id=entry["udid"], spec=spec, state=state)
            )

    return devices


class SimctlDeviceManager:
    """
    DeviceManager backed by ``xcrun simctl``.

    Example:
        manager = SimctlDeviceManager()
        spec = DeviceSpec(
            name="ci-iphone-15",
            device_type="com.apple.CoreSimulator.SimDeviceType.iPhone-15",
            runtime="com.apple.CoreSimulator.SimRuntime.iOS-17-0",
        )
        instance = await manager.create(spec)
        await manager.boot(instance)
    """

    def __init__(self, xcrun_path: str = "xcrun", command_timeout_s: float = 120.0) -> None:
        """
        Initialize the simctl device manager.

        Args:
            xcrun_path: Path to xcrun executable (default: "xcrun").
            command_timeout_s: Timeout for a single simctl invocation.
        """
        self._xcrun_path = xcrun_path
        self._command_timeout_s = command_timeout_s

    async def _simctl(self, *args: str, check: bool = True) -> CommandResult:
        command = [self._xcrun_path, "simctl", *args]
        result = await run_command(*command, timeout=self._command_timeout_s)
        if check and result.returncode != 0:
            raise SimctlError(command, result.returncode, result.stderr)
        return result

    async def create(self, spec: DeviceSpec) -> DeviceInstance:
        result = await self._simctl("create", spec.name, spec.device_type, spec.runtime)
        udid = result.stdout.strip()
        if not udid:
            raise SimctlError(
                ["simctl", "create", spec.name], result.returncode, "no UDID printed"
            )
        logger.debug(f"simctl created {spec.name} as {udid}")
        return DeviceInstance(device_id=udid, spec=spec, state=DeviceState.CREATED)

    async def destroy(self, instance: DeviceInstance) -> None:
        await self._simctl("delete", instance.device_id)

    async def boot(self, instance: DeviceInstance) -> None:
        result = await self._simctl("boot", instance.device_id, check=False)
        if result.returncode != 0 and "current state: Booted" not in result.stderr:
            raise SimctlError(
                [self._xcrun_path, "simctl", "boot", instance.device_id],
                result.returncode,
                result.stderr,
            )

    async def shutdown(self, instance: DeviceInstance, force: bool = False) -> None:
        if force:
            # Simulator processes carry the UDID in their data path
            result = await run_command(
                "pkill", "-9", "-f", instance.device_id,
                timeout=self._command_timeout_s,
            )
            logger.debug(
                f"pkill for {instance.device_id} exited with {result.returncode}"
            )
            return

        result = await self._simctl("shutdown", instance.device_id, check=False)
        if result.returncode != 0 and "current state: Shutdown" not in result.stderr:
            raise SimctlError(
                [self._xcrun_path, "simctl", "shutdown", instance.device_id],
                result.returncode,
                result.stderr,
            )

    async def state(self, instance: DeviceInstance) -> DeviceState:
        device = await self._find(instance.device_id)
        if device is None:
            return DeviceState.DELETED
        return device.state

    async def list(self) -> List[DeviceInstance]:
        result = await self._simctl("list", "devices", "-j")
        return parse_device_list(result.stdout)

    async def _find(self, device_id: str) -> Optional[DeviceInstance]:
        for device in await self.list():
            if device.device_id == device_id:
                return device
        return None
