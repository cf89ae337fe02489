"""
Collaborator interfaces for the parallel test orchestrator.

The orchestrator only talks to devices, the build toolchain and the test
runner through these protocols, so any implementation (``xcrun simctl`` and
``xctool`` in production, in-memory fakes in tests) can be substituted.
"""

from pathlib import Path
from typing import List, Protocol, runtime_checkable

from parasim.orchestrator.types import DeviceInstance, DeviceSpec, DeviceState


@runtime_checkable
class DeviceManager(Protocol):
    """Device management subsystem."""

    async def create(self, spec: DeviceSpec) -> DeviceInstance:
        """Provision a new device for ``spec``."""
        ...

    async def destroy(self, instance: DeviceInstance) -> None:
        """Delete a device permanently."""
        ...

    async def boot(self, instance: DeviceInstance) -> None:
        """Start booting a device. Returns once the boot is requested."""
        ...

    async def shutdown(self, instance: DeviceInstance, force: bool = False) -> None:
        """Request a shutdown. ``force`` kills the device processes."""
        ...

    async def state(self, instance: DeviceInstance) -> DeviceState:
        """Report the current state; ``DELETED`` when the device is gone."""
        ...

    async def list(self) -> List[DeviceInstance]:
        """List every device known to the subsystem."""
        ...


@runtime_checkable
class BuildCoordinator(Protocol):
    """Build toolchain producing the shared test artifacts."""

    async def build(self) -> Path:
        """
        Build the test artifacts once.

        Returns:
            The artifact directory, read-only from then on.

        Raises:
            BuildFailure: If the build does not succeed.
        """
        ...


@runtime_checkable
class TestRunner(Protocol):
    """External test runner process."""

    async def run(
        self,
        instance: DeviceInstance,
        scope_expression: str,
        log_path: Path,
        report_path: Path,
        artifacts_dir: Path,
    ) -> int:
        """
        Run the test suite against one device.

        Returns:
            The runner's process exit status.

        Raises:
            RunnerLaunchError: If the process cannot be started.
            RunnerCrash: If the process is terminated by a signal.
        """
        ...
