"""
Device Lifecycle Management.

Creates, boots, observes, shuts down, and deletes the ephemeral devices a
parallel run executes on. Every operation goes through a DeviceManager so the
orchestrator is independent of the simulator tooling in use.
"""

import asyncio
from typing import Callable, Optional

from loguru import logger

from parasim.orchestrator.errors import (
    BootTimeoutError,
    DeviceStateTimeoutError,
    ProvisioningError,
    TeardownError,
)
from parasim.orchestrator.interfaces import DeviceManager
from parasim.orchestrator.types import (
    DeviceInstance,
    DeviceSpec,
    DeviceState,
    LifecycleConfig,
)

StatePredicate = Callable[[DeviceState], bool]

_ACTIVE_STATES = (DeviceState.BOOTING, DeviceState.READY, DeviceState.RUNNING)


class DeviceLifecycleManager:
    """
    Device lifecycle manager.

    Drives each device through create → boot → shutdown → delete. Instances
    share no mutable state, so concurrent boots and teardowns of different
    devices are independent of each other.

    Example:
        lifecycle = DeviceLifecycleManager(SimctlDeviceManager())
        instance = await lifecycle.reset_device(spec)
        await lifecycle.launch(instance)
        await lifecycle.wait_until_ready(instance)
        ...
        await lifecycle.teardown(instance)
    """

    def __init__(
        self,
        manager: DeviceManager,
        config: Optional[LifecycleConfig] = None,
    ) -> None:
        """
        Initialize the lifecycle manager.

        Args:
            manager: Device management backend.
            config: Lifecycle timing configuration. Uses defaults if not provided.
        """
        self.manager = manager
        self.config = config or LifecycleConfig()

    async def reset_device(self, spec: DeviceSpec) -> DeviceInstance:
        """
        Provision a fresh device for ``spec``.

        Every existing device named ``spec.name`` is deleted first, so the run
        always starts from a clean slate.

        Args:
            spec: The device configuration to provision.

        Returns:
            The newly created DeviceInstance.

        Raises:
            ProvisioningError: If stale devices cannot be removed or the
                platform cannot create the requested type/runtime combination.
        """
        try:
            existing = [d for d in await self.manager.list() if d.name == spec.name]
            for stale in existing:
                logger.info(f"Deleting stale device {stale.device_id} ({spec.name})")
                if stale.state not in (DeviceState.SHUTDOWN, DeviceState.CREATED):
                    await self.manager.shutdown(stale)
                    await self.wait_for_state(
                        stale,
                        lambda s: s in (DeviceState.SHUTDOWN, DeviceState.DELETED),
                        self.config.shutdown_timeout_ms,
                    )
                await self.manager.destroy(stale)

            instance = await self.manager.create(spec)
        except ProvisioningError:
            raise
        except Exception as e:
            raise ProvisioningError(spec.name, str(e), cause=e)

        instance.state = DeviceState.CREATED
        logger.info(
            f"Provisioned device {instance.device_id} "
            f"({spec.name}, {spec.device_type}, {spec.runtime})"
        )
        return instance

    async def launch(self, instance: DeviceInstance) -> None:
        """
        Begin booting a device without waiting for it to become ready.

        Raises:
            ProvisioningError: If the boot request is rejected.
        """
        try:
            await self.manager.boot(instance)
        except Exception as e:
            raise ProvisioningError(instance.name, f"boot failed: {e}", cause=e)

        instance.state = DeviceState.BOOTING
        logger.info(f"Launched device {instance.device_id} ({instance.name})")

    async def wait_for_state(
        self,
        instance: DeviceInstance,
        predicate: StatePredicate,
        timeout_ms: int,
    ) -> DeviceState:
        """
        Block until ``predicate`` holds for the device's observed state.

        Args:
            instance: The device to observe.
            predicate: Condition on the observed DeviceState.
            timeout_ms: Maximum time to wait in milliseconds. Must be positive.

        Returns:
            The state that satisfied the predicate.

        Raises:
            DeviceStateTimeoutError: If the predicate does not hold within timeout.
            ValueError: If timeout_ms is not positive.
        """
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000.0
        poll_interval = self.config.poll_interval_ms / 1000.0
        observed: Optional[DeviceState] = None

        while True:
            observed = await self.manager.state(instance)
            if observed != instance.state:
                logger.debug(
                    f"Device {instance.device_id}: {instance.state.value} -> {observed.value}"
                )
            if observed != DeviceState.READY or instance.state != DeviceState.RUNNING:
                instance.state = observed
            if predicate(observed):
                return observed

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise DeviceStateTimeoutError(
                    instance.device_id, timeout_ms, observed.value
                )
            await asyncio.sleep(min(poll_interval, remaining))

    async def wait_until_ready(self, instance: DeviceInstance) -> None:
        """
        Wait for a launched device to finish booting.

        Raises:
            BootTimeoutError: If the device is not Ready within the boot timeout.
        """
        try:
            await self.wait_for_state(
                instance,
                lambda s: s == DeviceState.READY,
                self.config.boot_timeout_ms,
            )
        except DeviceStateTimeoutError as e:
            raise BootTimeoutError(instance.device_id, e.timeout_ms, e.state)
        logger.info(f"Device {instance.device_id} ({instance.name}) is ready")

    async def kill(self, instance: DeviceInstance) -> None:
        """
        Shut a device down, gracefully first and forcibly as a fallback.

        The forced shutdown is issued when the graceful request is rejected or
        the device is still active after the grace period.
        """
        try:
            await self.manager.shutdown(instance)
            instance.state = DeviceState.SHUTTING_DOWN
            await self.wait_for_state(
                instance,
                lambda s: s not in _ACTIVE_STATES,
                self.config.shutdown_grace_ms,
            )
            return
        except DeviceStateTimeoutError:
            logger.warning(
                f"Device {instance.device_id} still active after "
                f"{self.config.shutdown_grace_ms}ms, forcing shutdown"
            )
        except Exception as e:
            logger.warning(
                f"Graceful shutdown of {instance.device_id} failed ({e}), forcing shutdown"
            )

        await self.manager.shutdown(instance, force=True)
        instance.state = DeviceState.SHUTTING_DOWN

    async def delete(self, instance: DeviceInstance) -> None:
        """
        Delete a device that has been observed in the Shutdown state.

        Raises:
            TeardownError: If the device was not observed shut down, or the
                backend fails to delete it.
        """
        if instance.state != DeviceState.SHUTDOWN:
            raise TeardownError(
                instance.device_id,
                f"cannot delete a device in state {instance.state.value}",
            )
        try:
            await self.manager.destroy(instance)
        except Exception as e:
            raise TeardownError(instance.device_id, f"delete failed: {e}", cause=e)

        instance.state = DeviceState.DELETED
        logger.info(f"Deleted device {instance.device_id} ({instance.name})")

    async def teardown(self, instance: DeviceInstance) -> bool:
        """
        Shut down, await Shutdown, then delete a device.

        Best-effort: failures are logged and swallowed, never retried.

        Returns:
            True if the device was deleted, False if it may have leaked.
        """
        logger.info(f"Tearing down device {instance.device_id} ({instance.name})")
        try:
            await self.kill(instance)
            await self.wait_for_state(
                instance,
                lambda s: s == DeviceState.SHUTDOWN,
                self.config.shutdown_timeout_ms,
            )
            await self.delete(instance)
            return True
        except TeardownError as e:
            logger.warning(str(e))
        except Exception as e:
            logger.warning(str(TeardownError(instance.device_id, str(e), cause=e)))
        return False
