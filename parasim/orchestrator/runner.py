"""
Parallel Test Run.

Coordinates the whole run: provision and launch every configured device,
build the tests once, dispatch one execution unit per device, and aggregate
their outcomes into a single result.
"""

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Union

from loguru import logger

from parasim.orchestrator.aggregator import ResultAggregator
from parasim.orchestrator.dispatcher import ParallelRunDispatcher
from parasim.orchestrator.errors import BuildFailure, ProvisioningError
from parasim.orchestrator.interfaces import BuildCoordinator, DeviceManager, TestRunner
from parasim.orchestrator.lifecycle import DeviceLifecycleManager
from parasim.orchestrator.scope import TestScope
from parasim.orchestrator.types import (
    AggregateResult,
    DeviceInstance,
    DeviceSpec,
    ExecutionOutcome,
    UnitState,
)
from parasim.orchestrator.worker import FAILURE_EXIT_STATUS

if TYPE_CHECKING:
    from parasim.config import RunConfig

Provisioned = Union[DeviceInstance, ExecutionOutcome]


class ParallelTestRun:
    """
    High-level runner executing the test suite on every configured device.

    Features:
    - Clean-slate device provisioning (stale devices are deleted first)
    - Single shared build, overlapping with device boot
    - One concurrent execution unit per device, isolated from each other
    - Guaranteed teardown of every launched device
    - Combined exit status and per-device artifacts

    Example:
        config = load_config("parasim.toml")
        run = ParallelTestRun(config)
        result = await run.run(TestScope.from_selectors(["AppTests:LoginTests"]))
        print(result.summary())
    """

    def __init__(
        self,
        config: "RunConfig",
        manager: Optional[DeviceManager] = None,
        builder: Optional[BuildCoordinator] = None,
        test_runner: Optional[TestRunner] = None,
    ) -> None:
        """
        Initialize the run.

        Args:
            config: Run configuration.
            manager: Device backend. Defaults to ``xcrun simctl``.
            builder: Build coordinator. Defaults to ``xctool build-tests``.
            test_runner: Test runner. Defaults to ``xctool run-tests``.
        """
        self.config = config

        if manager is None:
            from parasim.simulator.simctl import SimctlDeviceManager
            manager = SimctlDeviceManager(xcrun_path=config.xcrun_path)
        if builder is None:
            from parasim.simulator.xctool import XctoolBuilder
            builder = XctoolBuilder.from_config(config)
        if test_runner is None:
            from parasim.simulator.xctool import XctoolRunner
            test_runner = XctoolRunner.from_config(config)

        self.builder = builder
        self.lifecycle = DeviceLifecycleManager(
            manager, config.lifecycle.to_lifecycle_config()
        )
        self.dispatcher = ParallelRunDispatcher(
            self.lifecycle, test_runner, config.output_dir
        )
        self.aggregator = ResultAggregator()

    async def run(
        self,
        scope: Optional[TestScope] = None,
        on_unit_complete: Optional[Callable[[ExecutionOutcome], None]] = None,
    ) -> AggregateResult:
        """
        Execute the run.

        Args:
            scope: Test scope for every device. Defaults to all tests.
            on_unit_complete: Optional callback for each finished device.

        Returns:
            AggregateResult with one outcome per configured device.

        Raises:
            BuildFailure: If the shared build fails. Every launched device is
                torn down before it propagates. Any other error or
                cancellation escaping the build step propagates unchanged
                after the same teardown.
        """
        if scope is None:
            scope = TestScope.unscoped()
        specs = self.config.devices
        logger.info(f"Starting parallel run on {len(specs)} devices, scope: {scope}")

        provisioned = await asyncio.gather(*(self._provision(spec) for spec in specs))
        instances = [p for p in provisioned if isinstance(p, DeviceInstance)]
        failures = [p for p in provisioned if isinstance(p, ExecutionOutcome)]

        try:
            artifacts_dir = await self.builder.build()
        except BaseException as e:
            reason = e if isinstance(e, BuildFailure) else f"Build step raised {e!r}"
            logger.error(f"{reason}; tearing down {len(instances)} launched devices")
            await asyncio.gather(*(self.lifecycle.teardown(i) for i in instances))
            raise

        dispatch = self.dispatcher.dispatch(
            instances, scope, artifacts_dir, on_unit_complete
        )
        return await self.aggregator.join(
            dispatch,
            provisioning_failures=failures,
            order=[spec.name for spec in specs],
        )

    async def _provision(self, spec: DeviceSpec) -> Provisioned:
        """Reset and launch one device, or describe why it could not be."""
        start_time = datetime.now()
        try:
            instance = await self.lifecycle.reset_device(spec)
        except ProvisioningError as e:
            logger.error(str(e))
            return self._provisioning_failure(spec, None, e, start_time)

        try:
            await self.lifecycle.launch(instance)
        except ProvisioningError as e:
            logger.error(str(e))
            await self.lifecycle.teardown(instance)
            return self._provisioning_failure(spec, instance.device_id, e, start_time)

        return instance

    def _provisioning_failure(
        self,
        spec: DeviceSpec,
        device_id: Optional[str],
        error: Exception,
        start_time: datetime,
    ) -> ExecutionOutcome:
        end_time = datetime.now()
        return ExecutionOutcome(
            device_id=device_id,
            device_name=spec.name,
            state=UnitState.FAILED,
            exit_status=FAILURE_EXIT_STATUS,
            log_path=None,
            report_path=None,
            duration_s=(end_time - start_time).total_seconds(),
            start_time=start_time,
            end_time=end_time,
            error=str(error),
        )


async def run_tests(
    config: "RunConfig",
    selectors: Optional[Iterable[str]] = None,
    manager: Optional[DeviceManager] = None,
    builder: Optional[BuildCoordinator] = None,
    test_runner: Optional[TestRunner] = None,
) -> AggregateResult:
    """
    Convenience function to run the configured devices in parallel.

    Args:
        config: Run configuration.
        selectors: Test selectors, each possibly comma-separated.
        manager: Optional device backend override.
        builder: Optional build coordinator override.
        test_runner: Optional test runner override.

    Returns:
        AggregateResult of the run.

    Example:
        result = await run_tests(load_config(), ["AppTests:LoginTests/testValid*"])
        sys.exit(result.exit_status)
    """
    run = ParallelTestRun(config, manager, builder, test_runner)
    return await run.run(TestScope.from_selectors(selectors))
