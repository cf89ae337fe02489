"""
Execution Unit.

Runs one device's full test pass: wait for the device to boot, invoke the
test runner against it, record the outcome, and tear the device down
unconditionally.
"""

import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from parasim.orchestrator.errors import RunnerCrash
from parasim.orchestrator.interfaces import TestRunner
from parasim.orchestrator.lifecycle import DeviceLifecycleManager
from parasim.orchestrator.scope import TestScope
from parasim.orchestrator.types import (
    DeviceInstance,
    DeviceState,
    ExecutionOutcome,
    UnitState,
)

# Synthesized exit status for units that never produced one
FAILURE_EXIT_STATUS = 1


class ExecutionUnit:
    """
    Per-device unit of work.

    State machine: PENDING → RUNNING → {COMPLETED | FAILED}. A unit owns its
    DeviceInstance exclusively and always tears it down once it reaches a
    terminal state, whatever happened before.

    Example:
        unit = ExecutionUnit(instance, lifecycle, runner, scope, log, report, build_dir)
        outcome = await unit.run()
    """

    def __init__(
        self,
        instance: DeviceInstance,
        lifecycle: DeviceLifecycleManager,
        test_runner: TestRunner,
        scope: TestScope,
        log_path: Path,
        report_path: Path,
        artifacts_dir: Path,
    ) -> None:
        self.instance = instance
        self.lifecycle = lifecycle
        self.test_runner = test_runner
        self.scope = scope
        self.log_path = log_path
        self.report_path = report_path
        self.artifacts_dir = artifacts_dir
        self.state = UnitState.PENDING
        self.exit_status: Optional[int] = None
        self.error: Optional[str] = None
        self.teardown_succeeded: Optional[bool] = None

    @property
    def device_id(self) -> str:
        return self.instance.device_id

    async def run(self) -> ExecutionOutcome:
        """
        Drive the device through its test pass and teardown.

        Boot timeouts, runner launch errors, crashes and any other error are
        recorded in the returned outcome; only cancellation propagates.

        Returns:
            The unit's ExecutionOutcome.
        """
        start_time = datetime.now()
        started = time.monotonic()

        try:
            await self._execute()
        except RunnerCrash as e:
            self._fail(e, 128 + e.signal)
        except Exception as e:
            self._fail(e, FAILURE_EXIT_STATUS)
        finally:
            if not self.state.is_terminal:
                # Cancellation is the only way to get here
                self.state = UnitState.FAILED
                self.exit_status = FAILURE_EXIT_STATUS
                self.error = self.error or "execution unit interrupted"
            self.teardown_succeeded = await self.lifecycle.teardown(self.instance)

        outcome = ExecutionOutcome(
            device_id=self.device_id,
            device_name=self.instance.name,
            state=self.state,
            exit_status=self.exit_status,
            log_path=self.log_path,
            report_path=self.report_path,
            duration_s=time.monotonic() - started,
            start_time=start_time,
            end_time=datetime.now(),
            error=self.error,
        )
        logger.info(
            f"Device {self.instance.name} finished: {self.state.value}, "
            f"exit status {self.exit_status} in {outcome.duration_s:.1f}s"
        )
        return outcome

    async def _execute(self) -> None:
        await self.lifecycle.wait_until_ready(self.instance)

        self.state = UnitState.RUNNING
        self.instance.state = DeviceState.RUNNING
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.report_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(
            f"Running tests on {self.instance.name} ({self.device_id}), scope: {self.scope}"
        )
        self.exit_status = await self.test_runner.run(
            self.instance,
            self.scope.expression,
            self.log_path,
            self.report_path,
            self.artifacts_dir,
        )
        self.state = UnitState.COMPLETED

    def _fail(self, error: Exception, exit_status: int) -> None:
        logger.error(f"Execution unit for {self.instance.name} failed: {error}")
        self.state = UnitState.FAILED
        self.exit_status = exit_status
        self.error = str(error)
