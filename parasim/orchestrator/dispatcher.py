"""
Parallel Run Dispatcher.

Starts one execution unit per device, all at once, and hands back a Dispatch
handle the ResultAggregator joins on.
"""

import asyncio
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

from loguru import logger

from parasim.orchestrator.interfaces import TestRunner
from parasim.orchestrator.lifecycle import DeviceLifecycleManager
from parasim.orchestrator.scope import TestScope
from parasim.orchestrator.types import DeviceInstance, Dispatch, ExecutionOutcome
from parasim.orchestrator.worker import ExecutionUnit

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def artifact_paths(device_name: str, output_dir: Path) -> Tuple[Path, Path]:
    """
    Deterministic log and report paths for a device.

    Returns:
        ``(<output_dir>/<name>.log, <output_dir>/<name>.xml)`` with unsafe
        characters in the device name replaced by underscores.
    """
    slug = _UNSAFE_CHARS.sub("_", device_name)
    return output_dir / f"{slug}.log", output_dir / f"{slug}.xml"


class ParallelRunDispatcher:
    """
    Spawns exactly one concurrent ExecutionUnit per device.

    No throttling or queueing: all units run simultaneously. Units are
    isolated from each other, so a fault in one never cancels its siblings.
    """

    def __init__(
        self,
        lifecycle: DeviceLifecycleManager,
        test_runner: TestRunner,
        output_dir: Path,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            lifecycle: Lifecycle manager shared by every unit.
            test_runner: Test runner invoked once per device.
            output_dir: Directory receiving per-device log and report files.
        """
        self.lifecycle = lifecycle
        self.test_runner = test_runner
        self.output_dir = Path(output_dir)

    def dispatch(
        self,
        instances: Sequence[DeviceInstance],
        scope: TestScope,
        artifacts_dir: Path,
        on_unit_complete: Optional[Callable[[ExecutionOutcome], None]] = None,
    ) -> Dispatch:
        """
        Start every unit concurrently.

        Must be called from a running event loop.

        Args:
            instances: Launched devices, one unit each.
            scope: Test scope applied identically to every unit.
            artifacts_dir: Shared, read-only build artifact directory.
            on_unit_complete: Optional callback invoked once per finished unit.

        Returns:
            Dispatch handle holding one task per device, in input order.

        Raises:
            ValueError: If two instances share a device identifier.
        """
        device_ids = [i.device_id for i in instances]
        if len(set(device_ids)) != len(device_ids):
            raise ValueError(f"Duplicate device identifiers in dispatch: {device_ids}")

        start_time = datetime.now()
        started_at = time.monotonic()

        tasks = []
        for instance in instances:
            log_path, report_path = artifact_paths(instance.name, self.output_dir)
            unit = ExecutionUnit(
                instance=instance,
                lifecycle=self.lifecycle,
                test_runner=self.test_runner,
                scope=scope,
                log_path=log_path,
                report_path=report_path,
                artifacts_dir=artifacts_dir,
            )
            tasks.append(
                asyncio.create_task(
                    self._run_unit(unit, on_unit_complete),
                    name=f"unit-{instance.name}",
                )
            )

        logger.info(f"Dispatched {len(tasks)} execution units, scope: {scope}")
        return Dispatch(
            tasks=tasks,
            instances=list(instances),
            start_time=start_time,
            started_at=started_at,
        )

    async def _run_unit(
        self,
        unit: ExecutionUnit,
        on_unit_complete: Optional[Callable[[ExecutionOutcome], None]],
    ) -> ExecutionOutcome:
        outcome = await unit.run()
        if on_unit_complete:
            try:
                on_unit_complete(outcome)
            except Exception as e:
                logger.warning(f"on_unit_complete callback failed: {e}")
        return outcome
