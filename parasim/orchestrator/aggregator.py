"""
Result Aggregator.

Joins every dispatched execution unit and merges their outcomes into one
AggregateResult.
"""

import asyncio
import time
from datetime import datetime
from functools import reduce
from operator import or_
from typing import List, Optional, Sequence

from loguru import logger

from parasim.orchestrator.types import (
    AggregateResult,
    Dispatch,
    ExecutionOutcome,
    UnitState,
)
from parasim.orchestrator.worker import FAILURE_EXIT_STATUS


def combine_exit_statuses(statuses: Sequence[int]) -> int:
    """Bitwise OR of every exit status; zero only if all are zero."""
    return reduce(or_, statuses, 0)


class ResultAggregator:
    """
    Collects execution outcomes behind a join-all barrier.

    Each unit reports into its own task slot; the combined result is only
    computed once every slot is filled.
    """

    async def join(
        self,
        dispatch: Dispatch,
        provisioning_failures: Sequence[ExecutionOutcome] = (),
        order: Optional[Sequence[str]] = None,
    ) -> AggregateResult:
        """
        Wait for every unit and build the combined result.

        Args:
            dispatch: Handle returned by ParallelRunDispatcher.dispatch().
            provisioning_failures: Outcomes of devices that never got a unit.
            order: Device names in configured order; outcomes are sorted by it.

        Returns:
            AggregateResult with exactly one outcome per device.
        """
        results = await asyncio.gather(*dispatch.tasks, return_exceptions=True)
        elapsed_s = time.monotonic() - dispatch.started_at if dispatch.tasks else 0.0
        end_time = datetime.now()

        outcomes: List[ExecutionOutcome] = []
        for instance, result in zip(dispatch.instances, results):
            if isinstance(result, BaseException):
                # ExecutionUnit.run() records its own errors; only a bug or
                # cancellation leaves an exception in the slot
                logger.error(f"Execution unit for {instance.name} escaped: {result!r}")
                result = ExecutionOutcome(
                    device_id=instance.device_id,
                    device_name=instance.name,
                    state=UnitState.FAILED,
                    exit_status=FAILURE_EXIT_STATUS,
                    log_path=None,
                    report_path=None,
                    duration_s=0.0,
                    start_time=dispatch.start_time,
                    end_time=end_time,
                    error=repr(result),
                )
            outcomes.append(result)

        outcomes.extend(provisioning_failures)
        if order is not None:
            position = {name: index for index, name in enumerate(order)}
            outcomes.sort(key=lambda o: position.get(o.device_name, len(position)))

        aggregate = AggregateResult(
            exit_status=combine_exit_statuses([o.exit_status for o in outcomes]),
            elapsed_s=elapsed_s,
            outcomes=outcomes,
            start_time=dispatch.start_time,
            end_time=end_time,
        )
        logger.info(f"Run finished: {aggregate.summary()}")
        return aggregate
