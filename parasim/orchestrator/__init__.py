"""
Parallel Test Orchestrator for parasim.

This module provides device lifecycle management, parallel dispatch of one
test execution per device, and aggregation of the per-device outcomes into a
single run result.
"""

from parasim.orchestrator.aggregator import ResultAggregator, combine_exit_statuses
from parasim.orchestrator.dispatcher import ParallelRunDispatcher, artifact_paths
from parasim.orchestrator.errors import (
    BootTimeoutError,
    BuildFailure,
    DeviceStateTimeoutError,
    InvalidScopeError,
    ParallelRunError,
    ProvisioningError,
    RunnerCrash,
    RunnerLaunchError,
    TeardownError,
)
from parasim.orchestrator.interfaces import BuildCoordinator, DeviceManager, TestRunner
from parasim.orchestrator.lifecycle import DeviceLifecycleManager
from parasim.orchestrator.runner import ParallelTestRun, run_tests
from parasim.orchestrator.scope import TestScope, validate_selector
from parasim.orchestrator.types import (
    AggregateResult,
    DeviceInstance,
    DeviceSpec,
    DeviceState,
    Dispatch,
    ExecutionOutcome,
    LifecycleConfig,
    UnitState,
)
from parasim.orchestrator.worker import ExecutionUnit

__all__ = [
    # Lifecycle
    "DeviceLifecycleManager",
    # Execution
    "ExecutionUnit",
    "ParallelRunDispatcher",
    "artifact_paths",
    "ResultAggregator",
    "combine_exit_statuses",
    # Runner
    "ParallelTestRun",
    "run_tests",
    # Scope
    "TestScope",
    "validate_selector",
    # Interfaces
    "BuildCoordinator",
    "DeviceManager",
    "TestRunner",
    # Types
    "AggregateResult",
    "DeviceInstance",
    "DeviceSpec",
    "DeviceState",
    "Dispatch",
    "ExecutionOutcome",
    "LifecycleConfig",
    "UnitState",
    # Errors
    "ParallelRunError",
    "ProvisioningError",
    "DeviceStateTimeoutError",
    "BootTimeoutError",
    "BuildFailure",
    "RunnerLaunchError",
    "RunnerCrash",
    "TeardownError",
    "InvalidScopeError",
]
