"""
parasim - parallel simulator test runner

Runs a test suite concurrently on several ephemeral simulator devices of one
host: devices are provisioned fresh, the tests are built once, every device
runs the suite in parallel, and the outcomes are merged into one exit status.
"""

from .orchestrator import (
    AggregateResult,
    DeviceSpec,
    ExecutionOutcome,
    ParallelTestRun,
    TestScope,
    run_tests,
)
from .config import ConfigError, RunConfig, load_config

__version__ = "0.1.0"

__all__ = [
    "AggregateResult",
    "DeviceSpec",
    "ExecutionOutcome",
    "ParallelTestRun",
    "TestScope",
    "run_tests",
    "ConfigError",
    "RunConfig",
    "load_config",
]
