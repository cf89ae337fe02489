"""
Error definitions for the parallel test orchestrator.

Contains the exception taxonomy raised by device lifecycle management,
the shared build step and the per-device test runner.
"""

from pathlib import Path
from typing import Optional


class ParallelRunError(Exception):
    """Base exception for parallel run errors."""
    pass


class ProvisioningError(ParallelRunError):
    """Raised when a device cannot be created, reset or launched."""

    def __init__(self, device_name: str, message: str, cause: Exception = None):
        self.device_name = device_name
        self.cause = cause
        super().__init__(f"Provisioning failed for device {device_name}: {message}")


class DeviceStateTimeoutError(ParallelRunError, TimeoutError):
    """Raised when a device does not reach the awaited state in time."""

    def __init__(self, device_id: str, timeout_ms: int, state: Optional[str] = None):
        self.device_id = device_id
        self.timeout_ms = timeout_ms
        self.state = state
        msg = f"Device {device_id} state wait timed out after {timeout_ms}ms"
        if state:
            msg += f" (last observed state: {state})"
        super().__init__(msg)


class BootTimeoutError(DeviceStateTimeoutError):
    """Raised when a device never reaches Ready within the boot timeout."""
    pass


class BuildFailure(ParallelRunError):
    """Raised when the shared build step fails. Fatal to the whole dispatch."""

    def __init__(
        self,
        message: str,
        exit_status: Optional[int] = None,
        log_path: Optional[Path] = None,
    ):
        self.exit_status = exit_status
        self.log_path = log_path
        msg = f"Build failed: {message}"
        if log_path is not None:
            msg += f" (see {log_path})"
        super().__init__(msg)


class RunnerLaunchError(ParallelRunError):
    """Raised when the test runner process cannot be started."""

    def __init__(self, device_id: str, message: str, cause: Exception = None):
        self.device_id = device_id
        self.cause = cause
        super().__init__(f"Test runner could not start for device {device_id}: {message}")


class RunnerCrash(ParallelRunError):
    """Raised when the test runner process is terminated by a signal."""

    def __init__(self, device_id: str, signal: int):
        self.device_id = device_id
        self.signal = signal
        super().__init__(
            f"Test runner for device {device_id} terminated by signal {signal}"
        )


class TeardownError(ParallelRunError):
    """Raised when a device cannot be shut down or deleted. Never fatal."""

    def __init__(self, device_id: str, message: str, cause: Exception = None):
        self.device_id = device_id
        self.cause = cause
        super().__init__(f"Teardown failed for device {device_id}: {message}")


class InvalidScopeError(ValueError):
    """Raised when a test selector does not match the scope grammar."""

    def __init__(self, selector: str):
        self.selector = selector
        super().__init__(
            f"Invalid test selector: {selector!r} "
            f"(expected target, target:class or target:class/method)"
        )
