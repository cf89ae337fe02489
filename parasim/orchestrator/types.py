"""
Type definitions for the parallel test orchestrator.

Contains enums, dataclasses, and models used throughout the orchestrator module.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class DeviceState(str, Enum):
    """Device lifecycle state enumeration."""
    CREATED = "created"               # Provisioned, never booted
    BOOTING = "booting"
    READY = "ready"                   # Booted and accepting test runs
    RUNNING = "running"               # A test runner targets the device
    SHUTTING_DOWN = "shutting_down"
    SHUTDOWN = "shutdown"
    DELETED = "deleted"


class UnitState(str, Enum):
    """Execution unit state enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"           # Runner exited, any exit status
    FAILED = "failed"                 # Runner never started or crashed

    @property
    def is_terminal(self) -> bool:
        return self in (UnitState.COMPLETED, UnitState.FAILED)


class DeviceSpec(BaseModel):
    """Target configuration of one simulator device."""

    model_config = ConfigDict(frozen=True)

    name: str
    device_type: str
    runtime: str

    @field_validator("name", "device_type", "runtime")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


@dataclass
class DeviceInstance:
    """A concrete ephemeral device bound to a DeviceSpec."""
    device_id: str                                   # simulator UDID
    spec: DeviceSpec
    state: DeviceState = DeviceState.CREATED
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def name(self) -> str:
        return self.spec.name


@dataclass
class ExecutionOutcome:
    """
    Outcome of one device's test pass.

    ``exit_status`` is the runner's process exit status for completed units.
    Failed units carry a synthesized status: ``128 + signal`` after a crash,
    ``1`` for every other failure. ``device_id`` is None when the device was
    never created.
    """
    device_id: Optional[str]
    device_name: str
    state: UnitState
    exit_status: int
    log_path: Optional[Path]
    report_path: Optional[Path]
    duration_s: float
    start_time: datetime
    end_time: datetime
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state == UnitState.COMPLETED and self.exit_status == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "device_name": self.device_name,
            "state": self.state.value,
            "exit_status": self.exit_status,
            "log_path": str(self.log_path) if self.log_path else None,
            "report_path": str(self.report_path) if self.report_path else None,
            "duration_s": round(self.duration_s, 3),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "error": self.error,
        }


@dataclass
class AggregateResult:
    """Combined result of a parallel run."""
    exit_status: int
    elapsed_s: float
    outcomes: List[ExecutionOutcome]
    start_time: datetime
    end_time: datetime

    @property
    def success(self) -> bool:
        return self.exit_status == 0

    @property
    def failed_devices(self) -> List[str]:
        return [o.device_name for o in self.outcomes if o.exit_status != 0]

    @property
    def parallel_efficiency(self) -> float:
        """Serial time / actual time."""
        serial_time = sum(o.duration_s for o in self.outcomes)
        return serial_time / self.elapsed_s if self.elapsed_s > 0 else 1.0

    def artifacts(self) -> List[Path]:
        """Every per-device log and report path, in outcome order."""
        paths: List[Path] = []
        for outcome in self.outcomes:
            for path in (outcome.log_path, outcome.report_path):
                if path is not None:
                    paths.append(path)
        return paths

    def summary(self) -> str:
        passed = len(self.outcomes) - len(self.failed_devices)
        return (
            f"Devices: {passed}/{len(self.outcomes)} passed, "
            f"exit status {self.exit_status}, "
            f"elapsed {self.elapsed_s:.1f}s "
            f"(parallel efficiency {self.parallel_efficiency:.2f})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exit_status": self.exit_status,
            "elapsed_s": round(self.elapsed_s, 3),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class Dispatch:
    """Handle on a set of concurrently running execution units."""
    tasks: List["asyncio.Task[ExecutionOutcome]"]
    instances: List[DeviceInstance]
    start_time: datetime
    started_at: float                                # time.monotonic()


@dataclass
class LifecycleConfig:
    """Device lifecycle timing configuration."""
    boot_timeout_ms: int = 120000
    shutdown_timeout_ms: int = 60000
    shutdown_grace_ms: int = 15000
    poll_interval_ms: int = 500

    def __post_init__(self) -> None:
        """Validate lifecycle configuration."""
        for name in (
            "boot_timeout_ms",
            "shutdown_timeout_ms",
            "shutdown_grace_ms",
            "poll_interval_ms",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
