"""
Run configuration.

Loads ``parasim.toml`` into a validated RunConfig:

    workspace = "App.xcworkspace"
    scheme = "App"
    output_dir = "build/reports"

    [lifecycle]
    boot_timeout_ms = 180000

    [[devices]]
    name = "ci-iphone-15"
    device_type = "com.apple.CoreSimulator.SimDeviceType.iPhone-15"
    runtime = "com.apple.CoreSimulator.SimRuntime.iOS-17-0"
"""

import tomllib
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from parasim.orchestrator.types import DeviceSpec, LifecycleConfig

DEFAULT_CONFIG_FILE = "parasim.toml"


class ConfigError(Exception):
    """Raised when the run configuration cannot be loaded or is invalid."""

    def __init__(self, path: Union[str, Path], message: str):
        self.path = Path(path)
        super().__init__(f"Invalid configuration {path}: {message}")


class LifecycleSettings(BaseModel):
    """Device lifecycle timeouts from ``[lifecycle]``."""

    boot_timeout_ms: int = Field(default=120000, gt=0)
    shutdown_timeout_ms: int = Field(default=60000, gt=0)
    shutdown_grace_ms: int = Field(default=15000, gt=0)
    poll_interval_ms: int = Field(default=500, gt=0)

    def to_lifecycle_config(self) -> LifecycleConfig:
        return LifecycleConfig(**self.model_dump())


class RunConfig(BaseModel):
    """Parallel test run configuration."""

    workspace: Optional[str] = None
    project: Optional[str] = None
    scheme: str
    sdk: str = "iphonesimulator"
    build_dir: Path = Path("build/DerivedData")
    output_dir: Path = Path("build/reports")
    xctool_path: str = "xctool"
    xcrun_path: str = "xcrun"
    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)
    devices: List[DeviceSpec]

    @field_validator("devices")
    @classmethod
    def _unique_devices(cls, devices: List[DeviceSpec]) -> List[DeviceSpec]:
        if not devices:
            raise ValueError("at least one device is required")
        names = [d.name for d in devices]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate device names: {', '.join(duplicates)}")
        return devices

    @model_validator(mode="after")
    def _one_target(self) -> "RunConfig":
        if bool(self.workspace) == bool(self.project):
            raise ValueError("exactly one of 'workspace' or 'project' must be set")
        return self

    def target_args(self) -> List[str]:
        """xctool arguments selecting the workspace or project and scheme."""
        if self.workspace:
            return ["-workspace", self.workspace, "-scheme", self.scheme]
        return ["-project", self.project, "-scheme", self.scheme]


def load_config(path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> RunConfig:
    """
    Load and validate a TOML run configuration.

    Args:
        path: Path to the configuration file.

    Returns:
        The validated RunConfig.

    Raises:
        ConfigError: If the file is missing, is not valid TOML, or fails validation.
    """
    path = Path(path)
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError:
        raise ConfigError(path, "file not found")
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(path, str(e))

    try:
        return RunConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(path, str(e))
