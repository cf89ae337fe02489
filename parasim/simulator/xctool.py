"""
Build and test runner backends using ``xctool``.

XctoolBuilder compiles the test bundles once (``build-tests``); XctoolRunner
runs them against one simulator (``run-tests``) writing a plain-text log and
a JUnit XML report through xctool reporters.
"""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence

from loguru import logger

from parasim.orchestrator.errors import BuildFailure, RunnerCrash, RunnerLaunchError
from parasim.orchestrator.types import DeviceInstance
from parasim.simulator.process import format_command

if TYPE_CHECKING:
    from parasim.config import RunConfig


class XctoolBuilder:
    """BuildCoordinator running ``xctool build-tests``."""

    def __init__(
        self,
        target_args: Sequence[str],
        build_dir: Path,
        log_path: Path,
        sdk: str = "iphonesimulator",
        xctool_path: str = "xctool",
    ) -> None:
        self.target_args = list(target_args)
        self.build_dir = Path(build_dir)
        self.log_path = Path(log_path)
        self.sdk = sdk
        self.xctool_path = xctool_path

    @classmethod
    def from_config(cls, config: "RunConfig") -> "XctoolBuilder":
        return cls(
            target_args=config.target_args(),
            build_dir=config.build_dir,
            log_path=config.output_dir / "build.log",
            sdk=config.sdk,
            xctool_path=config.xctool_path,
        )

    def command(self) -> List[str]:
        return [
            self.xctool_path,
            *self.target_args,
            "-sdk", self.sdk,
            "-derivedDataPath", str(self.build_dir),
            "build-tests",
            "-reporter", f"plain:{self.log_path}",
        ]

    async def build(self) -> Path:
        command = self.command()
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BuildFailure(f"cannot prepare {self.log_path}: {e}")
        logger.info(f"Building tests: {format_command(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise BuildFailure(f"cannot start {self.xctool_path}: {e}")

        returncode = await process.wait()
        if returncode != 0:
            raise BuildFailure(
                f"xctool build-tests exited with {returncode}",
                exit_status=returncode,
                log_path=self.log_path,
            )

        logger.info(f"Build succeeded, artifacts in {self.build_dir}")
        return self.build_dir


class XctoolRunner:
    """TestRunner running ``xctool run-tests`` against one simulator."""

    def __init__(
        self,
        target_args: Sequence[str],
        sdk: str = "iphonesimulator",
        xctool_path: str = "xctool",
    ) -> None:
        self.target_args = list(target_args)
        self.sdk = sdk
        self.xctool_path = xctool_path

    @classmethod
    def from_config(cls, config: "RunConfig") -> "XctoolRunner":
        return cls(
            target_args=config.target_args(),
            sdk=config.sdk,
            xctool_path=config.xctool_path,
        )

    def command(
        self,
        device_id: str,
        scope_expression: str,
        log_path: Path,
        report_path: Path,
        artifacts_dir: Path,
    ) -> List[str]:
        command = [
            self.xctool_path,
            *self.target_args,
            "-sdk", self.sdk,
            "-derivedDataPath", str(artifacts_dir),
            "-destination", f"id={device_id}",
            "run-tests",
        ]
        if scope_expression:
            command += ["-only", scope_expression]
        command += [
            "-reporter", f"plain:{log_path}",
            "-reporter", f"junit:{report_path}",
        ]
        return command

    async def run(
        self,
        instance: DeviceInstance,
        scope_expression: str,
        log_path: Path,
        report_path: Path,
        artifacts_dir: Path,
    ) -> int:
        command = self.command(
            instance.device_id, scope_expression, log_path, report_path, artifacts_dir
        )
        logger.debug(f"[{instance.name}] {format_command(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise RunnerLaunchError(instance.device_id, str(e), cause=e)

        returncode = await process.wait()
        if returncode < 0:
            raise RunnerCrash(instance.device_id, -returncode)
        return returncode
