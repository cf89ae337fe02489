"""
Simulator tooling exception classes
"""

from typing import Sequence


class SimulatorToolError(Exception):
    """Simulator command-line tool error"""
    pass


class ToolNotFoundError(SimulatorToolError):
    """Executable not found error"""

    def __init__(self, executable: str):
        super().__init__(f"Executable not found: {executable}")
        self.executable = executable


class SimctlError(SimulatorToolError):
    """simctl command execution error"""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"simctl command failed: {' '.join(self.command)} "
            f"(exit {returncode}), error: {stderr.strip()}"
        )
