"""
Simulator tooling backends for parasim
"""

from .errors import SimctlError, SimulatorToolError, ToolNotFoundError
from .simctl import SimctlDeviceManager, parse_device_list
from .xctool import XctoolBuilder, XctoolRunner

__all__ = [
    "SimctlDeviceManager",
    "parse_device_list",
    "XctoolBuilder",
    "XctoolRunner",
    "SimctlError",
    "SimulatorToolError",
    "ToolNotFoundError",
]
