"""
Core abstractions for PyCuboid.
"""

from pycuboid.core.device import ComputeDevice, DeviceClass, DeviceSelector, select_device
from pycuboid.core.session import ExecutionContext, ExecutionSession
from pycuboid.core.buffer import AccessMode, BufferManager, BufferState, DeviceBuffer
from pycuboid.core.dispatcher import Dispatcher
from pycuboid.core.pipeline import run_accelerator, run_benchmark

__all__ = [
    "ComputeDevice",
    "DeviceClass",
    "DeviceSelector",
    "select_device",
    "ExecutionContext",
    "ExecutionSession",
    "AccessMode",
    "BufferManager",
    "BufferState",
    "DeviceBuffer",
    "Dispatcher",
    "run_accelerator",
    "run_benchmark",
]
