"""
PyCuboid - OpenCL cuboid surface area benchmark.

Computes ``2 * (a*b + b*c + a*c)`` for millions of cuboids on an OpenCL
device and sequentially on the host, then compares timings and results.

Core Features:
    - Device Selection: First matching device across all OpenCL platforms
    - Scoped Sessions: Context, queue and dependents released in order
    - Program Building: Versioned kernel sources with build-log reporting
    - Blocking Transfers: Sized device buffers with checked copies
    - Sequential Baseline: Numba-compiled host loop for comparison

Quick Start:
    >>> from pycuboid import RunConfig, run_benchmark
    >>>
    >>> result = run_benchmark(RunConfig(element_count=1024, seed=0))
    >>> print(result.report.render())
"""

from pycuboid.core.device import ComputeDevice, DeviceClass, DeviceSelector
from pycuboid.core.session import ExecutionContext, ExecutionSession
from pycuboid.core.buffer import AccessMode, BufferManager, DeviceBuffer
from pycuboid.core.dispatcher import Dispatcher
from pycuboid.core.pipeline import run_accelerator, run_benchmark
from pycuboid.compilation.builder import Kernel, ProgramBuilder
from pycuboid.compilation.kernel_source import KernelSource, load_kernel_source
from pycuboid.config import RunConfig
from pycuboid.inputs import HostArrays, generate_inputs
from pycuboid.timing import ExecutionRecord, Timer, measure
from pycuboid.verify import ComparisonReport, Verifier

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core
    "ComputeDevice",
    "DeviceClass",
    "DeviceSelector",
    "ExecutionContext",
    "ExecutionSession",
    "AccessMode",
    "BufferManager",
    "DeviceBuffer",
    "Dispatcher",
    "run_accelerator",
    "run_benchmark",
    # Compilation
    "Kernel",
    "ProgramBuilder",
    "KernelSource",
    "load_kernel_source",
    # Host side
    "RunConfig",
    "HostArrays",
    "generate_inputs",
    "ExecutionRecord",
    "Timer",
    "measure",
    "ComparisonReport",
    "Verifier",
]
