"""
Kernel source loading and program compilation.
"""

from pycuboid.compilation.builder import CompiledProgram, Kernel, ProgramBuilder
from pycuboid.compilation.kernel_source import KernelSource, load_kernel_source

__all__ = [
    "CompiledProgram",
    "Kernel",
    "ProgramBuilder",
    "KernelSource",
    "load_kernel_source",
]
