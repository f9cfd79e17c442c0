"""
OpenCL program builder.

Compiles kernel source text for a session's device and extracts a named
entry point from the built program.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pyopencl as cl

from pycuboid.diagnostics import error_code
from pycuboid.exceptions import BuildError, DispatchError, ResourceCreationError

if TYPE_CHECKING:
    from pycuboid.compilation.kernel_source import KernelSource
    from pycuboid.core.buffer import DeviceBuffer
    from pycuboid.core.session import ExecutionSession

logger = logging.getLogger(__name__)

BUILD_LOG_LIMIT = 2048  # bytes
KERNEL_ARITY = 4


def _truncate_log(log: str, limit: int = BUILD_LOG_LIMIT) -> str:
    data = log.encode()
    if len(data) <= limit:
        return log
    return data[:limit].decode(errors="ignore")


@dataclass
class CompiledProgram:
    """A program built from one kernel source."""

    handle: Any
    source: KernelSource
    build_options: list[str] = field(default_factory=list)
    compile_time_ms: float = 0.0

    def release(self) -> None:
        self.handle = None


class Kernel:
    """
    A kernel entry point with four buffer arguments.

    Tracks which argument slots have been bound so dispatch can refuse
    to run a partially bound kernel.
    """

    def __init__(self, handle: Any, name: str, program: CompiledProgram) -> None:
        self._handle = handle
        self._name = name
        self._program = program
        self._bound: list[DeviceBuffer | None] = [None] * KERNEL_ARITY

    @property
    def name(self) -> str:
        return self._name

    @property
    def handle(self) -> Any:
        return self._handle

    @property
    def program(self) -> CompiledProgram:
        return self._program

    @property
    def arity(self) -> int:
        return KERNEL_ARITY

    @property
    def bound_arguments(self) -> list[DeviceBuffer | None]:
        """Buffers bound to each slot, ``None`` for unbound slots."""
        return list(self._bound)

    @property
    def unbound_slots(self) -> list[int]:
        return [i for i, buf in enumerate(self._bound) if buf is None]

    @property
    def is_fully_bound(self) -> bool:
        return not self.unbound_slots

    def set_arg(self, index: int, buffer: DeviceBuffer) -> None:
        """
        Bind ``buffer`` to argument slot ``index``.

        Raises:
            DispatchError: If the slot is out of range, the kernel was
                released, or the runtime rejects the argument.
        """
        if not 0 <= index < KERNEL_ARITY:
            raise DispatchError(
                "Setting kernel arguments",
                f"argument index {index} out of range for '{self._name}'",
            )
        if self._handle is None:
            raise DispatchError("Setting kernel arguments", f"kernel '{self._name}' was released")

        self._bound[index] = None
        try:
            self._handle.set_arg(index, buffer.handle)
        except cl.Error as e:
            raise DispatchError(
                "Setting kernel arguments",
                f"argument {index} ({buffer.name}): {e}",
                code=error_code(e),
                cause=e,
            ) from e
        self._bound[index] = buffer

    def release(self) -> None:
        self._handle = None
        self._bound = [None] * KERNEL_ARITY

    def __repr__(self) -> str:
        """String representation."""
        return f"Kernel(name={self._name!r}, bound={KERNEL_ARITY - len(self.unbound_slots)}/{KERNEL_ARITY})"


class ProgramBuilder:
    """
    Builds OpenCL programs and extracts kernels.

    Example:
        >>> builder = ProgramBuilder()
        >>> kernel = builder.build(session, load_kernel_source("cuboid_area"), "cuboid_area")
    """

    def __init__(self, options: list[str] | None = None) -> None:
        """
        Initialize the builder.

        Args:
            options: Compiler options passed to every build.
        """
        self._options = list(options or [])

    @property
    def options(self) -> list[str]:
        return list(self._options)

    def compile(self, session: ExecutionSession, source: KernelSource) -> CompiledProgram:
        """
        Compile ``source`` for the session's device.

        Raises:
            ResourceCreationError: If the program object cannot be created.
            BuildError: If compilation fails. Carries the build log.
        """
        try:
            program = cl.Program(session.context, source.text)
        except cl.Error as e:
            raise ResourceCreationError(
                "Creating program", str(e), code=error_code(e), cause=e
            ) from e

        start_time = time.perf_counter()
        try:
            program.build(options=self._options, devices=[session.device.handle])
        except cl.Error as e:
            log = self._build_log(program, session, e)
            logger.warning(f"Build of '{source.name}' failed")
            raise BuildError(source.name, log, code=error_code(e), cause=e) from e

        compiled = CompiledProgram(
            handle=program,
            source=source,
            build_options=self.options,
            compile_time_ms=(time.perf_counter() - start_time) * 1000,
        )
        session.register("program", compiled.release)
        logger.debug(
            f"Built '{source.name}' v{source.version} ({source.source_hash}) "
            f"in {compiled.compile_time_ms:.1f} ms"
        )
        return compiled

    def _build_log(self, program: Any, session: ExecutionSession, error: Exception) -> str:
        try:
            log = program.get_build_info(session.device.handle, cl.program_build_info.LOG)
        except cl.Error:
            log = ""
        if not log or not log.strip():
            # the cached build path keeps the log only in the error text
            log = str(error)
        return _truncate_log(log)

    def extract(self, session: ExecutionSession, program: CompiledProgram, entry_point: str) -> Kernel:
        """
        Create the kernel named ``entry_point`` from a built program.

        Raises:
            ResourceCreationError: If the program has no such entry point.
        """
        try:
            handle = cl.Kernel(program.handle, entry_point)
        except cl.Error as e:
            raise ResourceCreationError(
                "Creating kernel",
                f"entry point '{entry_point}' in '{program.source.name}': {e}",
                code=error_code(e),
                cause=e,
            ) from e

        kernel = Kernel(handle, entry_point, program)
        session.register(f"kernel:{entry_point}", kernel.release)
        return kernel

    def build(
        self,
        session: ExecutionSession,
        source: KernelSource,
        entry_point: str,
    ) -> Kernel:
        """
        Compile ``source`` and extract ``entry_point``.

        Args:
            session: Open execution session.
            source: Kernel source text.
            entry_point: Name of the ``__kernel`` function.

        Returns:
            The extracted kernel. Program and kernel are owned by the session.
        """
        program = self.compile(session, source)
        return self.extract(session, program, entry_point)
