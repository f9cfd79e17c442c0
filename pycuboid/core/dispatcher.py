"""
Kernel argument binding and NDRange dispatch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import pyopencl as cl

from pycuboid.compilation.builder import KERNEL_ARITY
from pycuboid.core.buffer import AccessMode
from pycuboid.diagnostics import error_code
from pycuboid.exceptions import DispatchError

if TYPE_CHECKING:
    from pycuboid.compilation.builder import Kernel
    from pycuboid.core.buffer import DeviceBuffer
    from pycuboid.core.session import ExecutionSession

logger = logging.getLogger(__name__)

# slots 0..2 are the (a, b, c) inputs, slot 3 the result
ARGUMENT_MODES = (
    AccessMode.READ_ONLY,
    AccessMode.READ_ONLY,
    AccessMode.READ_ONLY,
    AccessMode.WRITE_ONLY,
)


class Dispatcher:
    """
    Binds kernel arguments and runs one NDRange over the whole domain.

    The work-group size is left to the runtime.

    Example:
        >>> dispatcher = Dispatcher()
        >>> dispatcher.bind_arguments(kernel, [d_a, d_b, d_c, d_result])
        >>> dispatcher.dispatch(session, kernel, len(a))
    """

    def bind_arguments(self, kernel: Kernel, buffers: Sequence[DeviceBuffer]) -> None:
        """
        Bind ``buffers`` to the kernel in order ``(a, b, c, result)``.

        Every slot is attempted; all failures are reported together.

        Raises:
            DispatchError: If the buffer count is wrong, a buffer has the
                wrong access mode, or any individual bind fails.
        """
        if len(buffers) != KERNEL_ARITY:
            raise DispatchError(
                "Setting kernel arguments",
                f"'{kernel.name}' takes {KERNEL_ARITY} buffers, got {len(buffers)}",
            )

        failures: list[str] = []
        first_error: DispatchError | None = None

        for index, (buffer, mode) in enumerate(zip(buffers, ARGUMENT_MODES)):
            if buffer.mode is not mode:
                failures.append(
                    f"argument {index} ({buffer.name}) is {buffer.mode.name}, expected {mode.name}"
                )
                continue
            try:
                kernel.set_arg(index, buffer)
            except DispatchError as e:
                failures.append(e.detail)
                first_error = first_error or e

        if failures:
            raise DispatchError(
                "Setting kernel arguments",
                failures=failures,
                code=first_error.code if first_error else None,
                cause=first_error,
            )

    def _validate(self, kernel: Kernel, element_count: int) -> None:
        if element_count <= 0:
            raise DispatchError(
                "Enqueueing kernel", f"element count must be positive, got {element_count}"
            )

        unbound = kernel.unbound_slots
        if unbound:
            raise DispatchError(
                "Enqueueing kernel",
                f"'{kernel.name}' has unbound argument(s) {unbound}",
            )

        for index, buffer in enumerate(kernel.bound_arguments):
            if buffer is None:
                continue
            if buffer.is_released:
                raise DispatchError(
                    "Enqueueing kernel", f"argument {index} ({buffer.name}) was released"
                )
            if buffer.element_count != element_count:
                raise DispatchError(
                    "Enqueueing kernel",
                    f"argument {index} ({buffer.name}) holds {buffer.element_count} "
                    f"elements, dispatch covers {element_count}",
                )

    def dispatch(self, session: ExecutionSession, kernel: Kernel, element_count: int) -> None:
        """
        Enqueue the kernel over ``[0, element_count)`` and wait for it.

        Raises:
            DispatchError: If arguments are missing or mis-sized, the
                enqueue fails, or waiting for completion fails.
        """
        self._validate(kernel, element_count)
        queue = session.queue

        try:
            cl.enqueue_nd_range_kernel(queue, kernel.handle, (element_count,), None)
        except cl.Error as e:
            raise DispatchError(
                "Enqueueing kernel", str(e), code=error_code(e), cause=e
            ) from e

        try:
            queue.finish()
        except cl.Error as e:
            raise DispatchError(
                "Waiting for kernel to finish", str(e), code=error_code(e), cause=e
            ) from e

        for buffer in kernel.bound_arguments:
            if buffer is not None and buffer.mode is AccessMode.WRITE_ONLY:
                buffer.mark_populated()

        logger.debug(f"Dispatched '{kernel.name}' over {element_count} work-items")
