"""
Device buffers and host/device transfers.

Buffers are allocated against an open session, which owns them and
releases them before its queue and context.
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

import numpy as np
import pyopencl as cl

from pycuboid.diagnostics import error_code
from pycuboid.exceptions import (
    BufferSizeError,
    InvalidConfigurationError,
    ResourceCreationError,
    TransferError,
)

if TYPE_CHECKING:
    from numpy.typing import DTypeLike, NDArray

    from pycuboid.core.session import ExecutionSession

logger = logging.getLogger(__name__)


class AccessMode(Enum):
    """Declared kernel-side access of a device buffer."""

    READ_ONLY = auto()
    WRITE_ONLY = auto()

    @property
    def cl_flags(self) -> int:
        """Get the matching ``pyopencl.mem_flags`` value."""
        if self is AccessMode.READ_ONLY:
            return cl.mem_flags.READ_ONLY
        return cl.mem_flags.WRITE_ONLY


class BufferState(Enum):
    """Lifecycle state of a device buffer."""

    ALLOCATED = auto()
    POPULATED = auto()
    RELEASED = auto()


class DeviceBuffer:
    """
    A device memory region with a fixed element count and dtype.

    ``nbytes`` always equals ``element_count * dtype.itemsize``.
    """

    def __init__(
        self,
        handle: Any,
        session: ExecutionSession,
        *,
        name: str,
        mode: AccessMode,
        element_count: int,
        dtype: np.dtype[Any],
    ) -> None:
        self._handle = handle
        self._session = session
        self._name = name
        self._mode = mode
        self._element_count = element_count
        self._dtype = dtype
        self._state = BufferState.ALLOCATED

    @property
    def handle(self) -> Any:
        """Get the ``pyopencl.Buffer``."""
        return self._handle

    @property
    def session(self) -> ExecutionSession:
        return self._session

    @property
    def name(self) -> str:
        return self._name

    @property
    def label(self) -> str:
        """Name under which the owning session tracks this buffer."""
        return f"buffer:{self._name}"

    @property
    def mode(self) -> AccessMode:
        return self._mode

    @property
    def element_count(self) -> int:
        return self._element_count

    @property
    def dtype(self) -> np.dtype[Any]:
        return self._dtype

    @property
    def nbytes(self) -> int:
        """Get the total size in bytes."""
        return self._element_count * self._dtype.itemsize

    @property
    def state(self) -> BufferState:
        return self._state

    @property
    def is_released(self) -> bool:
        return self._state == BufferState.RELEASED

    def mark_populated(self) -> None:
        """Record that the device copy now holds meaningful data."""
        self._state = BufferState.POPULATED

    def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        self._state = BufferState.RELEASED
        if handle is not None:
            handle.release()

    def release(self) -> None:
        """Release this buffer ahead of session teardown."""
        if not self.is_released:
            self._session.release(self.label)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"DeviceBuffer(name={self._name!r}, mode={self._mode.name}, "
            f"elements={self._element_count}, dtype={self._dtype}, state={self._state.name})"
        )


class BufferManager:
    """
    Allocates device buffers and moves data across the host/device boundary.

    All transfers are blocking: they return only once the copy completed.

    Example:
        >>> manager = BufferManager()
        >>> d_a = manager.allocate_for(session, AccessMode.READ_ONLY, a, name="a")
        >>> manager.upload(d_a, a)
    """

    def allocate(
        self,
        session: ExecutionSession,
        mode: AccessMode,
        byte_length: int,
        *,
        element_count: int,
        dtype: DTypeLike = np.int32,
        name: str = "buffer",
    ) -> DeviceBuffer:
        """
        Allocate a buffer of ``byte_length`` bytes.

        Args:
            session: Open session that will own the buffer.
            mode: Declared access mode.
            byte_length: Requested size in bytes.
            element_count: Number of elements the buffer holds.
            dtype: Element type.
            name: Name used in messages and the release log.

        Returns:
            The allocated buffer.

        Raises:
            InvalidConfigurationError: If ``element_count`` is not positive.
            BufferSizeError: If ``byte_length`` disagrees with ``element_count``.
            ResourceCreationError: If the device cannot satisfy the request.
        """
        np_dtype = np.dtype(dtype)
        if element_count <= 0:
            raise InvalidConfigurationError("element_count", element_count, "must be positive")

        expected = element_count * np_dtype.itemsize
        if byte_length != expected:
            raise BufferSizeError(name, expected, byte_length)

        try:
            handle = cl.Buffer(session.context, mode.cl_flags, size=byte_length)
        except cl.Error as e:
            raise ResourceCreationError(
                f"Creating buffer {name}", str(e), code=error_code(e), cause=e
            ) from e

        buffer = DeviceBuffer(
            handle,
            session,
            name=name,
            mode=mode,
            element_count=element_count,
            dtype=np_dtype,
        )
        session.register(buffer.label, buffer._release_handle)
        logger.debug(f"Allocated {buffer}")
        return buffer

    def allocate_for(
        self,
        session: ExecutionSession,
        mode: AccessMode,
        host_array: NDArray[Any],
        *,
        name: str = "buffer",
    ) -> DeviceBuffer:
        """Allocate a buffer sized and typed after ``host_array``."""
        return self.allocate(
            session,
            mode,
            host_array.nbytes,
            element_count=host_array.size,
            dtype=host_array.dtype,
            name=name,
        )

    def _check_host(self, buffer: DeviceBuffer, host: NDArray[Any], direction: str) -> None:
        if host.dtype != buffer.dtype:
            raise TransferError(
                direction, f"dtype {host.dtype} does not match buffer dtype {buffer.dtype}"
            )
        if host.nbytes != buffer.nbytes:
            raise BufferSizeError(buffer.name, buffer.nbytes, host.nbytes)

    def upload(self, buffer: DeviceBuffer, host_data: NDArray[Any]) -> None:
        """
        Copy ``host_data`` into ``buffer`` and wait for completion.

        Raises:
            BufferSizeError: If the host array size differs from the buffer.
            TransferError: If the buffer was released or the copy fails.
        """
        direction = f"{buffer.name} to device"
        if buffer.is_released:
            raise TransferError(direction, f"buffer '{buffer.name}' was released")

        host = np.ascontiguousarray(host_data)
        self._check_host(buffer, host, direction)

        try:
            cl.enqueue_copy(buffer.session.queue, buffer.handle, host, is_blocking=True)
        except cl.Error as e:
            raise TransferError(direction, str(e), code=error_code(e), cause=e) from e

        buffer.mark_populated()

    def download(self, buffer: DeviceBuffer, host_destination: NDArray[Any]) -> NDArray[Any]:
        """
        Copy ``buffer`` into ``host_destination`` and wait for completion.

        Returns:
            ``host_destination``, filled.

        Raises:
            BufferSizeError: If the destination size differs from the buffer.
            TransferError: If the buffer was released, the destination is not
                a writable contiguous array, or the copy fails.
        """
        direction = f"{buffer.name} to host"
        if buffer.is_released:
            raise TransferError(direction, f"buffer '{buffer.name}' was released")
        if not (host_destination.flags.c_contiguous and host_destination.flags.writeable):
            raise TransferError(direction, "destination must be a writable contiguous array")

        self._check_host(buffer, host_destination, direction)

        try:
            cl.enqueue_copy(buffer.session.queue, host_destination, buffer.handle, is_blocking=True)
        except cl.Error as e:
            raise TransferError(direction, str(e), code=error_code(e), cause=e) from e

        return host_destination
