"""
Execution sessions: one context and one in-order command queue.

A session owns every device resource created against it and releases
them in reverse order of acquisition, then the queue, then the context.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import pyopencl as cl

from pycuboid.diagnostics import describe_cl_error, error_code
from pycuboid.exceptions import (
    OpenCLError,
    ResourceCreationError,
    ResourceReleaseError,
    SessionClosedError,
)

if TYPE_CHECKING:
    from pycuboid.core.device import ComputeDevice

logger = logging.getLogger(__name__)


@dataclass
class _OwnedResource:
    """A dependent resource and the call that releases it."""

    label: str
    release: Callable[[], None]


class ExecutionSession:
    """
    A context and command queue bound to exactly one device.

    Sessions are created by ``ExecutionContext.open`` and torn down by
    ``ExecutionContext.close`` (or by leaving the ``with`` block).

    Example:
        >>> with ExecutionContext().open(device) as session:
        ...     kernel = ProgramBuilder().build(session, source, "cuboid_area")
    """

    def __init__(self, device: ComputeDevice, context: Any, queue: Any) -> None:
        self._device = device
        self._context = context
        self._queue = queue
        self._dependents: list[_OwnedResource] = []
        self._closed = False
        self.release_log: list[str] = []

    @property
    def device(self) -> ComputeDevice:
        """Get the device this session is bound to."""
        return self._device

    @property
    def context(self) -> Any:
        """Get the ``pyopencl.Context``."""
        self._ensure_open("use context")
        return self._context

    @property
    def queue(self) -> Any:
        """Get the in-order ``pyopencl.CommandQueue``."""
        self._ensure_open("use command queue")
        return self._queue

    @property
    def is_closed(self) -> bool:
        """Check if the session has been torn down."""
        return self._closed

    @property
    def resource_count(self) -> int:
        """Number of dependent resources still owned by the session."""
        return len(self._dependents)

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise SessionClosedError(operation)

    def register(self, label: str, release: Callable[[], None]) -> None:
        """
        Take ownership of a dependent resource.

        Args:
            label: Name recorded in ``release_log`` when released.
            release: Callable that frees the resource.

        Raises:
            SessionClosedError: If the session is already closed.
        """
        self._ensure_open(f"register {label}")
        self._dependents.append(_OwnedResource(label, release))

    def release(self, label: str) -> None:
        """Release one dependent resource ahead of session teardown."""
        for index in range(len(self._dependents) - 1, -1, -1):
            if self._dependents[index].label == label:
                owned = self._dependents.pop(index)
                self._release_one(owned)
                return
        raise KeyError(label)

    def _release_one(self, owned: _OwnedResource) -> None:
        owned.release()
        self.release_log.append(owned.label)
        logger.debug(f"Released {owned.label}")

    def _teardown(self) -> None:
        if self._closed:
            return
        self._closed = True

        errors: list[tuple[str, Exception]] = []
        teardown = list(reversed(self._dependents))
        teardown.append(_OwnedResource("queue", self._finish_queue))
        teardown.append(_OwnedResource("context", self._drop_context))
        self._dependents.clear()

        for owned in teardown:
            try:
                self._release_one(owned)
            except (cl.Error, OpenCLError) as e:
                logger.warning(f"Failed to release {owned.label}: {describe_cl_error(e)}")
                errors.append((owned.label, e))

        if errors:
            label, first = errors[0]
            raise ResourceReleaseError(
                f"Releasing {label}",
                f"{len(errors)} resource(s) failed to release",
                code=error_code(first),
                cause=first,
            ) from first

    def _finish_queue(self) -> None:
        queue, self._queue = self._queue, None
        queue.finish()

    def _drop_context(self) -> None:
        self._context = None

    def __enter__(self) -> ExecutionSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        try:
            ExecutionContext.close(self)
        except ResourceReleaseError as e:
            if exc_val is None:
                raise
            # keep the original failure as the one that propagates
            logger.warning(f"Teardown after {type(exc_val).__name__} also failed: {e}")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ExecutionSession(device={self._device.name!r}, "
            f"resources={len(self._dependents)}, closed={self._closed})"
        )


class ExecutionContext:
    """Opens and closes execution sessions for a device."""

    def open(self, device: ComputeDevice) -> ExecutionSession:
        """
        Create a context and an in-order command queue on ``device``.

        Args:
            device: The selected compute device.

        Returns:
            A new execution session.

        Raises:
            ResourceCreationError: If the context or the queue cannot be created.
        """
        try:
            context = cl.Context([device.handle])
        except cl.Error as e:
            raise ResourceCreationError(
                "Creating context", str(e), code=error_code(e), cause=e
            ) from e

        try:
            queue = cl.CommandQueue(context, device.handle)
        except cl.Error as e:
            del context
            logger.debug("Released context after command queue failure")
            raise ResourceCreationError(
                "Creating command queue", str(e), code=error_code(e), cause=e
            ) from e

        logger.debug(f"Opened session on {device.name}")
        return ExecutionSession(device, context, queue)

    @staticmethod
    def close(session: ExecutionSession) -> None:
        """
        Tear down a session: dependents, then queue, then context.

        Closing an already closed session is a no-op.

        Raises:
            ResourceReleaseError: If any release step fails. Remaining
                resources are still released first.
        """
        session._teardown()
