"""
PyCuboid exception hierarchy.

This module defines the complete exception hierarchy for PyCuboid,
providing specific exception types for each pipeline stage:

- DeviceDiscoveryError: No platform or no matching device
- ResourceCreationError: Context, queue, program, kernel or buffer creation
- BuildError: Kernel compilation failure (carries the build log)
- TransferError: Host <-> device copy failures
- DispatchError: Argument binding, enqueue or completion-wait failures
- ValidationError: Sizing, configuration and result agreement problems

All exceptions inherit from PyCuboidError for easy catching.
"""

from __future__ import annotations

from pycuboid.diagnostics import status_text


class PyCuboidError(Exception):
    """Base exception for all PyCuboid errors."""

    pass


class OpenCLError(PyCuboidError):
    """Base exception for failures reported by the OpenCL runtime."""

    def __init__(
        self,
        stage: str,
        detail: str = "",
        *,
        code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.stage = stage
        self.detail = detail
        self.code = code
        self.cause = cause
        self.status = status_text(code) if code is not None else None

        msg = f"{stage} failed"
        if self.status:
            msg += f" [{self.status}]"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class DeviceDiscoveryError(OpenCLError):
    """Raised when no platform exposes a device matching the filter."""

    pass


class ResourceCreationError(OpenCLError):
    """Raised when a context, queue, program, kernel or buffer cannot be created."""

    pass


class ResourceReleaseError(OpenCLError):
    """Raised when teardown of a device resource fails."""

    pass


class BuildError(OpenCLError):
    """Raised when kernel compilation fails."""

    def __init__(
        self,
        kernel_name: str,
        log: str,
        *,
        code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.kernel_name = kernel_name
        self.log = log
        super().__init__(
            "Building program executable",
            f"kernel source '{kernel_name}' did not compile",
            code=code,
            cause=cause,
        )


class TransferError(OpenCLError):
    """Raised when a host/device transfer fails."""

    def __init__(
        self,
        direction: str,
        detail: str = "",
        *,
        code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.direction = direction
        super().__init__(f"Copying {direction}", detail, code=code, cause=cause)


class DispatchError(OpenCLError):
    """Raised for argument binding, enqueue or completion-wait failures."""

    def __init__(
        self,
        stage: str,
        detail: str = "",
        *,
        failures: list[str] | None = None,
        code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.failures = failures or []
        if self.failures and not detail:
            detail = "; ".join(self.failures)
        super().__init__(stage, detail, code=code, cause=cause)


class SessionClosedError(PyCuboidError):
    """Raised when a resource is used or registered after its session closed."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation}: execution session is closed")


class ValidationError(PyCuboidError):
    """Base exception for validation-related errors."""

    pass


class BufferSizeError(ValidationError):
    """Raised when a buffer's byte length disagrees with its element count."""

    def __init__(self, name: str, expected: int, actual: int) -> None:
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Buffer '{name}' size mismatch: expected {expected} bytes, got {actual}"
        )


class InvalidConfigurationError(ValidationError):
    """Raised when configuration is invalid."""

    def __init__(self, parameter: str, value: object, reason: str) -> None:
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid configuration: {parameter}={value!r} - {reason}")


class VerificationError(ValidationError):
    """Raised when accelerator and sequential results disagree."""

    def __init__(self, mismatches: int, first_index: int) -> None:
        self.mismatches = mismatches
        self.first_index = first_index
        super().__init__(
            f"{mismatches} element(s) differ between OpenCL and sequential results "
            f"(first at index {first_index})"
        )
