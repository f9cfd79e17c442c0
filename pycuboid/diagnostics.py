"""
OpenCL status code diagnostics.

Translates numeric status codes into readable names for error messages.
"""

from __future__ import annotations

import pyopencl as cl


def status_text(code: int) -> str:
    """
    Translate an OpenCL status code into its symbolic name.

    Args:
        code: Numeric status code returned by the OpenCL runtime.

    Returns:
        Name such as ``CL_OUT_OF_RESOURCES``, or a generic description
        when the code is not known to the runtime.
    """
    try:
        return "CL_" + cl.status_code.to_string(code)
    except ValueError:
        return f"Unknown OpenCL error ({code})"


def error_code(exc: BaseException) -> int | None:
    """Extract the status code carried by a ``pyopencl.Error``, if any."""
    try:
        code = exc.code  # type: ignore[attr-defined]
    except (AttributeError, IndexError, TypeError):
        return None
    return code if isinstance(code, int) else None


def describe_cl_error(exc: BaseException) -> str:
    """Describe a runtime error as ``<status>: <message>``."""
    code = error_code(exc)
    if code is None:
        return str(exc)
    return f"{status_text(code)}: {exc}"
