"""
Kernel source resources.

Kernel sources ship as ``.cl`` files inside the package and carry a
version header so a compiled program can be traced back to its text.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path

from pycuboid.exceptions import InvalidConfigurationError

KERNEL_DIR = Path(__file__).resolve().parent.parent / "kernels"

_VERSION_RE = re.compile(r"^//\s*pycuboid-kernel-version:\s*(\d+)\s*$", re.MULTILINE)


@dataclass(frozen=True)
class KernelSource:
    """Versioned OpenCL C source text."""

    name: str
    text: str
    version: int = 0

    @property
    def source_hash(self) -> str:
        """Short content hash of the source text."""
        return hashlib.sha256(self.text.encode()).hexdigest()[:16]

    @classmethod
    def from_text(cls, name: str, text: str) -> KernelSource:
        """Build a source, reading the version header if present."""
        match = _VERSION_RE.search(text)
        version = int(match.group(1)) if match else 0
        return cls(name=name, text=text, version=version)


def load_kernel_source(name: str, directory: Path | None = None) -> KernelSource:
    """
    Load ``<name>.cl`` from the kernel directory.

    Args:
        name: Kernel file stem, e.g. ``cuboid_area``.
        directory: Directory to search instead of the packaged kernels.

    Returns:
        The loaded kernel source.

    Raises:
        InvalidConfigurationError: If no such kernel file exists.
    """
    path = (directory or KERNEL_DIR) / f"{name}.cl"
    if not path.is_file():
        raise InvalidConfigurationError("kernel_name", name, f"no kernel source at {path}")
    return KernelSource.from_text(name, path.read_text())
