"""
Run configuration for PyCuboid.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pycuboid.core.device import DeviceClass
from pycuboid.exceptions import InvalidConfigurationError

# 75 million cuboids per run
DEFAULT_ELEMENT_COUNT = 1024 * 1024 * 75
DEFAULT_SAMPLE_SIZE = 100
DEFAULT_KERNEL_NAME = "cuboid_area"


@dataclass
class RunConfig:
    """Configuration for a single benchmark run."""

    element_count: int = DEFAULT_ELEMENT_COUNT
    device_class: DeviceClass = DeviceClass.GPU
    seed: int | None = None
    sample_size: int = DEFAULT_SAMPLE_SIZE
    build_options: list[str] = field(default_factory=list)
    kernel_name: str = DEFAULT_KERNEL_NAME

    def __post_init__(self) -> None:
        """Validate configuration."""
        if isinstance(self.device_class, str):
            self.device_class = DeviceClass.from_name(self.device_class)

        if self.element_count <= 0:
            raise InvalidConfigurationError(
                "element_count", self.element_count, "must be positive"
            )
        if self.sample_size < 0:
            raise InvalidConfigurationError(
                "sample_size", self.sample_size, "must not be negative"
            )
        if self.seed is not None and self.seed < 0:
            raise InvalidConfigurationError("seed", self.seed, "must not be negative")
        if not self.kernel_name:
            raise InvalidConfigurationError("kernel_name", self.kernel_name, "must be set")
