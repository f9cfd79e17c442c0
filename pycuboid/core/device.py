"""
OpenCL device discovery and selection.

Enumerates the available platforms and picks the first device that
matches a device-class filter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

import pyopencl as cl

from pycuboid.diagnostics import error_code
from pycuboid.exceptions import DeviceDiscoveryError, InvalidConfigurationError

logger = logging.getLogger(__name__)


class DeviceClass(Enum):
    """Class of compute device, also used as a selection filter."""

    GPU = auto()
    CPU = auto()
    ACCELERATOR = auto()
    OTHER = auto()
    ANY = auto()

    @property
    def cl_type(self) -> int:
        """Get the ``pyopencl.device_type`` bitfield for this filter."""
        mapping = {
            DeviceClass.GPU: cl.device_type.GPU,
            DeviceClass.CPU: cl.device_type.CPU,
            DeviceClass.ACCELERATOR: cl.device_type.ACCELERATOR,
            DeviceClass.ANY: cl.device_type.ALL,
        }
        if self not in mapping:
            raise InvalidConfigurationError("device_class", self.name, "not usable as a filter")
        return mapping[self]

    @classmethod
    def from_cl_type(cls, type_bits: int) -> DeviceClass:
        """Classify a device from its ``CL_DEVICE_TYPE`` bits."""
        if type_bits & cl.device_type.GPU:
            return cls.GPU
        if type_bits & cl.device_type.CPU:
            return cls.CPU
        if type_bits & cl.device_type.ACCELERATOR:
            return cls.ACCELERATOR
        return cls.OTHER

    @classmethod
    def from_name(cls, name: str) -> DeviceClass:
        """Parse a filter name such as ``gpu`` or ``all``."""
        key = name.strip().upper()
        if key == "ALL":
            key = "ANY"
        try:
            device_class = cls[key]
        except KeyError:
            raise InvalidConfigurationError("device_class", name, "unknown device class") from None
        if device_class is cls.OTHER:
            raise InvalidConfigurationError("device_class", name, "not usable as a filter")
        return device_class


@dataclass(frozen=True)
class ComputeDevice:
    """A selected OpenCL device and the properties read from it."""

    handle: Any = field(compare=False, repr=False)
    device_class: DeviceClass
    name: str
    platform_name: str
    compute_units: int
    global_memory: int  # bytes

    @classmethod
    def from_cl(cls, device: Any, platform: Any) -> ComputeDevice:
        """
        Read the properties of a ``pyopencl.Device``.

        Raises:
            DeviceDiscoveryError: If the device cannot be queried.
        """
        try:
            return cls(
                handle=device,
                device_class=DeviceClass.from_cl_type(device.type),
                name=device.name.strip(),
                platform_name=platform.name.strip(),
                compute_units=device.max_compute_units,
                global_memory=device.global_mem_size,
            )
        except cl.Error as e:
            raise DeviceDiscoveryError(
                "Querying device information", str(e), code=error_code(e), cause=e
            ) from e

    @property
    def global_memory_mb(self) -> float:
        """Get global memory in MB."""
        return self.global_memory / (1024**2)

    def describe(self) -> str:
        """Human readable summary, as printed before a run."""
        type_label = {
            DeviceClass.GPU: "GPU",
            DeviceClass.CPU: "CPU",
        }.get(self.device_class, "Not CPU nor GPU")
        return (
            f"Device: {self.name} ({self.platform_name})\n"
            f"Device type: {type_label}\n"
            f"Total compute units: {self.compute_units} compute units"
        )


class DeviceSelector:
    """
    Selects one OpenCL device across all platforms.

    Platforms are visited in enumeration order and the first device
    matching the filter wins. There is no scoring between candidates.

    Example:
        >>> device = DeviceSelector().select(DeviceClass.GPU)
        >>> device.compute_units
        40
    """

    def _platforms(self) -> list[Any]:
        try:
            platforms = cl.get_platforms()
        except cl.Error as e:
            raise DeviceDiscoveryError(
                "Finding platforms", str(e), code=error_code(e), cause=e
            ) from e

        if not platforms:
            raise DeviceDiscoveryError("Finding platforms", "found 0 platforms")
        return list(platforms)

    def select(self, device_class: DeviceClass = DeviceClass.GPU) -> ComputeDevice:
        """
        Select the first device of the given class.

        Args:
            device_class: Filter applied to every platform.

        Returns:
            The first matching device.

        Raises:
            DeviceDiscoveryError: If no platform exposes a matching device.
        """
        platforms = self._platforms()
        last_code: int | None = None

        for platform in platforms:
            try:
                devices = platform.get_devices(device_type=device_class.cl_type)
            except cl.Error as e:
                last_code = error_code(e)
                logger.debug(f"No {device_class.name} device on platform {platform.name}: {e}")
                continue

            if devices:
                device = ComputeDevice.from_cl(devices[0], platform)
                logger.info(f"Selected {device.name} on platform {device.platform_name}")
                return device

        raise DeviceDiscoveryError(
            "Finding a device",
            f"no {device_class.name} device on {len(platforms)} platform(s)",
            code=last_code,
        )

    def enumerate_devices(self) -> list[ComputeDevice]:
        """List every device on every platform."""
        found: list[ComputeDevice] = []
        for platform in self._platforms():
            try:
                devices = platform.get_devices()
            except cl.Error as e:
                logger.debug(f"Skipping platform {platform.name}: {e}")
                continue
            found.extend(ComputeDevice.from_cl(device, platform) for device in devices)
        return found


def select_device(device_class: DeviceClass = DeviceClass.GPU) -> ComputeDevice:
    """Select a device with a fresh selector."""
    return DeviceSelector().select(device_class)
