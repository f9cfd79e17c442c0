"""
End-to-end accelerator pipeline and benchmark run.

Provides high-level coordination of device selection, session setup,
kernel build, transfers, dispatch and the sequential comparison.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from pycuboid.backends.cpu import sequential_cuboid_area
from pycuboid.compilation.builder import ProgramBuilder
from pycuboid.compilation.kernel_source import load_kernel_source
from pycuboid.config import RunConfig
from pycuboid.core.buffer import AccessMode, BufferManager
from pycuboid.core.device import ComputeDevice, DeviceSelector
from pycuboid.core.dispatcher import Dispatcher
from pycuboid.core.session import ExecutionContext
from pycuboid.exceptions import InvalidConfigurationError
from pycuboid.inputs import HostArrays, generate_inputs
from pycuboid.timing import ExecutionRecord, Timer
from pycuboid.verify import ComparisonReport, Verifier

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from pycuboid.compilation.kernel_source import KernelSource

logger = logging.getLogger(__name__)

KERNEL_LABEL = "opencl"
SEQUENTIAL_LABEL = "sequential"


@dataclass
class AcceleratorRun:
    """Output of one pass through the accelerator pipeline."""

    result: NDArray[np.int32]
    kernel: ExecutionRecord
    upload: ExecutionRecord
    download: ExecutionRecord
    release_log: list[str] = field(default_factory=list)


@dataclass
class BenchmarkResult:
    """Everything a benchmark run produced."""

    device: ComputeDevice
    inputs: HostArrays
    accelerator: AcceleratorRun
    sequential_result: NDArray[np.int32]
    report: ComparisonReport


def run_accelerator(
    device: ComputeDevice,
    inputs: HostArrays,
    source: KernelSource,
    *,
    kernel_name: str,
    build_options: list[str] | None = None,
    timer: Timer | None = None,
) -> AcceleratorRun:
    """
    Compute the cuboid areas of ``inputs`` on ``device``.

    The kernel record covers the enqueue and the completion wait only.
    All device resources are released before returning, on success and
    on failure.

    Raises:
        ResourceCreationError, BuildError, TransferError, DispatchError:
            From the failing stage.
    """
    timer = timer or Timer()
    manager = BufferManager()
    dispatcher = Dispatcher()
    n = inputs.element_count

    with ExecutionContext().open(device) as session:
        kernel = ProgramBuilder(build_options).build(session, source, kernel_name)

        d_a = manager.allocate_for(session, AccessMode.READ_ONLY, inputs.a, name="a")
        d_b = manager.allocate_for(session, AccessMode.READ_ONLY, inputs.b, name="b")
        d_c = manager.allocate_for(session, AccessMode.READ_ONLY, inputs.c, name="c")
        d_result = manager.allocate(
            session,
            AccessMode.WRITE_ONLY,
            n * np.dtype(np.int32).itemsize,
            element_count=n,
            dtype=np.int32,
            name="result",
        )

        def upload_inputs() -> None:
            manager.upload(d_a, inputs.a)
            manager.upload(d_b, inputs.b)
            manager.upload(d_c, inputs.c)

        timer.measure("upload", upload_inputs)
        dispatcher.bind_arguments(kernel, [d_a, d_b, d_c, d_result])
        timer.measure(KERNEL_LABEL, dispatcher.dispatch, session, kernel, n)
        logger.debug(f"The OpenCL kernel ran in {timer[KERNEL_LABEL].elapsed:f} seconds")

        result = timer.measure("download", manager.download, d_result, inputs.empty_result())

    return AcceleratorRun(
        result=result,
        kernel=timer[KERNEL_LABEL],
        upload=timer["upload"],
        download=timer["download"],
        release_log=list(session.release_log),
    )


def run_sequential(inputs: HostArrays, *, timer: Timer | None = None) -> NDArray[np.int32]:
    """Compute the cuboid areas on the host, timing only the main pass."""
    timer = timer or Timer()
    # Warmup to exclude JIT compilation time
    sequential_cuboid_area(inputs.a[:1], inputs.b[:1], inputs.c[:1])
    return timer.measure(
        SEQUENTIAL_LABEL, sequential_cuboid_area, inputs.a, inputs.b, inputs.c
    )


def run_benchmark(
    config: RunConfig,
    *,
    device: ComputeDevice | None = None,
    inputs: HostArrays | None = None,
) -> BenchmarkResult:
    """
    Run both paths on the same inputs and compare them.

    Args:
        config: Run configuration.
        device: Pre-selected device; selected from ``config`` when omitted.
        inputs: Host inputs; generated from ``config`` when omitted.

    Returns:
        The benchmark result with its comparison report.

    Raises:
        DeviceDiscoveryError: If no device matches before anything is created.
        InvalidConfigurationError: If ``inputs`` disagree with
            ``config.element_count``.
    """
    if device is None:
        device = DeviceSelector().select(config.device_class)
    if inputs is None:
        inputs = generate_inputs(config.element_count, config.seed)
    elif inputs.element_count != config.element_count:
        raise InvalidConfigurationError(
            "element_count",
            config.element_count,
            f"inputs hold {inputs.element_count} elements",
        )

    source = load_kernel_source(config.kernel_name)
    timer = Timer()

    accelerator = run_accelerator(
        device,
        inputs,
        source,
        kernel_name=config.kernel_name,
        build_options=config.build_options,
        timer=timer,
    )
    sequential = run_sequential(inputs, timer=timer)

    report = Verifier(config.sample_size).compare(
        inputs,
        accelerator.result,
        sequential,
        timer[KERNEL_LABEL],
        timer[SEQUENTIAL_LABEL],
    )
    return BenchmarkResult(
        device=device,
        inputs=inputs,
        accelerator=accelerator,
        sequential_result=sequential,
        report=report,
    )
