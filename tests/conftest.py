"""
Pytest configuration and shared fixtures.

Provides a recording fake of the OpenCL runtime so the pipeline can be
exercised without hardware. Tests marked ``opencl`` run against a real
OpenCL device and are skipped when none is reachable.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import numpy as np
import pyopencl as cl
import pytest

from pycuboid.compilation.kernel_source import KernelSource, load_kernel_source
from pycuboid.core.device import ComputeDevice, DeviceClass, DeviceSelector
from pycuboid.core.session import ExecutionContext, ExecutionSession
from pycuboid.diagnostics import status_text


class FakeCLError(cl.Error):
    """A ``pyopencl.Error`` carrying a chosen status code."""

    def __init__(self, code: int, routine: str = "clFake") -> None:
        Exception.__init__(self, routine, code)
        self._fake_code = code
        self._fake_routine = routine

    @property
    def code(self) -> int:  # type: ignore[override]
        return self._fake_code

    @property
    def routine(self) -> str:  # type: ignore[override]
        return self._fake_routine

    def __str__(self) -> str:
        return f"{self._fake_routine} failed: {status_text(self._fake_code)}"


class FakeOpenCL:
    """
    Recording fake of the pyopencl entry points the pipeline uses.

    ``events`` records every runtime call in order. ``fail(stage, code)``
    makes the named stage raise a ``pyopencl.Error`` with ``code``.
    """

    def __init__(self) -> None:
        self.events: list[str] = []
        self.failures: dict[str, int] = {}
        self.build_log = ""
        self.platforms: list[FakePlatform] = [
            FakePlatform(self, "Fake CPU Platform", [FakeDevice("Fake CPU", cl.device_type.CPU)]),
            FakePlatform(
                self,
                "Fake GPU Platform",
                [
                    FakeDevice("Fake GPU 0", cl.device_type.GPU, compute_units=40),
                    FakeDevice("Fake GPU 1", cl.device_type.GPU, compute_units=80),
                ],
            ),
        ]

    def fail(self, stage: str, code: int) -> None:
        self.failures[stage] = code

    def check(self, stage: str, routine: str) -> None:
        code = self.failures.get(stage)
        if code is not None:
            self.events.append(f"{stage}:failed")
            raise FakeCLError(code, routine)

    def record(self, event: str) -> None:
        self.events.append(event)

    # pyopencl entry points

    def get_platforms(self) -> list[FakePlatform]:
        self.check("platforms", "clGetPlatformIDs")
        return list(self.platforms)

    def enqueue_copy(self, queue: FakeQueue, dest: Any, src: Any, is_blocking: bool = True) -> None:
        assert is_blocking
        if isinstance(dest, FakeBuffer):
            self.check("write", "clEnqueueWriteBuffer")
            dest.data[:] = np.frombuffer(np.ascontiguousarray(src).tobytes(), dtype=np.uint8)
            self.record("write")
        else:
            self.check("read", "clEnqueueReadBuffer")
            dest.view(np.uint8)[:] = src.data
            self.record("read")

    def enqueue_nd_range_kernel(
        self,
        queue: FakeQueue,
        kernel: FakeKernel,
        global_size: tuple[int, ...],
        local_size: tuple[int, ...] | None,
    ) -> None:
        self.check("enqueue", "clEnqueueNDRangeKernel")
        assert local_size is None
        n = global_size[0]
        a, b, c, result = (kernel.args[i].data.view(np.int32) for i in range(4))
        result[:n] = 2 * ((a[:n] * b[:n]) + (b[:n] * c[:n]) + (a[:n] * c[:n]))
        self.record(f"enqueue:{n}")

    def install(self, monkeypatch: pytest.MonkeyPatch) -> None:
        runtime = self

        monkeypatch.setattr(cl, "get_platforms", self.get_platforms)
        monkeypatch.setattr(cl, "enqueue_copy", self.enqueue_copy)
        monkeypatch.setattr(cl, "enqueue_nd_range_kernel", self.enqueue_nd_range_kernel)
        monkeypatch.setattr(cl, "Context", lambda devices: FakeContext(runtime, devices))
        monkeypatch.setattr(cl, "CommandQueue", lambda ctx, device=None: FakeQueue(runtime, ctx))
        monkeypatch.setattr(cl, "Program", lambda ctx, src: FakeProgram(runtime, ctx, src))
        monkeypatch.setattr(cl, "Kernel", lambda prg, name: FakeKernel(runtime, prg, name))
        monkeypatch.setattr(
            cl, "Buffer", lambda ctx, flags, size=0: FakeBuffer(runtime, ctx, flags, size)
        )


class FakeDevice:
    def __init__(self, name: str, type_bits: int, compute_units: int = 4) -> None:
        self.name = name
        self.type = type_bits
        self.max_compute_units = compute_units
        self.global_mem_size = 2 * 1024**3


class FakePlatform:
    def __init__(self, runtime: FakeOpenCL, name: str, devices: list[FakeDevice]) -> None:
        self._runtime = runtime
        self.name = name
        self.devices = devices

    def get_devices(self, device_type: int = cl.device_type.ALL) -> list[FakeDevice]:
        matching = [d for d in self.devices if d.type & device_type]
        if not matching:
            raise FakeCLError(cl.status_code.DEVICE_NOT_FOUND, "clGetDeviceIDs")
        return matching


class FakeContext:
    def __init__(self, runtime: FakeOpenCL, devices: list[FakeDevice]) -> None:
        runtime.check("context", "clCreateContext")
        self.devices = devices
        runtime.record("context")


class FakeQueue:
    def __init__(self, runtime: FakeOpenCL, context: FakeContext) -> None:
        runtime.check("queue", "clCreateCommandQueue")
        self._runtime = runtime
        self.context = context
        runtime.record("queue")

    def finish(self) -> None:
        self._runtime.check("finish", "clFinish")
        self._runtime.record("finish")


class FakeProgram:
    def __init__(self, runtime: FakeOpenCL, context: FakeContext, source: str) -> None:
        runtime.check("program", "clCreateProgramWithSource")
        self._runtime = runtime
        self.source = source
        self.built = False
        self.options: list[str] = []

    def build(self, options: list[str] | None = None, devices: list[Any] | None = None) -> FakeProgram:
        self.options = list(options or [])
        if "#error" in self.source:
            self._runtime.build_log = "<kernel>:1:2: error: forced failure"
            self._runtime.check("build", "clBuildProgram")
            raise FakeCLError(cl.status_code.BUILD_PROGRAM_FAILURE, "clBuildProgram")
        self._runtime.check("build", "clBuildProgram")
        self.built = True
        self._runtime.record("build")
        return self

    def get_build_info(self, device: Any, param: int) -> str:
        return self._runtime.build_log


class FakeKernel:
    def __init__(self, runtime: FakeOpenCL, program: FakeProgram, name: str) -> None:
        runtime.check("kernel", "clCreateKernel")
        if f"void {name}(" not in program.source:
            raise FakeCLError(cl.status_code.INVALID_KERNEL_NAME, "clCreateKernel")
        self._runtime = runtime
        self.name = name
        self.args: dict[int, FakeBuffer] = {}
        runtime.record(f"kernel:{name}")

    def set_arg(self, index: int, value: FakeBuffer) -> None:
        self._runtime.check(f"set_arg:{index}", "clSetKernelArg")
        self.args[index] = value


class FakeBuffer:
    def __init__(self, runtime: FakeOpenCL, context: FakeContext, flags: int, size: int) -> None:
        runtime.check("buffer", "clCreateBuffer")
        self._runtime = runtime
        self.flags = flags
        self.size = size
        self.data = np.zeros(size, dtype=np.uint8)
        self.released = False
        runtime.record(f"buffer:{size}")

    def release(self) -> None:
        self._runtime.check("release", "clReleaseMemObject")
        self.released = True
        self._runtime.record("release_buffer")


@pytest.fixture
def fake_cl(monkeypatch: pytest.MonkeyPatch) -> FakeOpenCL:
    """Install the fake OpenCL runtime for one test."""
    runtime = FakeOpenCL()
    runtime.install(monkeypatch)
    return runtime


@pytest.fixture
def fake_device(fake_cl: FakeOpenCL) -> ComputeDevice:
    """Select the first fake GPU."""
    return DeviceSelector().select(DeviceClass.GPU)


@pytest.fixture
def session(fake_device: ComputeDevice) -> Generator[ExecutionSession, None, None]:
    """Provide an open session on the fake GPU."""
    sess = ExecutionContext().open(fake_device)
    yield sess
    if not sess.is_closed:
        ExecutionContext.close(sess)


@pytest.fixture
def cuboid_source() -> KernelSource:
    """Provide the packaged cuboid area kernel source."""
    return load_kernel_source("cuboid_area")


@pytest.fixture
def scenario() -> dict[str, list[int]]:
    """The four-cuboid reference case."""
    return {
        "a": [1, 2, 3, 4],
        "b": [2, 2, 2, 2],
        "c": [1, 1, 1, 1],
        "expected": [10, 16, 22, 28],
    }


def _real_opencl_available() -> bool:
    try:
        return any(platform.get_devices() for platform in cl.get_platforms())
    except cl.Error:
        return False


# Markers for OpenCL hardware tests
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom markers."""
    config.addinivalue_line("markers", "opencl: mark test as requiring a real OpenCL device")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: list[pytest.Item],
) -> None:
    """Skip OpenCL tests if no OpenCL device is reachable."""
    if not any("opencl" in item.keywords for item in items):
        return

    if not _real_opencl_available():
        skip_opencl = pytest.mark.skip(reason="OpenCL device not available")
        for item in items:
            if "opencl" in item.keywords:
                item.add_marker(skip_opencl)
