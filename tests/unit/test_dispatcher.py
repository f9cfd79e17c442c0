"""
Unit tests for argument binding and dispatch.
"""

from __future__ import annotations

import numpy as np
import pyopencl as cl
import pytest

from pycuboid.compilation.builder import ProgramBuilder
from pycuboid.core.buffer import AccessMode, BufferManager, BufferState
from pycuboid.core.dispatcher import Dispatcher
from pycuboid.exceptions import DispatchError


@pytest.fixture
def kernel(session, cuboid_source):
    """Build the cuboid kernel in the test session."""
    return ProgramBuilder().build(session, cuboid_source, "cuboid_area")


@pytest.fixture
def buffers(session, scenario):
    """Allocate and fill the four scenario buffers."""
    manager = BufferManager()
    result = []
    for name in ("a", "b", "c"):
        host = np.array(scenario[name], dtype=np.int32)
        buf = manager.allocate_for(session, AccessMode.READ_ONLY, host, name=name)
        manager.upload(buf, host)
        result.append(buf)
    result.append(
        manager.allocate(session, AccessMode.WRITE_ONLY, 16, element_count=4, name="result")
    )
    return result


class TestBindArguments:
    """Tests for Dispatcher.bind_arguments."""

    def test_bind_all(self, kernel, buffers) -> None:
        """Test binding the four buffers in order."""
        Dispatcher().bind_arguments(kernel, buffers)

        assert kernel.is_fully_bound
        assert kernel.bound_arguments == buffers

    def test_wrong_count(self, kernel, buffers) -> None:
        """Test exactly four buffers are required."""
        with pytest.raises(DispatchError, match="takes 4 buffers, got 3"):
            Dispatcher().bind_arguments(kernel, buffers[:3])

    def test_wrong_mode(self, kernel, buffers) -> None:
        """Test the result slot must be write-only."""
        swapped = [buffers[0], buffers[1], buffers[2], buffers[0]]

        with pytest.raises(DispatchError) as exc_info:
            Dispatcher().bind_arguments(kernel, swapped)

        assert len(exc_info.value.failures) == 1
        assert "argument 3 (a) is READ_ONLY" in exc_info.value.failures[0]

    def test_failures_accumulate(self, fake_cl, kernel, buffers) -> None:
        """Test every slot is attempted and all failures are reported."""
        fake_cl.fail("set_arg:0", cl.status_code.INVALID_MEM_OBJECT)
        fake_cl.fail("set_arg:2", cl.status_code.INVALID_ARG_SIZE)

        with pytest.raises(DispatchError) as exc_info:
            Dispatcher().bind_arguments(kernel, buffers)

        failures = exc_info.value.failures
        assert len(failures) == 2
        assert failures[0].startswith("argument 0 (a)")
        assert failures[1].startswith("argument 2 (c)")
        assert exc_info.value.code == cl.status_code.INVALID_MEM_OBJECT
        assert kernel.unbound_slots == [0, 2]


class TestDispatch:
    """Tests for Dispatcher.dispatch."""

    def test_dispatch(self, fake_cl, session, kernel, buffers, scenario) -> None:
        """Test one NDRange over the whole domain computes the areas."""
        dispatcher = Dispatcher()
        dispatcher.bind_arguments(kernel, buffers)

        dispatcher.dispatch(session, kernel, 4)

        out = BufferManager().download(buffers[3], np.empty(4, dtype=np.int32))
        np.testing.assert_array_equal(out, scenario["expected"])
        assert "enqueue:4" in fake_cl.events
        assert fake_cl.events[fake_cl.events.index("enqueue:4") + 1] == "finish"
        assert buffers[3].state == BufferState.POPULATED

    def test_unbound_arguments(self, fake_cl, session, kernel, buffers) -> None:
        """Test a partially bound kernel is never enqueued."""
        kernel.set_arg(0, buffers[0])

        with pytest.raises(DispatchError, match=r"unbound argument\(s\) \[1, 2, 3\]"):
            Dispatcher().dispatch(session, kernel, 4)

        assert not any(e.startswith("enqueue") for e in fake_cl.events)

    def test_unbound_reported_before_released(self, fake_cl, session, kernel, buffers) -> None:
        """Test missing arguments are reported ahead of a released bound buffer."""
        kernel.set_arg(3, buffers[3])
        buffers[3].release()

        with pytest.raises(DispatchError, match=r"unbound argument\(s\) \[0, 1, 2\]"):
            Dispatcher().dispatch(session, kernel, 4)

    def test_non_positive_count(self, session, kernel, buffers) -> None:
        """Test an empty domain is refused."""
        Dispatcher().bind_arguments(kernel, buffers)

        with pytest.raises(DispatchError, match="must be positive"):
            Dispatcher().dispatch(session, kernel, 0)

    def test_count_mismatch(self, session, kernel, buffers) -> None:
        """Test the domain must match every buffer length."""
        Dispatcher().bind_arguments(kernel, buffers)

        with pytest.raises(DispatchError, match="holds 4 elements, dispatch covers 5"):
            Dispatcher().dispatch(session, kernel, 5)

    def test_released_argument(self, session, kernel, buffers) -> None:
        """Test a released buffer cannot be used by the kernel."""
        Dispatcher().bind_arguments(kernel, buffers)
        buffers[1].release()

        with pytest.raises(DispatchError, match=r"argument 1 \(b\) was released"):
            Dispatcher().dispatch(session, kernel, 4)

    def test_enqueue_failure(self, fake_cl, session, kernel, buffers) -> None:
        """Test a failed enqueue reports its status."""
        Dispatcher().bind_arguments(kernel, buffers)
        fake_cl.fail("enqueue", cl.status_code.INVALID_WORK_GROUP_SIZE)

        with pytest.raises(DispatchError) as exc_info:
            Dispatcher().dispatch(session, kernel, 4)

        assert exc_info.value.stage == "Enqueueing kernel"
        assert exc_info.value.status == "CL_INVALID_WORK_GROUP_SIZE"

    def test_finish_failure(self, fake_cl, session, kernel, buffers) -> None:
        """Test a failed wait for completion is its own stage."""
        Dispatcher().bind_arguments(kernel, buffers)
        fake_cl.fail("finish", cl.status_code.OUT_OF_RESOURCES)

        with pytest.raises(DispatchError) as exc_info:
            Dispatcher().dispatch(session, kernel, 4)

        assert exc_info.value.stage == "Waiting for kernel to finish"
        assert buffers[3].state == BufferState.ALLOCATED
        fake_cl.failures.clear()
