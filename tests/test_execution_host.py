"""Tests for the execution host: path selection, serialization, timeouts and failures."""

import asyncio
import logging
import math
import threading
import time

import pytest

from coauthor_layout.config import LayoutConfig
from coauthor_layout.core.layout_settings import adaptive_settings, convergence_schedule
from coauthor_layout.core.models import Edge, Node
from coauthor_layout.exceptions import (
    LayoutComputationError, LayoutError, LayoutTimeoutError, WorkerUnavailableError
)
from coauthor_layout.runtime import execution_host
from coauthor_layout.runtime.execution_host import ExecutionHost, HostState
from coauthor_layout.runtime.layout_worker import LayoutWorker


def chain(prefix, count):
    nodes = [Node(id=f"{prefix}{i}", is_center=(i == 0)) for i in range(count)]
    edges = [Edge(id=f"{prefix}e{i}", source=f"{prefix}{i}", target=f"{prefix}{i + 1}")
             for i in range(count - 1)]
    return nodes, edges


class RecordingCompute:
    """Stand-in compute callable that places every node at the viewport centre."""

    def __init__(self, delay=0.0):
        self.delay = delay
        self.threads = []
        self.events = []
        self._lock = threading.Lock()

    def __call__(self, nodes, edges, width, height, center_id):
        with self._lock:
            self.threads.append(threading.current_thread().name)
            self.events.append(("start", center_id))
        if self.delay:
            threading.Event().wait(self.delay)
        with self._lock:
            self.events.append(("end", center_id))
        return {node.id: (width / 2, height / 2) for node in nodes}


class TestPathSelection:

    @pytest.mark.asyncio
    async def test_small_graph_runs_inline(self):
        compute = RecordingCompute()
        host = ExecutionHost(LayoutConfig(worker_threshold=10), compute_fn=compute)
        nodes, edges = chain("a", 5)

        positions = await host.compute_layout(nodes, edges, 800, 600, "a0")

        assert set(positions) == {n.id for n in nodes}
        assert compute.threads == [threading.current_thread().name]
        assert host.has_worker is False
        assert host.state is HostState.IDLE
        assert host.last_outcome is HostState.RESOLVED

    @pytest.mark.asyncio
    async def test_large_graph_runs_in_worker(self):
        compute = RecordingCompute()
        host = ExecutionHost(LayoutConfig(worker_threshold=3), compute_fn=compute)
        nodes, edges = chain("a", 5)

        positions = await host.compute_layout(nodes, edges, 800, 600, "a0")

        assert positions["a3"] == (400, 300)
        assert compute.threads[0].startswith("coauthor-layout-worker")
        assert host.has_worker is True
        host.close()

    @pytest.mark.asyncio
    async def test_worker_disabled(self):
        compute = RecordingCompute()
        host = ExecutionHost(LayoutConfig(worker_threshold=3, use_worker_thread=False), compute_fn=compute)
        nodes, edges = chain("a", 5)

        await host.compute_layout(nodes, edges, 800, 600, "a0")

        assert compute.threads == [threading.current_thread().name]
        assert host.has_worker is False

    @pytest.mark.asyncio
    async def test_real_pipeline_through_worker(self, small_star):
        nodes, edges = small_star
        async with ExecutionHost(LayoutConfig(worker_threshold=2)) as host:
            positions = await host.compute_layout(nodes, edges, 800, 600, "center")

        assert set(positions) == {n.id for n in nodes}
        assert positions["center"] == (400, 300)
        assert host.closed is True

    @pytest.mark.asyncio
    async def test_state_is_dispatched_while_computing(self):
        seen = []

        def compute(nodes, edges, width, height, center_id):
            seen.append(host.state)
            return {}

        host = ExecutionHost(LayoutConfig(worker_threshold=100), compute_fn=compute)
        await host.compute_layout([], [], 800, 600, "c")

        assert seen == [HostState.DISPATCHED]
        assert host.state is HostState.IDLE


class TestSerialization:

    @pytest.mark.asyncio
    async def test_concurrent_requests_do_not_overlap(self):
        compute = RecordingCompute(delay=0.05)
        host = ExecutionHost(LayoutConfig(worker_threshold=2), compute_fn=compute)
        requests = [chain(prefix, 4) for prefix in ("a", "b", "c")]

        results = await asyncio.gather(*(
            host.compute_layout(nodes, edges, 800, 600, nodes[0].id) for nodes, edges in requests
        ))

        # Every caller gets the positions for its own graph
        for (nodes, _), positions in zip(requests, results):
            assert set(positions) == {n.id for n in nodes}

        kinds = [kind for kind, _ in compute.events]
        assert kinds == ["start", "end"] * 3
        host.close()


class TestTimeout:

    @pytest.mark.asyncio
    async def test_timeout_then_recovery(self):
        release = threading.Event()
        calls = []

        def compute(nodes, edges, width, height, center_id):
            calls.append(center_id)
            if len(calls) == 1:
                release.wait(5)
            return {node.id: (1.0, 1.0) for node in nodes}

        host = ExecutionHost(LayoutConfig(worker_threshold=2, timeout_seconds=0.2), compute_fn=compute)
        stuck_nodes, stuck_edges = chain("a", 4)
        ok_nodes, ok_edges = chain("b", 4)

        try:
            with pytest.raises(LayoutTimeoutError) as info:
                await host.compute_layout(stuck_nodes, stuck_edges, 800, 600, "a0")
            assert info.value.timeout_seconds == 0.2
            assert host.last_outcome is HostState.REJECTED_TIMEOUT
            assert host.has_worker is False

            positions = await host.compute_layout(ok_nodes, ok_edges, 800, 600, "b0")
            assert set(positions) == {n.id for n in ok_nodes}
            assert host.last_outcome is HostState.RESOLVED
        finally:
            release.set()

        # The abandoned worker's late reply must not disturb later requests
        await asyncio.sleep(0.1)
        positions = await host.compute_layout(ok_nodes, ok_edges, 800, 600, "b0")
        assert set(positions) == {n.id for n in ok_nodes}
        host.close()

    def test_timeout_error_is_a_timeout(self):
        error = LayoutTimeoutError(30, request_id=4)
        assert isinstance(error, TimeoutError)
        assert "30s" in str(error)
        assert error.request_id == 4


class FailingWorker(LayoutWorker):

    def start(self):
        raise RuntimeError("can't start new thread")


class TestWorkerFailures:

    @pytest.mark.asyncio
    async def test_factory_failure_falls_back_inline(self, caplog):
        def factory(compute_fn, on_message):
            raise WorkerUnavailableError("no threads")

        compute = RecordingCompute()
        host = ExecutionHost(LayoutConfig(worker_threshold=2), compute_fn=compute, worker_factory=factory)
        nodes, edges = chain("a", 4)

        with caplog.at_level(logging.WARNING, logger="coauthor_layout.runtime.execution_host"):
            positions = await host.compute_layout(nodes, edges, 800, 600, "a0")

        assert set(positions) == {n.id for n in nodes}
        assert compute.threads == [threading.current_thread().name]
        assert "falling back" in caplog.text

    @pytest.mark.asyncio
    async def test_start_failure_falls_back_inline(self):
        compute = RecordingCompute()
        host = ExecutionHost(LayoutConfig(worker_threshold=2), compute_fn=compute,
                             worker_factory=FailingWorker)
        nodes, edges = chain("a", 4)

        positions = await host.compute_layout(nodes, edges, 800, 600, "a0")

        assert set(positions) == {n.id for n in nodes}
        assert host.has_worker is False

    @pytest.mark.asyncio
    async def test_worker_error_is_reported_and_host_recovers(self):
        def compute(nodes, edges, width, height, center_id):
            if center_id == "bad0":
                raise ValueError("simulation exploded")
            return {node.id: (0.0, 0.0) for node in nodes}

        host = ExecutionHost(LayoutConfig(worker_threshold=2), compute_fn=compute)
        bad_nodes, bad_edges = chain("bad", 3)
        good_nodes, good_edges = chain("good", 3)

        with pytest.raises(LayoutComputationError) as info:
            await host.compute_layout(bad_nodes, bad_edges, 800, 600, "bad0")
        assert "simulation exploded" in str(info.value)
        assert host.last_outcome is HostState.REJECTED_ERROR

        positions = await host.compute_layout(good_nodes, good_edges, 800, 600, "good0")
        assert set(positions) == {n.id for n in good_nodes}
        host.close()

    @pytest.mark.asyncio
    async def test_inline_error_is_wrapped(self):
        def compute(nodes, edges, width, height, center_id):
            raise ValueError("bad input")

        host = ExecutionHost(LayoutConfig(worker_threshold=100), compute_fn=compute)

        with pytest.raises(LayoutComputationError) as info:
            await host.compute_layout(*chain("a", 2), 800, 600, "a0")
        assert isinstance(info.value.__cause__, ValueError)
        assert host.state is HostState.IDLE

    @pytest.mark.asyncio
    async def test_input_errors_surface_as_computation_errors(self):
        host = ExecutionHost(LayoutConfig(worker_threshold=100))
        nodes = [Node(id="a", is_center=True), Node(id="a")]

        with pytest.raises(LayoutComputationError):
            await host.compute_layout(nodes, [], 800, 600, "a")


class TestClose:

    @pytest.mark.asyncio
    async def test_requests_after_close_are_rejected(self):
        host = ExecutionHost(LayoutConfig(), compute_fn=RecordingCompute())
        host.close()

        with pytest.raises(LayoutError):
            await host.compute_layout(*chain("a", 2), 800, 600, "a0")

    @pytest.mark.asyncio
    async def test_close_stops_worker(self):
        host = ExecutionHost(LayoutConfig(worker_threshold=2), compute_fn=RecordingCompute())
        await host.compute_layout(*chain("a", 3), 800, 600, "a0")
        worker = host._worker

        host.close()
        worker.join(2)

        assert host.has_worker is False
        assert worker.is_alive() is False


class TestScenarios:

    @pytest.mark.asyncio
    async def test_small_graph_in_square_viewport(self, small_star):
        nodes, edges = small_star
        host = ExecutionHost(LayoutConfig())

        positions = await host.compute_layout(nodes, edges, 400, 400, "center")

        assert len(positions) == 5
        assert positions["center"] == (200, 200)
        assert host.has_worker is False

    @pytest.mark.asyncio
    async def test_large_graph_with_stand_in(self, make_star):
        nodes, edges = make_star(1199)
        seen = {}

        def compute(nodes, edges, width, height, center_id):
            settings = adaptive_settings(len(nodes))
            schedule = convergence_schedule(len(nodes))
            seen.update(theta=settings.barnes_hut_theta, batch=schedule.batch_size,
                        ceiling=schedule.max_iterations)
            return {node.id: (width / 2, height / 2) for node in nodes}

        async with ExecutionHost(LayoutConfig(), compute_fn=compute) as host:
            positions = await host.compute_layout(nodes, edges, 1200, 900, "center")
            assert host.has_worker is True

        assert len(positions) == 1200
        assert seen == {"theta": 1.0, "batch": 150, "ceiling": 1500}

    @pytest.mark.asyncio
    async def test_large_graph_real_pipeline_within_timeout(self, make_star):
        nodes, edges = make_star(1199, ring=True)
        config = LayoutConfig()

        started = time.monotonic()
        async with ExecutionHost(config) as host:
            positions = await host.compute_layout(nodes, edges, 1200, 900, "center")
            assert host.has_worker is True
            assert host.last_outcome is HostState.RESOLVED
        elapsed = time.monotonic() - started

        assert elapsed < config.timeout_seconds
        assert set(positions) == {n.id for n in nodes}
        assert positions["center"] == (600, 450)
        assert all(math.isfinite(x) and math.isfinite(y) for x, y in positions.values())


class TestErrors:

    def test_request_id_defaults_to_none(self):
        assert LayoutComputationError("boom").request_id is None
        assert LayoutTimeoutError(1.5).request_id is None

    def test_default_compute_passes_budget(self, monkeypatch):
        seen = {}

        def fake_compute_layout(nodes, edges, width, height, center_id, **options):
            seen.update(options)
            return {}

        monkeypatch.setattr(execution_host, "compute_layout", fake_compute_layout)
        host = ExecutionHost(LayoutConfig(compute_budget_seconds=4.0))

        host._default_compute([], [], 800, 600, "c")

        assert seen["time_budget"] == 4.0
        assert seen["padding"] == 80.0
