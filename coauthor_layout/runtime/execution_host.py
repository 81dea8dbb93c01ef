"""Runs layout computations inline or on a background worker, one at a time."""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

from ..config import LayoutConfig
from ..core.layout_engine import compute_layout
from ..core.models import Edge, LayoutResult, Node
from ..exceptions import (
    LayoutComputationError, LayoutError, LayoutTimeoutError, WorkerUnavailableError
)
from .layout_worker import ComputeFn, LayoutWorker, ReplyCallback
from .messages import ComputeMessage, ErrorMessage, ResultMessage

logger = logging.getLogger(__name__)

WorkerFactory = Callable[[ComputeFn, ReplyCallback], LayoutWorker]


class HostState(Enum):
    IDLE = "idle"
    DISPATCHED = "dispatched"
    RESOLVED = "resolved"
    REJECTED_ERROR = "rejected_error"
    REJECTED_TIMEOUT = "rejected_timeout"


class ExecutionHost:
    """Decides where a layout runs and guarantees at most one is in flight.

    Small graphs (fewer than ``config.worker_threshold`` nodes) are computed
    inline. Larger graphs are posted to a lazily created :class:`LayoutWorker`
    and awaited with a timeout. A worker that times out is abandoned; the next
    request gets a fresh one. Replies carrying a request id other than the one
    being awaited are dropped.
    """

    def __init__(self, config: Optional[LayoutConfig] = None,
                 compute_fn: Optional[ComputeFn] = None,
                 worker_factory: Optional[WorkerFactory] = None):
        self.config = config or LayoutConfig()
        self._compute_fn = compute_fn or self._default_compute
        self._worker_factory = worker_factory or LayoutWorker
        self._worker: Optional[LayoutWorker] = None
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending_id: Optional[int] = None
        self._pending_future: Optional[asyncio.Future] = None
        self._next_request_id = 0
        self._closed = False

        self.state = HostState.IDLE
        self.last_outcome: Optional[HostState] = None

    def _default_compute(self, nodes: Sequence[Node], edges: Sequence[Edge],
                         viewport_width: float, viewport_height: float,
                         center_node_id: str) -> LayoutResult:
        return compute_layout(
            nodes, edges, viewport_width, viewport_height, center_node_id,
            padding=self.config.padding,
            overlap_min_distance=self.config.overlap_min_distance(len(nodes)),
            overlap_max_iterations=self.config.overlap_max_iterations,
            time_budget=self.config.compute_budget_seconds,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_worker(self) -> bool:
        return self._worker is not None

    async def compute_layout(self, nodes: Sequence[Node], edges: Sequence[Edge],
                             viewport_width: float, viewport_height: float,
                             center_node_id: str) -> LayoutResult:
        """Compute positions for ``nodes``; concurrent callers are served in order.

        Raises:
            LayoutTimeoutError: the worker did not answer in time.
            LayoutComputationError: the computation failed on either path.
            LayoutError: the host has been closed.
        """
        if self._closed:
            raise LayoutError("Execution host is closed")

        nodes = list(nodes)
        edges = list(edges)

        async with self._lock:
            if self._closed:
                raise LayoutError("Execution host is closed")

            self._next_request_id += 1
            request_id = self._next_request_id
            self.state = HostState.DISPATCHED
            outcome = None
            try:
                positions = await self._dispatch(request_id, nodes, edges, viewport_width,
                                                 viewport_height, center_node_id)
                outcome = HostState.RESOLVED
                return positions
            except LayoutTimeoutError:
                outcome = HostState.REJECTED_TIMEOUT
                raise
            except LayoutComputationError:
                outcome = HostState.REJECTED_ERROR
                raise
            except Exception as e:
                outcome = HostState.REJECTED_ERROR
                raise LayoutComputationError(f"{type(e).__name__}: {e}", request_id) from e
            finally:
                if outcome is not None:
                    self.last_outcome = outcome
                self.state = HostState.IDLE

    async def _dispatch(self, request_id: int, nodes, edges, viewport_width,
                        viewport_height, center_node_id) -> LayoutResult:
        node_count = len(nodes)
        if node_count < self.config.worker_threshold or not self.config.use_worker_thread:
            logger.info(f"Request {request_id}: computing {node_count} nodes inline")
            return self._compute_inline(request_id, nodes, edges, viewport_width,
                                        viewport_height, center_node_id)

        worker = self._ensure_worker()
        if worker is None:
            return self._compute_inline(request_id, nodes, edges, viewport_width,
                                        viewport_height, center_node_id)

        logger.info(f"Request {request_id}: posting {node_count} nodes to {worker.name}")
        message = ComputeMessage.from_request(request_id, nodes, edges, viewport_width,
                                              viewport_height, center_node_id)
        return await self._compute_in_worker(worker, message)

    def _compute_inline(self, request_id: int, nodes, edges, viewport_width,
                        viewport_height, center_node_id) -> LayoutResult:
        try:
            return self._compute_fn(nodes, edges, viewport_width, viewport_height, center_node_id)
        except Exception as e:
            logger.error(f"Layout request {request_id} failed: {e}")
            raise LayoutComputationError(f"{type(e).__name__}: {e}", request_id) from e

    def _ensure_worker(self) -> Optional[LayoutWorker]:
        """Return the current worker, creating one if needed; ``None`` means run inline."""
        if self._worker is not None:
            return self._worker

        try:
            worker = self._worker_factory(self._compute_fn, self._on_worker_message)
            worker.start()
        except (WorkerUnavailableError, RuntimeError, OSError) as e:
            logger.warning(f"Layout worker unavailable, falling back to inline computation: {e}")
            return None

        self._worker = worker
        return worker

    async def _compute_in_worker(self, worker: LayoutWorker, message: ComputeMessage) -> LayoutResult:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._loop = loop
        self._pending_id = message.request_id
        self._pending_future = future

        try:
            worker.post(message.model_dump())
            return await asyncio.wait_for(future, timeout=self.config.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Layout request {message.request_id} timed out after "
                           f"{self.config.timeout_seconds:g}s, discarding {worker.name}")
            self._discard_worker(worker)
            raise LayoutTimeoutError(self.config.timeout_seconds, message.request_id) from None
        finally:
            self._pending_id = None
            self._pending_future = None

    def _on_worker_message(self, worker: LayoutWorker, data: Dict[str, Any]) -> None:
        """Called on the worker thread; hands the reply over to the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"Dropping reply from {worker.name}: no event loop")
            return
        try:
            loop.call_soon_threadsafe(self._deliver, worker, data)
        except RuntimeError:
            logger.debug(f"Dropping reply from {worker.name}: event loop closed")

    def _deliver(self, worker: LayoutWorker, data: Dict[str, Any]) -> None:
        request_id = data.get("request_id")
        future = self._pending_future

        if worker is not self._worker:
            logger.debug(f"Ignoring reply {request_id} from discarded {worker.name}")
            return
        if data.get("fatal"):
            self._worker = None
        if future is None or future.done() or request_id != self._pending_id:
            logger.debug(f"Ignoring stale reply {request_id} (awaiting {self._pending_id})")
            return

        reply_type = data.get("type")
        if reply_type == "result":
            future.set_result(dict(ResultMessage.model_validate(data).positions))
        elif reply_type == "error":
            error = ErrorMessage.model_validate(data)
            logger.error(f"Layout request {request_id} failed in worker: {error.error}")
            future.set_exception(LayoutComputationError(error.error, request_id))
        else:
            future.set_exception(LayoutComputationError(f"Unknown worker reply type: {reply_type!r}",
                                                        request_id))

    def _discard_worker(self, worker: LayoutWorker) -> None:
        if self._worker is worker:
            self._worker = None
        worker.stop()

    def close(self) -> None:
        """Release the worker; later requests raise :class:`LayoutError`."""
        if self._closed:
            return
        self._closed = True
        if self._worker is not None:
            self._discard_worker(self._worker)
        future = self._pending_future
        if future is not None and not future.done():
            future.set_exception(LayoutComputationError("Execution host closed", self._pending_id))
        logger.debug("Execution host closed")

    async def __aenter__(self) -> "ExecutionHost":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
