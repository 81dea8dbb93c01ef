"""Background thread that runs layout computations."""

import queue
import logging
import itertools
import threading
from typing import Any, Callable, Dict, Optional

from ..exceptions import WorkerUnavailableError
from .messages import ComputeMessage, ErrorMessage, ResultMessage

logger = logging.getLogger(__name__)

ComputeFn = Callable[..., Dict[str, Any]]
ReplyCallback = Callable[["LayoutWorker", Dict[str, Any]], None]

_worker_ids = itertools.count(1)


class LayoutWorker:
    """Owns one daemon thread and processes compute messages one at a time.

    Messages are plain dicts in both directions. Replies are delivered through
    ``on_message`` from the worker thread; the receiver is responsible for
    handing them over to its own thread.
    """

    def __init__(self, compute_fn: ComputeFn, on_message: ReplyCallback, name: Optional[str] = None):
        self.compute_fn = compute_fn
        self.on_message = on_message
        self.name = name or f"coauthor-layout-worker-{next(_worker_ids)}"
        self._inbox: "queue.Queue[Optional[Dict[str, Any]]]" = queue.Queue()
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the worker thread."""
        thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        try:
            thread.start()
        except RuntimeError as e:
            raise WorkerUnavailableError(f"Could not start layout worker thread: {e}") from e
        self._thread = thread
        logger.debug(f"Started {self.name}")

    def post(self, message: Dict[str, Any]) -> None:
        if self._stopped.is_set():
            raise WorkerUnavailableError(f"{self.name} has been stopped")
        self._inbox.put(message)

    def stop(self) -> None:
        """Ask the thread to exit once its current computation (if any) is done."""
        if not self._stopped.is_set():
            self._stopped.set()
            self._inbox.put(None)
            logger.debug(f"Stopping {self.name}")

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        request_id = -1
        try:
            while True:
                data = self._inbox.get()
                if data is None:
                    break
                request_id = data.get("request_id", -1)
                reply = self.handle(data)
                self.on_message(self, reply)
        except Exception as e:
            logger.exception(f"{self.name} crashed")
            self._stopped.set()
            self.on_message(self, ErrorMessage(
                request_id=request_id, error=f"Worker error: {e}", fatal=True
            ).model_dump())
        logger.debug(f"{self.name} exited")

    def handle(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Process one message and build the reply."""
        request_id = data.get("request_id", -1)
        try:
            message = ComputeMessage.model_validate(data)
            positions = self.compute_fn(
                [n.to_node() for n in message.nodes],
                [e.to_edge() for e in message.edges],
                message.viewport_width,
                message.viewport_height,
                message.center_node_id,
            )
            return ResultMessage(request_id=message.request_id, positions=positions).model_dump()
        except Exception as e:
            logger.error(f"Layout request {request_id} failed in {self.name}: {e}")
            return ErrorMessage(request_id=request_id, error=f"{type(e).__name__}: {e}").model_dump()
