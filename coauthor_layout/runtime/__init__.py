"""Execution host, worker thread, cache and service."""

from .execution_host import ExecutionHost, HostState
from .layout_worker import LayoutWorker
from .layout_cache import LayoutCache, make_cache_key
from .layout_service import CoauthorLayoutService

__all__ = [
    "ExecutionHost", "HostState", "LayoutWorker",
    "LayoutCache", "make_cache_key", "CoauthorLayoutService",
]
