"""Batch-wise convergence control for the force simulation."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import numpy as np

from .force_atlas2 import SimulationState
from .layout_settings import ConvergenceSchedule, convergence_schedule

logger = logging.getLogger(__name__)


class Simulator(Protocol):
    def run(self, state: SimulationState, iterations: int) -> None: ...


@dataclass
class ConvergenceReport:
    """Outcome of one convergence run."""
    iterations: int = 0
    batches: int = 0
    final_displacement: float = float("inf")
    converged: bool = False
    # Set when the wall-clock budget ran out before convergence or the ceiling
    budget_exhausted: bool = False
    elapsed_seconds: float = 0.0


def total_displacement(previous: np.ndarray, current: np.ndarray) -> float:
    """Sum of per-node Euclidean displacement between two position snapshots."""
    if previous.size == 0:
        return 0.0
    delta = current - previous
    return float(np.hypot(delta[:, 0], delta[:, 1]).sum())


class ConvergenceController:
    """Runs the simulator in batches until movement settles or a limit is hit.

    Limits are the schedule's iteration ceiling and, optionally, a wall-clock
    ``time_budget`` in seconds checked after every batch.
    """

    def __init__(self, simulator: Simulator, schedule: Optional[ConvergenceSchedule] = None,
                 time_budget: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        if time_budget is not None and time_budget <= 0:
            raise ValueError(f"time_budget must be positive, got {time_budget}")
        self.simulator = simulator
        self.schedule = schedule
        self.time_budget = time_budget
        self.clock = clock

    def run(self, state: SimulationState) -> ConvergenceReport:
        """Iterate ``state`` in place and report how far it got.

        Never exceeds ``schedule.max_iterations``; the last batch is shortened
        if needed. Not converging is a normal outcome, not an error.
        """
        schedule = self.schedule or convergence_schedule(state.node_count)
        report = ConvergenceReport()

        if state.node_count == 0:
            report.final_displacement = 0.0
            report.converged = True
            return report

        started = self.clock()
        while report.iterations < schedule.max_iterations:
            batch = min(schedule.batch_size, schedule.max_iterations - report.iterations)
            previous = state.snapshot()

            self.simulator.run(state, batch)

            report.iterations += batch
            report.batches += 1
            report.final_displacement = total_displacement(previous, state.positions)
            report.elapsed_seconds = self.clock() - started
            logger.debug(f"Batch {report.batches}: {report.iterations} iterations, "
                         f"displacement {report.final_displacement:.2f}")

            if report.final_displacement < schedule.displacement_threshold:
                report.converged = True
                break
            if self.time_budget is not None and report.elapsed_seconds >= self.time_budget:
                if report.iterations < schedule.max_iterations:
                    report.budget_exhausted = True
                break

        if report.converged:
            outcome = "converged"
        elif report.budget_exhausted:
            outcome = "stopped at time budget"
        else:
            outcome = "stopped at ceiling"
        logger.info(f"Simulation {outcome} after {report.iterations} iterations "
                    f"in {report.elapsed_seconds:.2f}s "
                    f"(displacement {report.final_displacement:.2f}, "
                    f"threshold {schedule.displacement_threshold:.2f})")
        return report
