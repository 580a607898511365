"""
Terminators and budget control for NestedTune.

Terminators are pure checks over a :class:`BudgetState`. The
:class:`BudgetController` owns that state, refreshes it from the archive after
every batch and latches into ``EXHAUSTED`` as soon as its terminator fires.
"""

import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Sequence

import numpy as np

from nestedtune.core.config import CONFIG
from nestedtune.core.exceptions import BudgetMisconfigured


@dataclass(frozen=True)
class BudgetState:
    """
    Snapshot of the resources used by a tuning run.

    Attributes:
        n_evals: Evaluations appended to the archive so far
        n_batch: Batches appended so far
        elapsed: Seconds since the run started
        now: Wall-clock time of the snapshot
        best_trace: Best-so-far score after each evaluation
        minimize: Better direction of the measure
    """

    n_evals: int = 0
    n_batch: int = 0
    elapsed: float = 0.0
    now: datetime = field(default_factory=datetime.now)
    best_trace: Sequence[float] = ()
    minimize: bool = False

    @property
    def best_score(self) -> float:
        return float(self.best_trace[-1]) if len(self.best_trace) else float("nan")


class Terminator:
    """Base class for budget criteria."""

    name = "terminator"

    def is_terminated(self, state: BudgetState) -> bool:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class EvalsTerminator(Terminator):
    """Stops once ``n_evals`` configurations have been evaluated."""

    name = "evals"

    def __init__(self, n_evals: int) -> None:
        if not isinstance(n_evals, (int, np.integer)) or isinstance(n_evals, bool) or n_evals < 1:
            raise BudgetMisconfigured(f"n_evals must be a positive integer, got {n_evals!r}")
        self.n_evals = int(n_evals)

    def is_terminated(self, state: BudgetState) -> bool:
        return state.n_evals >= self.n_evals

    def __repr__(self) -> str:
        return f"EvalsTerminator(n_evals={self.n_evals})"


class RunTimeTerminator(Terminator):
    """Stops once ``secs`` seconds have elapsed since the run started."""

    name = "run_time"

    def __init__(self, secs: float) -> None:
        if secs is None or not secs > 0 or math.isinf(secs):
            raise BudgetMisconfigured(f"secs must be a positive, finite number, got {secs!r}")
        self.secs = float(secs)

    def is_terminated(self, state: BudgetState) -> bool:
        return state.elapsed >= self.secs

    def __repr__(self) -> str:
        return f"RunTimeTerminator(secs={self.secs})"


class ClockTimeTerminator(Terminator):
    """Stops once the wall clock passes ``stop_time``."""

    name = "clock_time"

    def __init__(self, stop_time: datetime) -> None:
        if not isinstance(stop_time, datetime):
            raise BudgetMisconfigured(f"stop_time must be a datetime, got {stop_time!r}")
        self.stop_time = stop_time

    def is_terminated(self, state: BudgetState) -> bool:
        return state.now >= self.stop_time

    def __repr__(self) -> str:
        return f"ClockTimeTerminator(stop_time={self.stop_time.isoformat()})"


class PerfReachedTerminator(Terminator):
    """Stops once the best score reaches ``level`` in the measure's direction."""

    name = "perf_reached"

    def __init__(self, level: float) -> None:
        if level is None or math.isnan(level):
            raise BudgetMisconfigured("level must be a number")
        self.level = float(level)

    def is_terminated(self, state: BudgetState) -> bool:
        best = state.best_score
        if math.isnan(best):
            return False
        return best <= self.level if state.minimize else best >= self.level

    def __repr__(self) -> str:
        return f"PerfReachedTerminator(level={self.level})"


class StagnationTerminator(Terminator):
    """
    Stops when the best score stopped improving.

    The run is stagnant when at least ``iters`` evaluations exist and the
    best-so-far improved by no more than ``threshold`` over the last ``iters``
    evaluations. The reference is the best-so-far just before that window, or
    the first evaluation when there are exactly ``iters`` of them.
    """

    name = "stagnation"

    def __init__(
        self,
        iters: int = CONFIG["stagnation"]["iters"],
        threshold: float = CONFIG["stagnation"]["threshold"]
    ) -> None:
        if not isinstance(iters, (int, np.integer)) or isinstance(iters, bool) or iters < 1:
            raise BudgetMisconfigured(f"iters must be a positive integer, got {iters!r}")
        if threshold is None or not threshold >= 0:
            raise BudgetMisconfigured(f"threshold must be non-negative, got {threshold!r}")
        self.iters = int(iters)
        self.threshold = float(threshold)

    def is_terminated(self, state: BudgetState) -> bool:
        trace = state.best_trace
        n = len(trace)
        if n < self.iters:
            return False
        current = trace[-1]
        reference = trace[n - self.iters - 1] if n > self.iters else trace[0]
        if math.isnan(current):
            return True
        if math.isnan(reference):
            return False
        improvement = reference - current if state.minimize else current - reference
        return improvement <= self.threshold or math.isclose(improvement, self.threshold, abs_tol=1e-12)

    def __repr__(self) -> str:
        return f"StagnationTerminator(iters={self.iters}, threshold={self.threshold})"


class ComboTerminator(Terminator):
    """
    Combines terminators.

    With ``any=True`` the combination stops as soon as one member stops,
    otherwise only when all members stop.
    """

    name = "combo"

    def __init__(self, terminators: Sequence[Terminator], any: bool = True) -> None:
        terminators = list(terminators or [])
        if not terminators:
            raise BudgetMisconfigured("ComboTerminator needs at least one terminator")
        for t in terminators:
            if not isinstance(t, Terminator):
                raise BudgetMisconfigured(f"Not a terminator: {t!r}")
        self.terminators = terminators
        self.any = any

    def is_terminated(self, state: BudgetState) -> bool:
        flags = [t.is_terminated(state) for t in self.terminators]
        return any(flags) if self.any else all(flags)

    def __repr__(self) -> str:
        mode = "any" if self.any else "all"
        return f"ComboTerminator({mode}: {', '.join(map(repr, self.terminators))})"


class NoneTerminator(Terminator):
    """Never stops; the tuner must run out of candidates on its own."""

    name = "none"

    def is_terminated(self, state: BudgetState) -> bool:
        return False


TERMINATORS = {
    "evals": EvalsTerminator,
    "run_time": RunTimeTerminator,
    "clock_time": ClockTimeTerminator,
    "perf_reached": PerfReachedTerminator,
    "stagnation": StagnationTerminator,
    "combo": ComboTerminator,
    "none": NoneTerminator,
}


def terminator(name: str, **kwargs: Any) -> Terminator:
    """
    Build a terminator by name.

    Example:
        terminator("evals", n_evals=20)
        terminator("combo", terminators=[terminator("evals", n_evals=50),
                                         terminator("run_time", secs=60)])
    """
    if name not in TERMINATORS:
        raise ValueError(f"Unsupported terminator: {name}. Supported: {', '.join(TERMINATORS)}")
    return TERMINATORS[name](**kwargs)


class BudgetController:
    """
    Tracks the budget of one tuning run.

    ``update`` is called by the tuning instance after every batch; everything
    else only reads the current state.
    """

    ACTIVE = "ACTIVE"
    EXHAUSTED = "EXHAUSTED"

    def __init__(self, terminator: Terminator, minimize: bool = False) -> None:
        if not isinstance(terminator, Terminator):
            raise BudgetMisconfigured(f"Not a terminator: {terminator!r}")
        self.terminator = terminator
        self.minimize = minimize
        self.state = BudgetState(minimize=minimize)
        self._status = self.ACTIVE
        self._start: Optional[float] = None

    @property
    def status(self) -> str:
        return self._status

    @property
    def is_exhausted(self) -> bool:
        return self._status == self.EXHAUSTED

    def start(self) -> None:
        if self._start is None:
            self._start = time.perf_counter()

    def update(self, archive: Any) -> str:
        """
        Refresh the budget state from the archive and re-check the terminator.

        Args:
            archive: The run's Archive

        Returns:
            The (possibly new) status
        """
        self.start()
        if self.is_exhausted:
            return self._status
        self.state = BudgetState(
            n_evals=archive.n_evals,
            n_batch=archive.n_batch,
            elapsed=time.perf_counter() - self._start,
            now=datetime.now(),
            best_trace=tuple(archive.best_trace()),
            minimize=self.minimize
        )
        if self.terminator.is_terminated(self.state):
            self._status = self.EXHAUSTED
        return self._status
