# executors.py
"""
Advances non-particle ensembles tick by tick.

This module defines the two sample-parallel executors:

- DiscreteStepper applies a pure map n times per batch.
- BatchedIntegrator wraps an ODE integrator and turns it into a cheap
  per-tick pull: each sample owns a lookahead buffer of precomputed
  future states, which is refilled by one solver call whenever it runs
  dry.

A sample whose state becomes invalid, or whose integration fails, dies.
Such failures never abort the batch.
"""
import logging
from typing import Iterable, Optional

import numpy as np

from errors import DimensionMismatch, IntegrationFailure, OutOfBounds
from samples import SampleEnsemble
from transitions import DiscreteMap
from integrators import Integrator
from validity import valid_rows

# --- Data Contracts ---
#
# class LookaheadBuffers:
#   - One finite iterator of future states per slot. An iterator is never
#     restarted; it is replaced wholesale by fill() or clear().
#   - pop(i) -> Optional[np.ndarray]: next state or None when exhausted.
#
# class DiscreteStepper:
#   - advance(self, ensemble: SampleEnsemble, n_ticks: int) -> None:
#     - Side Effects: every live sample is mapped up to n_ticks times; a
#       sample that turns invalid dies and skips its remaining ticks.
#
# class BatchedIntegrator:
#   - seed(self, ensemble) -> None: first integration of every live sample.
#   - advance(self, ensemble, n_ticks) -> None: every live sample moves
#     exactly n_ticks forward or dies.
#   - reinit(self, ensemble, indices) -> None: drops the cached futures of
#     the given slots; they are re-integrated on the next advance.
#   - Invariants: len(self.buffers) == len(ensemble) after seed/advance.


def check_dimensions(expected: int, actual: int, what: str) -> None:
    """Raises DimensionMismatch if a function's arity does not match the data."""
    if expected != actual:
        msg = (
            f"Configuration error: {what} expects states of dimension {expected} "
            f"but the samples have dimension {actual}."
        )
        logging.critical(msg)
        raise DimensionMismatch(msg)


class LookaheadBuffers:
    """
    Per-sample caches of precomputed future states, paired with slots by index.
    """
    def __init__(self, size: int = 0):
        self._buffers = [iter(()) for _ in range(size)]

    def __len__(self) -> int:
        return len(self._buffers)

    def reset(self, size: int) -> None:
        self._buffers = [iter(()) for _ in range(size)]

    def fill(self, i: int, states: Iterable[np.ndarray]) -> None:
        self._buffers[i] = iter(states)

    def clear(self, i: int) -> None:
        self._buffers[i] = iter(())

    def pop(self, i: int) -> Optional[np.ndarray]:
        return next(self._buffers[i], None)


class DiscreteStepper:
    """
    Applies a discrete map to all live samples of an ensemble.
    """
    def __init__(self, transition: DiscreteMap):
        self.transition = transition
        # Tick time handed to the map; counts all ticks executed so far.
        self.tick = 0

    @property
    def dims(self) -> int:
        return self.transition.dims

    def seed(self, ensemble: SampleEnsemble) -> None:
        check_dimensions(self.dims, ensemble.dims, type(self.transition).__name__)
        self.tick = 0

    def reinit(self, ensemble: SampleEnsemble, indices: Iterable[int]) -> None:
        # Nothing is cached per sample.
        pass

    def advance(self, ensemble: SampleEnsemble, n_ticks: int) -> None:
        check_dimensions(self.dims, ensemble.dims, type(self.transition).__name__)
        live = ensemble.live_indices()
        for k in range(n_ticks):
            if live.size == 0:
                break
            with np.errstate(over="ignore", invalid="ignore"):
                next_states = self.transition.apply(ensemble.states[live], float(self.tick + k))
            valid = valid_rows(next_states)
            ensemble.states[live[valid]] = next_states[valid]
            for i in live[~valid]:
                ensemble.kill(i)
            if not valid.all():
                logging.debug(f"{np.count_nonzero(~valid)} samples left the valid region.")
            live = live[valid]
        self.tick += n_ticks


class BatchedIntegrator:
    """
    Lazily integrates every sample of an ensemble through an ODE system.
    """
    def __init__(self, integrator: Integrator):
        self.integrator = integrator
        self.buffers = LookaheadBuffers()

    @property
    def dims(self) -> int:
        return self.integrator.dims

    def seed(self, ensemble: SampleEnsemble) -> None:
        """
        Performs the first integration for a freshly created ensemble.
        """
        check_dimensions(self.dims, ensemble.dims, type(self.integrator.system).__name__)
        self.buffers.reset(len(ensemble))
        for i in ensemble.live_indices():
            try:
                self._refill(ensemble, i)
            except IntegrationFailure as err:
                self._remove(ensemble, i, err)

    def reinit(self, ensemble: SampleEnsemble, indices: Iterable[int]) -> None:
        for i in indices:
            self.buffers.clear(i)

    def advance(self, ensemble: SampleEnsemble, n_ticks: int) -> None:
        """
        Moves every live sample exactly n_ticks forward.

        Args:
            ensemble (SampleEnsemble): The ensemble to advance in place.
            n_ticks (int): Number of ticks.
        """
        if n_ticks <= 0:
            return
        if len(self.buffers) != len(ensemble):
            check_dimensions(self.dims, ensemble.dims, type(self.integrator.system).__name__)
            self.buffers.reset(len(ensemble))
        for i in ensemble.live_indices():
            try:
                for _ in range(n_ticks):
                    ensemble.set_state(i, self._next_state(ensemble, i))
            except (IntegrationFailure, OutOfBounds) as err:
                self._remove(ensemble, i, err)

    def _next_state(self, ensemble: SampleEnsemble, i: int) -> np.ndarray:
        state = self.buffers.pop(i)
        if state is None:
            self._refill(ensemble, i)
            state = self.buffers.pop(i)
            if state is None:
                raise IntegrationFailure(f"Integration of sample {i} returned no states.")
        return state

    def _refill(self, ensemble: SampleEnsemble, i: int) -> None:
        self.buffers.fill(i, self.integrator.integrate(ensemble.states[i]))

    def _remove(self, ensemble: SampleEnsemble, i: int, err: Exception) -> None:
        ensemble.kill(i)
        self.buffers.clear(i)
        logging.debug(f"Sample {i} removed: {err}")
