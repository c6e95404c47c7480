# samples.py
"""
Manages the state of an ensemble of non-particle samples.

This module defines the SampleEnsemble class, which stores every sample
of an ensemble in a single NumPy array together with a boolean mask of
live slots. Slots are never removed: a dead sample keeps its index and
its row is filled with NaN until it is reinitialized.
"""
import logging
from typing import List, Optional, Sequence

import numpy as np

from distributions import sample_states, reinit_distributions
from errors import OutOfBounds
from validity import is_valid

# --- Data Contracts ---
#
# class SampleEnsemble:
#   - __init__(self, states: np.ndarray, alive: Optional[np.ndarray] = None):
#     - Inputs:
#       - states: array of shape (N, d) (or (N,) for d == 1).
#       - alive: optional boolean array of shape (N,). Defaults to all live.
#     - Invariants:
#       - self.states is a float64 array of shape (N, d).
#       - self.alive is a bool array of shape (N,).
#       - Rows of dead slots are NaN.
#       - N never changes after construction.
#
#   - set_state(self, i: int, value: np.ndarray) -> None:
#     - Raises OutOfBounds if value is not valid. The slot is left untouched
#       in that case; the caller decides whether the sample dies.
#
#   - reinit(self, distributions, rng) -> np.ndarray:
#     - Side Effects: Draws fresh states for all dead slots only.
#     - Outputs: Sorted indices of the refilled slots.

class SampleEnsemble:
    """
    A container for all samples, managing their state via a NumPy array.
    """
    def __init__(self, states: np.ndarray, alive: Optional[np.ndarray] = None):
        states = np.array(states, dtype=np.float64)
        if states.ndim == 1:
            states = states.reshape(-1, 1)
        self.states = states
        if alive is None:
            alive = np.ones(states.shape[0], dtype=bool)
        self.alive = np.array(alive, dtype=bool)
        self.states[~self.alive] = np.nan

    @classmethod
    def from_distributions(
        cls, num_samples: int, distributions: Sequence, rng: np.random.Generator
    ) -> "SampleEnsemble":
        """
        Creates an ensemble by drawing every state from the given distributions.

        Args:
            num_samples (int): Number of samples (points per axis for Mesh columns).
            distributions (Sequence): One distribution per state component.
            rng (np.random.Generator): Source of randomness.
        """
        ensemble = cls(sample_states(num_samples, distributions, rng))
        logging.info(
            f"SampleEnsemble initialized with {len(ensemble)} samples "
            f"of dimension {ensemble.dims}."
        )
        return ensemble

    def __len__(self) -> int:
        return self.states.shape[0]

    @property
    def dims(self) -> int:
        return self.states.shape[1]

    def live_indices(self) -> np.ndarray:
        return np.flatnonzero(self.alive)

    def dead_indices(self) -> np.ndarray:
        return np.flatnonzero(~self.alive)

    def live_count(self) -> int:
        """The number of currently valid samples."""
        return int(np.count_nonzero(self.alive))

    def live_states(self) -> np.ndarray:
        return self.states[self.alive]

    def kill(self, i: int) -> None:
        self.alive[i] = False
        self.states[i] = np.nan

    def set_state(self, i: int, value: np.ndarray) -> None:
        if not is_valid(value):
            raise OutOfBounds(f"Sample {i} left the valid region: {value}")
        self.states[i] = value

    def reinit(self, distributions: Sequence, rng: np.random.Generator) -> np.ndarray:
        """
        Refills every dead slot with a fresh state. Live samples are untouched.
        """
        new_indices = self.dead_indices()
        if new_indices.size > 0:
            self.states[new_indices] = sample_states(
                new_indices.size, reinit_distributions(distributions), rng
            )
            self.alive[new_indices] = True
            logging.debug(f"Reinitialized {new_indices.size} dead samples.")
        return new_indices

    def copy(self) -> "SampleEnsemble":
        return SampleEnsemble(self.states.copy(), self.alive.copy())

    def split(self, num_chunks: int) -> List["SampleEnsemble"]:
        """Partitions the slots into contiguous, independent ensembles."""
        bounds = np.array_split(np.arange(len(self)), num_chunks)
        return [
            SampleEnsemble(self.states[idx].copy(), self.alive[idx].copy())
            for idx in bounds
            if idx.size > 0
        ]

    @classmethod
    def concatenate(cls, chunks: Sequence["SampleEnsemble"]) -> "SampleEnsemble":
        states = np.concatenate([chunk.states for chunk in chunks])
        alive = np.concatenate([chunk.alive for chunk in chunks])
        return cls(states, alive)
