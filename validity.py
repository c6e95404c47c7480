# validity.py
"""
The validity predicate shared by every executor.

A state is valid iff every component is finite and within the symmetric
bounds from `constants`. A sample whose state turns invalid "dies".
"""
import numpy as np
from numba import jit
from constants import VALID_MIN, VALID_MAX

@jit(nopython=True)
def is_valid(state):
    """Returns True if every component of a 1-D state is finite and in bounds."""
    for x in state:
        if not np.isfinite(x) or x < VALID_MIN or x > VALID_MAX:
            return False
    return True

@jit(nopython=True)
def valid_rows(states):
    """Row-wise `is_valid` for a 2-D array of states."""
    n = states.shape[0]
    mask = np.empty(n, dtype=np.bool_)
    for i in range(n):
        mask[i] = is_valid(states[i])
    return mask
