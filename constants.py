# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They are fundamental to the engine, such as the validity bounds of a
state, solver step sizes, or default force constants that are not
part of the experimental configuration.
"""

# --- Validity ---
# Every component of a live state must be finite and lie within these bounds.
VALID_MIN = -32767.0
VALID_MAX = 32767.0

# --- ODE integration ---
# Output spacing of one cached integration call (one tick per step).
ODE_STEP_SIZE = 0.1
# Bounds of the randomly drawn integration horizon (in model time units).
ODE_MIN_DURATION = 1.0
ODE_MAX_DURATION = 25.0
# Tolerances of the adaptive DOP853 solver.
DOP853_RTOL = 1e-2
DOP853_ATOL = 1e-2

# --- Particle integration ---
PARTICLE_STEP_SIZE = 0.01
# Ticks per force recomputation (horizon length L).
PARTICLE_INTEGRATION_STEPS = 10
# Smallest admissible particle mass.
MIN_PARTICLE_MASS = 2.220446049250313e-16

# --- Default force constants ---
# Scaled-down versions of the gravitational (6.673e-11) and Coulomb
# (8.988e9) constants.
DEFAULT_COLLISION_SCALE = 1.0
DEFAULT_MID_SCALE = 8.988
DEFAULT_LONG_SCALE = 6.673

DEFAULT_SEED = 42
