# particle.py
"""
Manages the state of all particles in the simulation.

This module defines the ParticleSystem class, which is responsible for
initializing and storing particle data (kinematics, scalar attributes,
forces, collision markers) in efficient NumPy arrays, and the
ParticleParams class holding the force-law configuration.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from constants import (
    DEFAULT_COLLISION_SCALE, DEFAULT_MID_SCALE, DEFAULT_LONG_SCALE,
    PARTICLE_INTEGRATION_STEPS, PARTICLE_STEP_SIZE, MIN_PARTICLE_MASS
)
from distributions import sample_states, reinit_distributions
from errors import DimensionMismatch, OutOfBounds
from validity import is_valid

# --- Data Contracts ---
#
# class ParticleSystem:
#   - __init__(self, short, mid, mass, kinematics, alive=None):
#     - Inputs:
#       - short: (N,) collision/parity attribute.
#       - mid: (N,) charge.
#       - mass: (N,) mass; stored as max(|mass|, MIN_PARTICLE_MASS).
#       - kinematics: (N, 2d) position followed by velocity, d in {2, 3}.
#       - alive: optional (N,) bool mask.
#     - Invariants:
#       - self.radius == sqrt(self.mass) for every live particle.
#       - self.force is (N, d); self.has_collided is (N,) bool.
#       - Kinematics of dead particles are NaN.
#       - N never changes after construction.
#
#   - absorb(self, j: int, i: int) -> None:
#     - Side Effects: particle j becomes the inelastic merge of i and j;
#       particle i dies.
#
# class ParticleParams:
#   - collision_scale: float (collision detection is active iff != 0)
#   - mid_scale: float, long_scale: float
#   - integration_steps: int (horizon length L), step_size: float
#   - dims: int, spatial dimension of the particles.
#   - Errors: ValueError unless integration_steps >= 1, step_size > 0 and
#     dims is 2 or 3.

@dataclass
class ParticleParams:
    collision_scale: float = DEFAULT_COLLISION_SCALE
    mid_scale: float = DEFAULT_MID_SCALE
    long_scale: float = DEFAULT_LONG_SCALE
    integration_steps: int = PARTICLE_INTEGRATION_STEPS
    step_size: float = PARTICLE_STEP_SIZE
    dims: int = 2

    def __post_init__(self):
        if self.integration_steps < 1 or self.step_size <= 0.0 or self.dims not in (2, 3):
            msg = (
                f"Configuration error: Particle horizon needs integration_steps >= 1, "
                f"step_size > 0 and dims in (2, 3); got integration_steps="
                f"{self.integration_steps}, step_size={self.step_size}, dims={self.dims}."
            )
            logging.critical(msg)
            raise ValueError(msg)

    @property
    def detect_collisions(self) -> bool:
        return self.collision_scale != 0.0

    @classmethod
    def from_config(cls, params: Dict[str, Any]) -> "ParticleParams":
        return cls(
            collision_scale=float(params.get('collision_scale', DEFAULT_COLLISION_SCALE)),
            mid_scale=float(params.get('mid_scale', DEFAULT_MID_SCALE)),
            long_scale=float(params.get('long_scale', DEFAULT_LONG_SCALE)),
            integration_steps=int(params.get('integration_steps', PARTICLE_INTEGRATION_STEPS)),
            step_size=float(params.get('step_size', PARTICLE_STEP_SIZE)),
            dims=int(params.get('dims', 2)),
        )


def calc_radius(mass):
    return np.sqrt(mass)


class ParticleSystem:
    """
    A container for all particles, managing their state via NumPy arrays.
    """
    def __init__(self, short, mid, mass, kinematics, alive: Optional[np.ndarray] = None):
        """
        Initializes the particle system.

        Args:
            short: Collision/parity attribute per particle.
            mid: Charge per particle.
            mass: Mass per particle.
            kinematics: Positions followed by velocities, shape (N, 2d).
            alive: Optional mask of live particles.
        """
        self.kinematics = np.array(kinematics, dtype=np.float64)
        particle_count, width = self.kinematics.shape
        if width not in (4, 6):
            msg = (
                f"Configuration error: Particle kinematics must have 4 or 6 "
                f"components (2D or 3D), got {width}."
            )
            logging.critical(msg)
            raise DimensionMismatch(msg)
        self.short = np.array(short, dtype=np.float64)
        self.mid = np.array(mid, dtype=np.float64)
        self.mass = np.maximum(np.abs(np.array(mass, dtype=np.float64)), MIN_PARTICLE_MASS)
        self.radius = calc_radius(self.mass)
        self.force = np.zeros((particle_count, width // 2), dtype=np.float64)
        self.has_collided = np.zeros(particle_count, dtype=bool)
        if alive is None:
            alive = np.ones(particle_count, dtype=bool)
        self.alive = np.array(alive, dtype=bool)
        self.kinematics[~self.alive] = np.nan

    @classmethod
    def from_init_states(cls, init_states: np.ndarray) -> "ParticleSystem":
        """
        Builds particles from rows of (short, mid, mass, position..., velocity...).
        """
        init_states = np.asarray(init_states, dtype=np.float64)
        return cls(
            init_states[:, 0], init_states[:, 1], init_states[:, 2], init_states[:, 3:]
        )

    @classmethod
    def from_distributions(
        cls, num_particles: int, distributions: Sequence, rng: np.random.Generator
    ) -> "ParticleSystem":
        particles = cls.from_init_states(sample_states(num_particles, distributions, rng))
        logging.info(
            f"ParticleSystem initialized with {len(particles)} particles "
            f"in {particles.dims} dimensions."
        )
        return particles

    def __len__(self) -> int:
        return self.kinematics.shape[0]

    def copy(self) -> "ParticleSystem":
        """Independent copy; forces and collision markers start cleared."""
        return ParticleSystem(
            self.short.copy(), self.mid.copy(), self.mass.copy(),
            self.kinematics.copy(), self.alive.copy()
        )

    @property
    def dims(self) -> int:
        """Spatial dimension of the particles."""
        return self.kinematics.shape[1] // 2

    @property
    def positions(self) -> np.ndarray:
        return self.kinematics[:, :self.dims]

    @property
    def velocities(self) -> np.ndarray:
        return self.kinematics[:, self.dims:]

    def live_indices(self) -> np.ndarray:
        return np.flatnonzero(self.alive)

    def dead_indices(self) -> np.ndarray:
        return np.flatnonzero(~self.alive)

    def live_count(self) -> int:
        return int(np.count_nonzero(self.alive))

    def kill(self, i: int) -> None:
        self.alive[i] = False
        self.kinematics[i] = np.nan
        self.force[i] = 0.0
        self.has_collided[i] = False

    def set_kinematics(self, i: int, value: np.ndarray) -> None:
        if not is_valid(value):
            raise OutOfBounds(f"Particle {i} left the valid region: {value}")
        self.kinematics[i] = value

    def absorb(self, j: int, i: int) -> None:
        """
        Inelastic merge: particle j absorbs particle i.

        Position and velocity of j become the mass-weighted averages of
        both particles, the scalar attributes and forces are summed and
        the radius follows the new mass. Particle i dies.
        """
        total_mass = self.mass[i] + self.mass[j]
        w_i = self.mass[i] / total_mass
        w_j = self.mass[j] / total_mass
        self.kinematics[j] = w_i * self.kinematics[i] + w_j * self.kinematics[j]
        self.short[j] += self.short[i]
        self.mid[j] += self.mid[i]
        self.mass[j] = total_mass
        self.radius[j] = calc_radius(total_mass)
        self.force[j] += self.force[i]
        self.kill(i)

    def reinit(self, distributions: Sequence, rng: np.random.Generator) -> np.ndarray:
        """
        Recreates every dead particle from the distributions, in place.
        """
        new_indices = self.dead_indices()
        if new_indices.size == 0:
            return new_indices
        fresh = ParticleSystem.from_init_states(
            sample_states(new_indices.size, reinit_distributions(distributions), rng)
        )
        self.short[new_indices] = fresh.short
        self.mid[new_indices] = fresh.mid
        self.mass[new_indices] = fresh.mass
        self.radius[new_indices] = fresh.radius
        self.kinematics[new_indices] = fresh.kinematics
        self.force[new_indices] = 0.0
        self.has_collided[new_indices] = False
        self.alive[new_indices] = True
        logging.debug(f"Reinitialized {new_indices.size} dead particles.")
        return new_indices
