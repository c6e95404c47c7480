# forces.py
"""
Pairwise forces and collision detection between particles.

The force on every particle is the sum of a mid-range (Coulomb-like,
inverse-cube in the scalar) and a long-range (gravity-like,
inverse-square) contribution from every other live particle. Each
unordered pair is visited exactly once and its force is added to one
particle and subtracted from the other, so the forces of the whole
ensemble always sum to zero.
"""
import logging

import numpy as np
from numba import jit
from numba.core import types
from numba.typed import List

from collisions import CollisionGraph
from particle import ParticleParams, ParticleSystem

# --- Data Contracts ---
#
# class ForceAccumulator:
#   - reset_and_accumulate(self, particles: ParticleSystem,
#                          params: ParticleParams) -> CollisionGraph:
#     - Side Effects: zeroes force and has_collided of every live particle,
#       then accumulates all pairwise forces and marks colliding particles.
#     - Outputs: CollisionGraph keyed by particle index with successor
#       offsets (offset k of particle i is particle i + 1 + k).
#     - Invariants: sum(particles.force[alive]) == 0 up to rounding.

@jit(nopython=True)
def _accumulate_forces_numba(
    positions, mid, mass, radius, alive, force, has_collided,
    mid_scale, long_scale, detect_collisions, collisions
):
    """
    Numba-jitted pairwise force loop with collision detection.

    Particle i is updated against the tail views `[i + 1:]` of the same
    arrays, so every successor is addressed by its local offset and each
    pair is written exactly once.
    """
    collisions.clear()
    particle_count, dims = positions.shape

    for i in range(particle_count - 1):
        if not alive[i]:
            continue
        pos_i = positions[i]
        force_i = force[i]

        # Successors of i
        tail_pos = positions[i + 1:]
        tail_mid = mid[i + 1:]
        tail_mass = mass[i + 1:]
        tail_radius = radius[i + 1:]
        tail_alive = alive[i + 1:]
        tail_force = force[i + 1:]
        tail_collided = has_collided[i + 1:]

        for k in range(tail_pos.shape[0]):
            if not tail_alive[k]:
                continue
            distance_sq = 0.0
            for c in range(dims):
                delta = tail_pos[k, c] - pos_i[c]
                distance_sq += delta * delta
            distance = np.sqrt(distance_sq)

            # Coincident particles exert no force on each other.
            if distance > 0.0:
                # positive means attraction
                scalar = (
                    -mid_scale * mid[i] * tail_mid[k] / distance ** 3
                    + long_scale * mass[i] * tail_mass[k] / distance ** 2
                )
                for c in range(dims):
                    f = scalar * (tail_pos[k, c] - pos_i[c])
                    force_i[c] += f
                    tail_force[k, c] -= f

            if detect_collisions and distance < radius[i] + tail_radius[k]:
                collisions.append((i, k))
                has_collided[i] = True
                tail_collided[k] = True


class ForceAccumulator:
    """
    Computes all pairwise forces of a particle ensemble and records collisions.
    """
    def __init__(self):
        # Numba requires typed data structures for JIT compilation.
        self._collisions = List.empty_list(types.UniTuple(types.int64, 2))

    def reset_and_accumulate(self, particles: ParticleSystem, params: ParticleParams) -> CollisionGraph:
        """
        Resets forces and collision markers, then accumulates pairwise forces.

        Args:
            particles (ParticleSystem): The particles, updated in place.
            params (ParticleParams): Force-law scales and collision switch.

        Returns:
            CollisionGraph: Colliding pairs found during the pass.
        """
        alive = particles.alive
        particles.force[alive] = 0.0
        particles.has_collided[alive] = False

        _accumulate_forces_numba(
            particles.positions, particles.mid, particles.mass, particles.radius,
            alive, particles.force, particles.has_collided,
            params.mid_scale, params.long_scale, params.detect_collisions,
            self._collisions
        )

        graph = CollisionGraph()
        for i, offset in self._collisions:
            graph.add(i, offset)
        if graph:
            logging.debug(f"Detected {len(self._collisions)} colliding pairs.")
        return graph
