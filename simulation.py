# simulation.py
"""
Handles the particle physics macro-step.

This module defines the ParticleStepScheduler class, which advances a
ParticleSystem tick by tick. Forces are only recomputed every L ticks
(one horizon): at that barrier all pairwise forces are accumulated,
collisions are resolved and a fresh horizon of L kinematic states is
integrated for every particle with its force frozen. In between, each
tick just pops the next cached state.
"""
import logging
from typing import Iterable

from collisions import CollisionResolver
from errors import OutOfBounds
from executors import LookaheadBuffers, check_dimensions
from forces import ForceAccumulator
from integrators import KinematicIntegrator
from particle import ParticleParams, ParticleSystem

# --- Data Contracts ---
#
# class ParticleStepScheduler:
#   - __init__(self, params: ParticleParams):
#     - Inputs: force-law parameters with horizon length
#       params.integration_steps (L) and integration step size.
#
#   - execute(self, particles: ParticleSystem, n_ticks: int) -> None:
#     - Side Effects: every live particle advances n_ticks kinematic
#       states. A force/collision barrier runs whenever the current
#       horizon is used up (and before the very first tick).
#     - Invariants: Particle count remains constant; particles only
#       become dead (merge or invalid state), never alive.
#
#   - seed(self, particles) / reinit(self, particles, indices): buffer
#     bookkeeping. Reinitialized particles stay at rest until the next
#     barrier integrates them.

class ParticleStepScheduler:
    """
    Orchestrates force accumulation, collision resolution and integration.
    """
    def __init__(self, params: ParticleParams):
        """
        Initializes the scheduler.

        Args:
            params (ParticleParams): Force law and horizon configuration.
        """
        self.params = params
        self.force_accumulator = ForceAccumulator()
        self.collision_resolver = CollisionResolver()
        self.integrator = KinematicIntegrator(params.step_size, params.integration_steps)
        self.buffers = LookaheadBuffers()
        # Ticks consumed from the current horizon; a full counter forces a barrier.
        self.counter = params.integration_steps
        self.macro_steps = 0

        logging.info(
            f"Particle scheduler initialized: horizon of {params.integration_steps} ticks, "
            f"collision detection {'on' if params.detect_collisions else 'off'}."
        )

    @property
    def dims(self) -> int:
        return self.params.dims

    def seed(self, particles: ParticleSystem) -> None:
        check_dimensions(self.dims, particles.dims, "Particle force law")
        self.buffers.reset(len(particles))
        self.counter = self.params.integration_steps

    def reinit(self, particles: ParticleSystem, indices: Iterable[int]) -> None:
        for i in indices:
            self.buffers.clear(i)

    def execute(self, particles: ParticleSystem, n_ticks: int) -> None:
        """
        Advances the particles by n_ticks.
        """
        if n_ticks <= 0 or particles.live_count() == 0:
            return
        if len(self.buffers) != len(particles):
            self.seed(particles)
        for _ in range(n_ticks):
            if self.counter >= self.params.integration_steps:
                self.macro_step(particles)
            self.counter += 1
            self._pop_states(particles)

    # The scheduler is driven like the sample-parallel executors.
    advance = execute

    def macro_step(self, particles: ParticleSystem) -> None:
        """
        Synchronization barrier: forces, collisions, then a fresh horizon.
        """
        graph = self.force_accumulator.reset_and_accumulate(particles, self.params)
        self.collision_resolver.resolve(particles, graph, self.params)

        horizon = self.integrator.integrate(particles)
        for i in particles.live_indices():
            self.buffers.fill(i, horizon[:, i])
        self.counter = 0
        self.macro_steps += 1

        logging.debug(
            f"Macro-step {self.macro_steps}: {particles.live_count()} live particles."
        )

    def _pop_states(self, particles: ParticleSystem) -> None:
        for i in particles.live_indices():
            state = self.buffers.pop(i)
            if state is None:
                continue
            try:
                particles.set_kinematics(i, state)
            except OutOfBounds as err:
                particles.kill(i)
                self.buffers.clear(i)
                logging.debug(f"Particle {i} removed: {err}")
