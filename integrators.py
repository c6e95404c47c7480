# integrators.py
"""
ODE solver backends.

An integrator turns a single state into a finite sequence of future
states, one per tick. Two backends serve the non-particle ensembles:

- Rk4Integrator: classic fixed-step Runge-Kutta. It never fails; a
  diverging trajectory is cut at the first non-finite value and left for
  the validity check to reject.
- Dop853Integrator: adaptive 8th-order Dormand-Prince via SciPy. A solver
  failure is reported as IntegrationFailure.

KinematicIntegrator advances all particles at once with their forces
frozen over the whole horizon.
"""
import logging
from typing import Optional

import numpy as np
from numba import jit
from scipy.integrate import solve_ivp

from constants import (
    ODE_STEP_SIZE, ODE_MIN_DURATION, ODE_MAX_DURATION, DOP853_RTOL, DOP853_ATOL,
    PARTICLE_STEP_SIZE, PARTICLE_INTEGRATION_STEPS
)
from errors import IntegrationFailure
from transitions import OdeSystem

# --- Data Contracts ---
#
# class Integrator:
#   - __init__(self, system: OdeSystem, step_size: float = ODE_STEP_SIZE,
#              fixed_duration: Optional[float] = None,
#              min_duration: float = ODE_MIN_DURATION,
#              max_duration: float = ODE_MAX_DURATION,
#              rng: Optional[np.random.Generator] = None):
#     - fixed_duration: if set, every call integrates over exactly this
#       duration; otherwise a duration is drawn per call from
#       [min_duration, max_duration).
#
#   - integrate(self, y0: np.ndarray) -> np.ndarray:
#     - Outputs: array of shape (k, d), k >= 1, the trajectory at the
#       step_size grid WITHOUT its first point (which equals y0).
#     - Errors: IntegrationFailure if the solver does not converge.
#
# class KinematicIntegrator:
#   - integrate(self, particles) -> np.ndarray:
#     - Outputs: array of shape (num_steps, N, 2d). Rows of dead particles
#       are NaN.


class Integrator:
    """Common horizon handling of the solver backends."""
    def __init__(
        self,
        system: OdeSystem,
        step_size: float = ODE_STEP_SIZE,
        fixed_duration: Optional[float] = None,
        min_duration: float = ODE_MIN_DURATION,
        max_duration: float = ODE_MAX_DURATION,
        rng: Optional[np.random.Generator] = None,
    ):
        if fixed_duration is None and not 0.0 < min_duration < max_duration:
            msg = (
                f"Configuration error: Integration duration range "
                f"[{min_duration}, {max_duration}) is empty or negative."
            )
            logging.critical(msg)
            raise ValueError(msg)
        self.system = system
        self.step_size = step_size
        self.fixed_duration = fixed_duration
        self.min_duration = min_duration
        self.max_duration = max_duration
        self.rng = rng if rng is not None else np.random.default_rng()

    @property
    def dims(self) -> int:
        return self.system.dims

    def integration_time(self) -> float:
        if self.fixed_duration is not None:
            return self.fixed_duration
        return float(self.rng.uniform(self.min_duration, self.max_duration))

    def time_grid(self, duration: float) -> np.ndarray:
        num_steps = max(1, int(round(duration / self.step_size)))
        return np.arange(num_steps + 1) * self.step_size

    def integrate(self, y0: np.ndarray) -> np.ndarray:
        raise NotImplementedError


class Rk4Integrator(Integrator):
    def integrate(self, y0):
        times = self.time_grid(self.integration_time())
        h = self.step_size
        f = self.system.rhs
        y = np.array(y0, dtype=np.float64)
        trajectory = np.empty((times.size, y.size), dtype=np.float64)
        trajectory[0] = y
        last = times.size
        with np.errstate(over="ignore", invalid="ignore"):
            for k in range(1, times.size):
                t = times[k - 1]
                k1 = f(t, y)
                k2 = f(t + 0.5 * h, y + 0.5 * h * k1)
                k3 = f(t + 0.5 * h, y + 0.5 * h * k2)
                k4 = f(t + h, y + h * k3)
                y = y + h / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
                trajectory[k] = y
                if not np.all(np.isfinite(y)):
                    last = k + 1
                    break
        return trajectory[1:last]


class Dop853Integrator(Integrator):
    def __init__(self, system, rtol: float = DOP853_RTOL, atol: float = DOP853_ATOL, **kwargs):
        super().__init__(system, **kwargs)
        self.rtol = rtol
        self.atol = atol

    def integrate(self, y0):
        times = self.time_grid(self.integration_time())
        with np.errstate(over="ignore", invalid="ignore"):
            solution = solve_ivp(
                self.system,
                (times[0], times[-1]),
                np.asarray(y0, dtype=np.float64),
                method="DOP853",
                t_eval=times,
                rtol=self.rtol,
                atol=self.atol,
            )
        if not solution.success:
            raise IntegrationFailure(f"DOP853 did not converge: {solution.message}")
        return np.ascontiguousarray(solution.y.T[1:])


INTEGRATORS = {
    "rk4": Rk4Integrator,
    "dop853": Dop853Integrator,
}


def make_integrator(system: OdeSystem, solver: Optional[str] = None, **kwargs) -> Integrator:
    """Builds the integrator for a system, defaulting to the system's preferred solver."""
    solver = solver or system.solver
    if solver not in INTEGRATORS:
        msg = (
            f"Configuration error: Unknown solver '{solver}'. "
            f"Expected one of {sorted(INTEGRATORS)}."
        )
        logging.critical(msg)
        raise ValueError(msg)
    return INTEGRATORS[solver](system, **kwargs)


@jit(nopython=True)
def _integrate_kinematics_numba(kinematics, accelerations, alive, step_size, num_steps):
    """
    Numba-jitted RK4 integration of d(pos)/dt = vel, d(vel)/dt = acc for
    every live particle, with each particle's acceleration held constant.
    """
    particle_count, width = kinematics.shape
    dims = width // 2
    h = step_size
    horizon = np.full((num_steps, particle_count, width), np.nan)

    for i in range(particle_count):
        if not alive[i]:
            continue
        y = kinematics[i].copy()
        acc = accelerations[i]
        for s in range(num_steps):
            for c in range(dims):
                # Velocity stages; the acceleration stages are all acc[c].
                v1 = y[dims + c]
                v2 = v1 + 0.5 * h * acc[c]
                v3 = v1 + 0.5 * h * acc[c]
                v4 = v1 + h * acc[c]
                y[c] += h / 6.0 * (v1 + 2.0 * v2 + 2.0 * v3 + v4)
                y[dims + c] += h * acc[c]
            horizon[s, i] = y
    return horizon


class KinematicIntegrator:
    """
    Integrates a whole particle ensemble over one horizon of ticks.
    """
    def __init__(self, step_size: float = PARTICLE_STEP_SIZE,
                 num_steps: int = PARTICLE_INTEGRATION_STEPS):
        self.step_size = step_size
        self.num_steps = num_steps

    def integrate(self, particles) -> np.ndarray:
        accelerations = particles.force / particles.mass[:, np.newaxis]
        return _integrate_kinematics_numba(
            particles.kinematics, accelerations, particles.alive,
            self.step_size, self.num_steps
        )
