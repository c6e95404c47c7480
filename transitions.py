# transitions.py
"""
State transitions: discrete maps and ODE right-hand sides.

A transition is selected once, when an ensemble is configured, and is
then applied to every sample. Discrete maps are written on the last axis
of their input so that one call advances a whole block of states of
shape (m, d). ODE systems are evaluated on single states by the solvers.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

# --- Data Contracts ---
#
# class DiscreteMap:
#   - dims: int, the arity of the states it accepts.
#   - apply(self, states: np.ndarray, t: float) -> np.ndarray:
#     - Inputs: states of shape (..., dims); t is the tick time.
#     - Outputs: next states, same shape. Pure; never mutates the input.
#
# class OdeSystem:
#   - dims: int
#   - solver: str, name of the preferred integrator ("rk4" or "dop853").
#   - rhs(self, t: float, y: np.ndarray) -> np.ndarray:
#     - Outputs: dy/dt with the shape of y.


class DiscreteMap:
    """Base class of all discrete maps."""
    dims = 1

    def apply(self, states: np.ndarray, t: float) -> np.ndarray:
        raise NotImplementedError


class OdeSystem:
    """Base class of all ODE right-hand sides."""
    dims = 1
    solver = "rk4"

    def rhs(self, t: float, y: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def __call__(self, t: float, y: np.ndarray) -> np.ndarray:
        return self.rhs(t, y)


# --- Discrete maps ---

@dataclass
class Logistic(DiscreteMap):
    """x -> r x (1 - x)"""
    r: float = 1.0
    dims = 1

    def apply(self, states, t):
        x = states[..., 0]
        return np.stack([self.r * x * (1.0 - x)], axis=-1)


@dataclass
class Tent(DiscreteMap):
    """x -> mu min(x, 1 - x)"""
    mu: float = 1.9
    dims = 1

    def apply(self, states, t):
        x = states[..., 0]
        return np.stack([self.mu * np.minimum(x, 1.0 - x)], axis=-1)


@dataclass
class Henon(DiscreteMap):
    a: float = 1.4
    b: float = 0.3
    dims = 2

    def apply(self, states, t):
        x, y = states[..., 0], states[..., 1]
        return np.stack([1.0 - self.a * x * x + y, self.b * x], axis=-1)


@dataclass
class Tinkerbell(DiscreteMap):
    a: float = 0.9
    b: float = -0.6013
    c: float = 2.0
    d: float = 0.5
    dims = 2

    def apply(self, states, t):
        x, y = states[..., 0], states[..., 1]
        return np.stack(
            [
                x * x - y * y + self.a * x + self.b * y,
                2.0 * x * y + self.c * x + self.d * y,
            ],
            axis=-1,
        )


# --- ODE systems ---

@dataclass
class Brusselator(OdeSystem):
    a: float = 1.0
    b: float = 3.0
    dims = 2
    solver = "dop853"

    def rhs(self, t, y):
        x, z = y[0], y[1]
        return np.array([
            1.0 - (self.b + 1.0) * x + self.a * x * x * z,
            self.b * x - self.a * x * x * z,
        ])


@dataclass
class VanDerPol(OdeSystem):
    mu: float = 1.0
    dims = 2
    solver = "dop853"

    def rhs(self, t, y):
        x, z = y[0], y[1]
        return np.array([self.mu * (x - x ** 3 / 3.0 - z), x / self.mu])


@dataclass
class Lorenz(OdeSystem):
    sigma: float = 10.0
    beta: float = 8.0 / 3.0
    rho: float = 28.0
    dims = 3

    def rhs(self, t, y):
        x, yy, z = y[0], y[1], y[2]
        return np.array([
            self.sigma * (yy - x),
            x * (self.rho - z) - yy,
            x * yy - self.beta * z,
        ])


@dataclass
class Rossler(OdeSystem):
    a: float = 0.1
    b: float = 0.1
    c: float = 14.0
    dims = 3

    def rhs(self, t, y):
        x, yy, z = y[0], y[1], y[2]
        return np.array([-yy - z, x + self.a * yy, self.b + z * (x - self.c)])


@dataclass
class Halvorsen(OdeSystem):
    """Cyclically symmetric: each component gets its own equation."""
    a: float = 1.4
    dims = 3
    solver = "dop853"

    def rhs(self, t, y):
        x, yy, z = y[0], y[1], y[2]
        return np.array([
            -self.a * x - 4.0 * yy - 4.0 * z - yy * yy,
            -self.a * yy - 4.0 * z - 4.0 * x - z * z,
            -self.a * z - 4.0 * x - 4.0 * yy - x * x,
        ])


DISCRETE_MAPS = {
    "logistic": Logistic,
    "tent": Tent,
    "henon": Henon,
    "tinkerbell": Tinkerbell,
}

ODE_SYSTEMS = {
    "brusselator": Brusselator,
    "van_der_pol": VanDerPol,
    "lorenz": Lorenz,
    "rossler": Rossler,
    "halvorsen": Halvorsen,
}


def build_transition(name: str, params: Optional[Dict[str, Any]] = None):
    """
    Instantiates a map or ODE system by its configuration name.

    Raises:
        ValueError: If the name is not registered.
    """
    registry = {**DISCRETE_MAPS, **ODE_SYSTEMS}
    if name not in registry:
        msg = (
            f"Configuration error: Unknown function '{name}'. "
            f"Expected one of {sorted(registry)}."
        )
        logging.critical(msg)
        raise ValueError(msg)
    transition = registry[name](**(params or {}))
    logging.info(f"Using {transition} (dims={transition.dims}).")
    return transition
