# distributions.py
"""
Initial distributions for seeding and reinitializing ensembles.

Each distribution produces one column (one state component) of the
initial data. A list of distributions therefore describes a whole
ensemble: the i-th distribution generates the i-th component of every
sample.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np

# --- Data Contracts ---
#
# Every distribution exposes:
#   - sample(self, n: int, rng: np.random.Generator) -> np.ndarray
#     - Outputs: float64 array of shape (n,).
#   - for_reinit(self) -> distribution
#     - Outputs: the distribution to use when only a few dead slots are
#       refilled. Linear spaces (Linspace, Mesh) become random over the
#       same range so refilled samples do not pile up at the same values.
#
# sample_states(n, distributions, rng) -> np.ndarray of shape (m, len(distributions)):
#   - m == n without Mesh columns, n ** k with k Mesh columns (full grid).
#   - An Eye column at position k holds its value in row k only.


@dataclass
class Fixed:
    value: float = 0.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return np.full(n, self.value, dtype=np.float64)

    def for_reinit(self) -> "Fixed":
        return self


@dataclass
class Uniform:
    low: float = -1.0
    high: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.uniform(self.low, self.high, size=n)

    def for_reinit(self) -> "Uniform":
        return self


@dataclass
class Normal:
    mean: float = 0.0
    std: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.normal(self.mean, self.std, size=n)

    def for_reinit(self) -> "Normal":
        return self


@dataclass
class Linspace:
    low: float = 0.0
    high: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return np.linspace(self.low, self.high, n)

    def for_reinit(self) -> Uniform:
        return Uniform(low=self.low, high=self.high)


@dataclass
class Cauchy:
    median: float = 0.0
    scale: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return self.median + self.scale * rng.standard_cauchy(size=n)

    def for_reinit(self) -> "Cauchy":
        return self


@dataclass
class Exponential:
    lam: float = 1.0  # rate

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.exponential(1.0 / self.lam, size=n)

    def for_reinit(self) -> "Exponential":
        return self


@dataclass
class LogNormal:
    mean: float = 0.0
    std: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.lognormal(self.mean, self.std, size=n)

    def for_reinit(self) -> "LogNormal":
        return self


@dataclass
class Poisson:
    mean: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.poisson(self.mean, size=n).astype(np.float64)

    def for_reinit(self) -> "Poisson":
        return self


@dataclass
class Pareto:
    scale: float = 1.0
    shape: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        # numpy draws the Lomax form; shift it to start at `scale`.
        return self.scale * (1.0 + rng.pareto(self.shape, size=n))

    def for_reinit(self) -> "Pareto":
        return self


@dataclass
class StudentT:
    dof: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.standard_t(self.dof, size=n)

    def for_reinit(self) -> "StudentT":
        return self


@dataclass
class Weibull:
    lam: float = 1.0  # scale
    k: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return self.lam * rng.weibull(self.k, size=n)

    def for_reinit(self) -> "Weibull":
        return self


@dataclass
class Gamma:
    shape: float = 1.0
    scale: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.gamma(self.shape, self.scale, size=n)

    def for_reinit(self) -> "Gamma":
        return self


@dataclass
class Beta:
    alpha: float = 1.0
    beta: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.beta(self.alpha, self.beta, size=n)

    def for_reinit(self) -> "Beta":
        return self


@dataclass
class Triangular:
    low: float = -1.0
    high: float = 1.0
    mode: float = 0.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.triangular(self.low, self.mode, self.high, size=n)

    def for_reinit(self) -> "Triangular":
        return self


@dataclass
class ChiSquared:
    dof: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.chisquare(self.dof, size=n)

    def for_reinit(self) -> "ChiSquared":
        return self


@dataclass
class Geomspace:
    """Geometric progression; both ends share the sign of `start`."""
    start: float = 1.0
    end: float = 10.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        sign = -1.0 if self.start < 0.0 else 1.0
        low = abs(self.start) or np.finfo(np.float64).eps
        high = abs(self.end) or np.finfo(np.float64).eps
        return sign * np.geomspace(low, high, n)

    def for_reinit(self) -> "Geomspace":
        return self


@dataclass
class Logspace:
    """sign(base) * |base| ** linspace(start, end)"""
    start: float = 0.0
    end: float = 1.0
    base: float = 10.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return np.sign(self.base) * np.logspace(self.start, self.end, n, base=abs(self.base))

    def for_reinit(self) -> "Logspace":
        return self


@dataclass
class Mesh:
    """
    One axis of a grid. All Mesh columns of a distribution list are
    combined into their full cartesian product, so k Mesh columns turn
    n requested samples into n ** k states.
    """
    start: float = 0.0
    end: float = 1.0

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return np.linspace(self.start, self.end, n)

    def for_reinit(self) -> Uniform:
        return Uniform(low=self.start, high=self.end)


@dataclass
class Eye:
    """Column k of an identity-like block: `value` in row k, zero elsewhere."""
    value: float = 1.0

    def column(self, n: int, k: int) -> np.ndarray:
        column = np.zeros(n, dtype=np.float64)
        if k < n:
            column[k] = self.value
        return column

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return self.column(n, 0)

    def for_reinit(self) -> "Eye":
        return self


DISTRIBUTIONS = {
    "fixed": Fixed,
    "uniform": Uniform,
    "normal": Normal,
    "linspace": Linspace,
    "cauchy": Cauchy,
    "exponential": Exponential,
    "log_normal": LogNormal,
    "poisson": Poisson,
    "pareto": Pareto,
    "student_t": StudentT,
    "weibull": Weibull,
    "gamma": Gamma,
    "beta": Beta,
    "triangular": Triangular,
    "chi_squared": ChiSquared,
    "geomspace": Geomspace,
    "logspace": Logspace,
    "mesh": Mesh,
    "eye": Eye,
}


def distribution_from_config(entry: Dict[str, Any]):
    """Builds one distribution from a config entry like {"kind": "normal", "std": 2.0}."""
    params = dict(entry)
    kind = params.pop("kind", None)
    if kind not in DISTRIBUTIONS:
        msg = (
            f"Configuration error: Unknown distribution kind '{kind}'. "
            f"Expected one of {sorted(DISTRIBUTIONS)}."
        )
        logging.critical(msg)
        raise ValueError(msg)
    return DISTRIBUTIONS[kind](**params)


def distributions_from_config(entries: Sequence[Dict[str, Any]]) -> List[Any]:
    return [distribution_from_config(entry) for entry in entries]


def sample_states(n: int, distributions: Sequence[Any], rng: np.random.Generator) -> np.ndarray:
    """
    Draws initial states, one column per distribution.

    Args:
        n (int): Number of states, or points per axis if Mesh columns are present.
        distributions (Sequence): One distribution per state component.
        rng (np.random.Generator): Source of randomness.

    Returns:
        np.ndarray: Array of shape (m, len(distributions)), see the data contract.
    """
    axes = [distr.sample(n, rng) for distr in distributions if isinstance(distr, Mesh)]
    if axes:
        # Rows enumerate the grid with the first Mesh axis varying slowest.
        mesh_columns = iter([axis.ravel() for axis in np.meshgrid(*axes, indexing='ij')])
        n = n ** len(axes)
    if n == 0:
        return np.empty((0, len(distributions)), dtype=np.float64)

    columns = []
    for k, distr in enumerate(distributions):
        if isinstance(distr, Mesh):
            columns.append(next(mesh_columns))
        elif isinstance(distr, Eye):
            columns.append(distr.column(n, k))
        else:
            columns.append(distr.sample(n, rng))
    return np.column_stack(columns).astype(np.float64)


def reinit_distributions(distributions: Sequence[Any]) -> List[Any]:
    return [distr.for_reinit() for distr in distributions]
