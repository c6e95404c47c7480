# controller.py
"""
Ties an ensemble to the executors that advance it.

The ExecutionController owns the initial data (samples or particles),
its initial distributions and one or more executors. Every executor runs
on its own copy of the initial data, so a list of executors sweeps one
ensemble over several maps or parameter sets. Both sides are checked to
fit together before any tick is executed.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from constants import DEFAULT_SEED
from distributions import distributions_from_config
from errors import DimensionMismatch, ExecutorNotSet
from executors import BatchedIntegrator, DiscreteStepper
from integrators import make_integrator
from particle import ParticleParams, ParticleSystem
from samples import SampleEnsemble
from simulation import ParticleStepScheduler
from transitions import DiscreteMap, build_transition

# --- Data Contracts ---
#
# class ExecutionController:
#   - generate_initial_data(self, num_samples, distributions, particles=False)
#     - Side Effects: replaces the initial data; re-seeds every executor
#       on a fresh copy of it.
#   - set_executor(self, executor) / set_executors(self, executors) -> None
#     - Errors: DimensionMismatch; all executors are dropped in that case.
#   - execute(self, n_ticks) -> None: advances every (ensemble, executor) pair.
#     - Errors: ExecutorNotSet if data or executors are missing.
#   - reinit_states(self) -> List[np.ndarray]: refilled indices, one array per pair.
#   - live_counts(self) -> List[int]; live_count(self) -> int, summed over pairs.
#   - Invariants: len(self.ensembles) == len(self.executors), and no two
#     pairs share state arrays.
#
# sweep_configs(sim_params) -> List[Dict]
#   - One sim_params dict per entry when "function_parameters" (or
#     "particle_parameters" in particle mode) is a list, else [sim_params].
#
# executor_from_config(sim_params: Dict[str, Any], rng) -> executor
#   - sim_params["mode"] selects "discrete", "ode" or "particle".
# executors_from_config(sim_params, rng) -> list of executors, one per sweep entry.

MODES = ("discrete", "ode", "particle")


def _sweep_key(sim_params: Dict[str, Any]) -> str:
    return 'particle_parameters' if sim_params.get('mode') == 'particle' else 'function_parameters'


def sweep_configs(sim_params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Expands a parameter sweep into one configuration per parameter set.
    """
    key = _sweep_key(sim_params)
    entries = sim_params.get(key)
    if not isinstance(entries, list):
        return [sim_params]
    if not entries:
        msg = f"Configuration error: '{key}' is an empty list."
        logging.critical(msg)
        raise ValueError(msg)
    return [{**sim_params, key: entry} for entry in entries]


def executor_from_config(sim_params: Dict[str, Any], rng: Optional[np.random.Generator] = None):
    """
    Builds the executor described by the simulation parameters.
    """
    mode = sim_params.get('mode', 'ode')
    if mode == 'particle':
        return ParticleStepScheduler(
            ParticleParams.from_config(sim_params.get('particle_parameters') or {})
        )
    if mode not in MODES:
        msg = f"Configuration error: Unknown mode '{mode}'. Expected one of {MODES}."
        logging.critical(msg)
        raise ValueError(msg)

    transition = build_transition(
        sim_params['function'], sim_params.get('function_parameters')
    )
    if mode == 'discrete':
        if not isinstance(transition, DiscreteMap):
            msg = f"Configuration error: '{sim_params['function']}' is not a discrete map."
            logging.critical(msg)
            raise ValueError(msg)
        return DiscreteStepper(transition)
    if isinstance(transition, DiscreteMap):
        msg = f"Configuration error: '{sim_params['function']}' is not an ODE system."
        logging.critical(msg)
        raise ValueError(msg)
    integrator = make_integrator(
        transition,
        sim_params.get('solver'),
        fixed_duration=sim_params.get('fixed_horizon'),
        rng=rng,
    )
    return BatchedIntegrator(integrator)


def executors_from_config(sim_params: Dict[str, Any],
                          rng: Optional[np.random.Generator] = None) -> list:
    return [executor_from_config(entry, rng) for entry in sweep_configs(sim_params)]


class ExecutionController:
    """
    Holds the initial data and one ensemble copy per executor.
    """
    def __init__(self, seed: Optional[int] = None):
        # All randomness is controlled by a single master seed.
        self.rng = np.random.default_rng(seed)
        self.initial_data = None
        self.distributions: Optional[Sequence] = None
        self.executors: list = []
        self.ensembles: list = []

    @property
    def executor(self):
        """The first executor, or None."""
        return self.executors[0] if self.executors else None

    @property
    def ensemble(self):
        """The ensemble of the first pair, or the initial data before any executor is set."""
        return self.ensembles[0] if self.ensembles else self.initial_data

    def generate_initial_data(self, num_samples: int, distributions: Sequence,
                              particles: bool = False) -> None:
        """
        Creates new initial data from the distributions.

        Args:
            num_samples (int): Number of slots.
            distributions (Sequence): One distribution per component. For
                particles: short, mid, mass, then positions and velocities.
            particles (bool): Build a ParticleSystem instead of samples.
        """
        if particles:
            self.initial_data = ParticleSystem.from_distributions(num_samples, distributions, self.rng)
        else:
            self.initial_data = SampleEnsemble.from_distributions(num_samples, distributions, self.rng)
        self.distributions = list(distributions)
        if self.executors:
            self._init_executors()

    def set_executor(self, executor) -> None:
        self.set_executors([executor])

    def set_executors(self, executors: Sequence) -> None:
        self.executors = list(executors)
        self.ensembles = []
        if self.initial_data is not None:
            self._init_executors()

    def _init_executors(self) -> None:
        self.ensembles = []
        particles = isinstance(self.initial_data, ParticleSystem)
        for executor in self.executors:
            if isinstance(executor, ParticleStepScheduler) != particles:
                self._drop_executors()
                msg = "Configuration error: Particle executors only run on particle ensembles."
                logging.error(msg)
                raise DimensionMismatch(msg)
            ensemble = self.initial_data.copy()
            try:
                executor.seed(ensemble)
            except DimensionMismatch:
                logging.error("Dimension mismatch between data and executor. Removing all executors.")
                self._drop_executors()
                raise
            self.ensembles.append(ensemble)
        if len(self.executors) > 1:
            logging.info(f"Sweeping {len(self.initial_data)} samples over {len(self.executors)} executors.")

    def _drop_executors(self) -> None:
        self.executors = []
        self.ensembles = []

    def _require_pairs(self, action: str) -> None:
        if self.initial_data is None or not self.ensembles:
            msg = f"Executor is not set: Cannot {action}."
            logging.error(msg)
            raise ExecutorNotSet(msg)

    def execute(self, n_ticks: int) -> None:
        self._require_pairs("execute chaotic functions")
        for ensemble, executor in zip(self.ensembles, self.executors):
            executor.advance(ensemble, n_ticks)

    def reinit_states(self) -> List[np.ndarray]:
        self._require_pairs("reinit states")
        refilled = []
        for ensemble, executor in zip(self.ensembles, self.executors):
            indices = ensemble.reinit(self.distributions, self.rng)
            executor.reinit(ensemble, indices)
            refilled.append(indices)
        return refilled

    def live_counts(self) -> List[int]:
        return [ensemble.live_count() for ensemble in self.ensembles]

    def live_count(self) -> int:
        if not self.ensembles:
            return 0 if self.initial_data is None else self.initial_data.live_count()
        return sum(self.live_counts())

    @classmethod
    def from_config(cls, sim_params: Dict[str, Any]) -> "ExecutionController":
        """Builds data and executors from the "simulation_parameters" section."""
        controller = cls(seed=sim_params.get('seed', DEFAULT_SEED))
        controller.generate_initial_data(
            sim_params['num_samples'],
            distributions_from_config(sim_params['distributions']),
            particles=sim_params.get('mode') == 'particle',
        )
        controller.set_executors(executors_from_config(sim_params, controller.rng))
        return controller
