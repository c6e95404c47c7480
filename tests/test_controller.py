import numpy as np
import pytest

from controller import (
    ExecutionController, executor_from_config, executors_from_config, sweep_configs
)
from distributions import Fixed, Linspace, Uniform
from errors import DimensionMismatch, ExecutorNotSet
from executors import BatchedIntegrator, DiscreteStepper
from integrators import Dop853Integrator, Rk4Integrator
from particle import ParticleParams, ParticleSystem
from samples import SampleEnsemble
from simulation import ParticleStepScheduler
from transitions import Henon, Logistic, Tent


def _discrete_params(**overrides):
    sim_params = {
        "mode": "discrete",
        "function": "logistic",
        "function_parameters": {"r": 3.5},
        "num_samples": 8,
        "seed": 7,
        "distributions": [{"kind": "linspace", "low": 0.1, "high": 0.9}],
    }
    sim_params.update(overrides)
    return sim_params


class TestExecutorFromConfig:
    def test_discrete_mode(self):
        executor = executor_from_config(_discrete_params())
        assert isinstance(executor, DiscreteStepper)
        assert executor.transition.r == 3.5

    def test_ode_mode_uses_preferred_solver(self):
        executor = executor_from_config({"mode": "ode", "function": "van_der_pol"})
        assert isinstance(executor, BatchedIntegrator)
        assert isinstance(executor.integrator, Dop853Integrator)

    def test_ode_mode_with_explicit_solver_and_horizon(self):
        executor = executor_from_config(
            {"mode": "ode", "function": "lorenz", "solver": "rk4", "fixed_horizon": 2.0}
        )
        assert isinstance(executor.integrator, Rk4Integrator)
        assert executor.integrator.fixed_duration == 2.0

    def test_particle_mode(self):
        executor = executor_from_config(
            {"mode": "particle", "particle_parameters": {"integration_steps": 4, "dims": 3}}
        )
        assert isinstance(executor, ParticleStepScheduler)
        assert executor.params.integration_steps == 4
        assert executor.dims == 3

    @pytest.mark.parametrize("sim_params", [
        {"mode": "quantum", "function": "lorenz"},
        {"mode": "discrete", "function": "lorenz"},
        {"mode": "ode", "function": "henon"},
    ])
    def test_inconsistent_configuration(self, sim_params):
        with pytest.raises(ValueError):
            executor_from_config(sim_params)


class TestExecutionController:
    def test_from_config_discrete(self):
        controller = ExecutionController.from_config(_discrete_params())
        controller.execute(10)
        assert isinstance(controller.ensemble, SampleEnsemble)
        assert controller.live_count() == 8
        assert ((controller.ensemble.states >= 0.0) & (controller.ensemble.states <= 1.0)).all()

    def test_from_config_ode(self):
        controller = ExecutionController.from_config({
            "mode": "ode",
            "function": "lorenz",
            "solver": "rk4",
            "fixed_horizon": 1.0,
            "num_samples": 4,
            "seed": 3,
            "distributions": [{"kind": "uniform", "low": -1.0, "high": 1.0}] * 3,
        })
        before = controller.ensemble.states.copy()
        controller.execute(2)
        assert controller.ensemble.states.shape == (4, 3)
        assert not np.array_equal(controller.ensemble.states, before)

    def test_from_config_particle(self):
        controller = ExecutionController.from_config({
            "mode": "particle",
            "num_samples": 5,
            "seed": 3,
            "distributions": [
                {"kind": "fixed", "value": 1.0},
                {"kind": "fixed", "value": 0.0},
                {"kind": "fixed", "value": 1.0},
                {"kind": "linspace", "low": 0.0, "high": 400.0},
                {"kind": "fixed", "value": 0.0},
                {"kind": "fixed", "value": 0.0},
                {"kind": "fixed", "value": 0.0},
            ],
            "particle_parameters": {"integration_steps": 5},
        })
        assert isinstance(controller.ensemble, ParticleSystem)
        controller.execute(6)
        assert controller.executor.macro_steps == 2
        assert controller.live_count() == 5

    def test_same_seed_gives_same_data(self):
        params = _discrete_params(distributions=[{"kind": "uniform"}])
        a = ExecutionController.from_config(params)
        b = ExecutionController.from_config(params)
        np.testing.assert_array_equal(a.ensemble.states, b.ensemble.states)

    def test_execute_without_executor(self):
        controller = ExecutionController(seed=1)
        controller.generate_initial_data(3, [Uniform()])
        with pytest.raises(ExecutorNotSet):
            controller.execute(1)

    def test_execute_without_data(self):
        controller = ExecutionController(seed=1)
        controller.set_executor(DiscreteStepper(Logistic()))
        with pytest.raises(ExecutorNotSet):
            controller.execute(1)
        with pytest.raises(ExecutorNotSet):
            controller.reinit_states()

    def test_dimension_mismatch_drops_executor(self):
        controller = ExecutionController(seed=1)
        controller.generate_initial_data(3, [Uniform()])
        with pytest.raises(DimensionMismatch):
            controller.set_executor(DiscreteStepper(Henon()))
        assert controller.executor is None

    def test_particle_executor_requires_particles(self):
        controller = ExecutionController(seed=1)
        controller.generate_initial_data(3, [Uniform()] * 4)
        with pytest.raises(DimensionMismatch):
            controller.set_executor(ParticleStepScheduler(ParticleParams()))
        assert controller.executor is None

    def test_new_data_is_checked_against_executor(self):
        controller = ExecutionController(seed=1)
        controller.set_executor(DiscreteStepper(Logistic()))
        with pytest.raises(DimensionMismatch):
            controller.generate_initial_data(3, [Uniform(), Uniform()])

    def test_reinit_states_revives_dead_samples(self):
        controller = ExecutionController(seed=1)
        # x = 2 escapes to -inf under the logistic map
        controller.generate_initial_data(3, [Fixed(2.0)])
        controller.set_executor(DiscreteStepper(Logistic(r=4.0)))
        controller.execute(5)
        assert controller.live_count() == 0

        (indices,) = controller.reinit_states()
        np.testing.assert_array_equal(indices, [0, 1, 2])
        assert controller.live_count() == 3
        np.testing.assert_array_equal(controller.ensemble.states[:, 0], [2.0, 2.0, 2.0])

    def test_linspace_reinit_draws_uniformly(self):
        controller = ExecutionController(seed=1)
        controller.generate_initial_data(4, [Linspace(low=0.0, high=1.0)])
        controller.set_executor(DiscreteStepper(Logistic()))
        controller.ensemble.kill(0)
        controller.ensemble.kill(1)
        controller.reinit_states()
        states = controller.ensemble.states[:2, 0]
        assert ((states >= 0.0) & (states < 1.0)).all()


class TestParameterSweep:
    def test_sweep_configs_expands_function_parameters(self):
        entries = sweep_configs(_discrete_params(function_parameters=[{"r": 2.0}, {"r": 4.0}]))
        assert [entry["function_parameters"] for entry in entries] == [{"r": 2.0}, {"r": 4.0}]
        assert all(entry["num_samples"] == 8 for entry in entries)

    def test_single_parameter_set_is_not_a_sweep(self):
        params = _discrete_params()
        assert sweep_configs(params) == [params]

    def test_empty_sweep_is_rejected(self):
        with pytest.raises(ValueError):
            sweep_configs(_discrete_params(function_parameters=[]))

    def test_executors_from_config(self):
        executors = executors_from_config(
            _discrete_params(function_parameters=[{"r": 2.0}, {"r": 4.0}])
        )
        assert [executor.transition.r for executor in executors] == [2.0, 4.0]

    def test_particle_parameters_sweep(self):
        executors = executors_from_config({
            "mode": "particle",
            "particle_parameters": [{"integration_steps": 2}, {"integration_steps": 5}],
        })
        assert [executor.params.integration_steps for executor in executors] == [2, 5]

    def test_two_parameter_sweep_runs_every_pair(self):
        controller = ExecutionController.from_config(
            _discrete_params(num_samples=5, function_parameters=[{"r": 2.0}, {"r": 4.0}])
        )
        assert len(controller.executors) == 2
        assert len(controller.ensembles) == 2
        initial = controller.initial_data.states.copy()
        np.testing.assert_array_equal(controller.ensembles[0].states, initial)
        np.testing.assert_array_equal(controller.ensembles[1].states, initial)

        controller.execute(1)
        x = initial[:, 0]
        np.testing.assert_allclose(controller.ensembles[0].states[:, 0], 2.0 * x * (1.0 - x))
        np.testing.assert_allclose(controller.ensembles[1].states[:, 0], 4.0 * x * (1.0 - x))
        # the initial data is never advanced
        np.testing.assert_array_equal(controller.initial_data.states, initial)
        assert controller.live_counts() == [5, 5]
        assert controller.live_count() == 10

    def test_each_pair_owns_its_ensemble(self):
        controller = ExecutionController(seed=1)
        controller.generate_initial_data(3, [Uniform(0.0, 1.0)])
        controller.set_executors([DiscreteStepper(Logistic(r=2.0)), DiscreteStepper(Tent(mu=1.5))])
        first, second = controller.ensembles
        assert first is not second
        assert first.states is not second.states

        first.kill(0)
        assert controller.live_counts() == [2, 3]
        assert not np.isnan(second.states[0]).any()

    def test_reinit_states_covers_every_pair(self):
        controller = ExecutionController(seed=1)
        controller.generate_initial_data(2, [Fixed(2.0)])
        controller.set_executors([DiscreteStepper(Logistic(r=4.0)), DiscreteStepper(Logistic(r=4.0))])
        controller.ensembles[1].kill(1)
        controller.execute(1)
        controller.ensembles[0].kill(0)

        refilled = controller.reinit_states()
        assert len(refilled) == 2
        np.testing.assert_array_equal(refilled[0], [0])
        np.testing.assert_array_equal(refilled[1], [1])
        assert controller.live_counts() == [2, 2]
        assert controller.ensembles[0].states[0, 0] == 2.0
        assert controller.ensembles[1].states[1, 0] == 2.0

    def test_mismatch_in_any_executor_drops_all(self):
        controller = ExecutionController(seed=1)
        controller.generate_initial_data(3, [Uniform()])
        with pytest.raises(DimensionMismatch):
            controller.set_executors([DiscreteStepper(Logistic()), DiscreteStepper(Henon())])
        assert controller.executors == []
        assert controller.ensembles == []
        with pytest.raises(ExecutorNotSet):
            controller.execute(1)

    def test_new_data_reseeds_every_pair(self):
        controller = ExecutionController(seed=1)
        controller.set_executors([DiscreteStepper(Logistic(r=2.0)), DiscreteStepper(Logistic(r=3.0))])
        controller.generate_initial_data(4, [Linspace(0.0, 1.0)])
        assert controller.live_counts() == [4, 4]
        np.testing.assert_allclose(controller.ensembles[1].states[:, 0], [0.0, 1 / 3, 2 / 3, 1.0])

    def test_particle_sweep(self):
        controller = ExecutionController.from_config({
            "mode": "particle",
            "num_samples": 2,
            "seed": 3,
            "distributions": [
                {"kind": "fixed", "value": 1.0},
                {"kind": "fixed", "value": 0.0},
                {"kind": "fixed", "value": 1.0},
                {"kind": "linspace", "low": 0.0, "high": 100.0},
                {"kind": "fixed", "value": 0.0},
                {"kind": "fixed", "value": 0.0},
                {"kind": "fixed", "value": 0.0},
            ],
            "particle_parameters": [{"long_scale": 0.0, "mid_scale": 0.0}, {"long_scale": 50.0}],
        })
        controller.execute(3)
        still, attracted = controller.ensembles
        np.testing.assert_array_equal(still.positions[:, 0], [0.0, 100.0])
        assert attracted.positions[0, 0] > 0.0
        assert attracted.positions[1, 0] < 100.0
