import numpy as np
import pytest

from distributions import Fixed
from errors import DimensionMismatch, IntegrationFailure
from executors import BatchedIntegrator, DiscreteStepper, LookaheadBuffers
from integrators import Rk4Integrator
from samples import SampleEnsemble
from transitions import DiscreteMap, Henon, Logistic, Lorenz, OdeSystem


class Scale(DiscreteMap):
    """x -> 10 x, escapes the valid region quickly."""
    dims = 1

    def apply(self, states, t):
        return states * 10.0


class RecordTime(DiscreteMap):
    dims = 1

    def __init__(self):
        self.times = []

    def apply(self, states, t):
        self.times.append(t)
        return states


class Line(OdeSystem):
    dims = 1


class ScriptedIntegrator:
    """Returns y0 + offsets and records every call."""
    def __init__(self, offsets=(1.0, 2.0, 3.0)):
        self.system = Line()
        self.offsets = offsets
        self.calls = []

    @property
    def dims(self):
        return self.system.dims

    def integrate(self, y0):
        self.calls.append(np.array(y0))
        return np.array([y0 + offset for offset in self.offsets])


class FailingIntegrator(ScriptedIntegrator):
    def integrate(self, y0):
        self.calls.append(np.array(y0))
        raise IntegrationFailure("did not converge")


def test_lookahead_buffers_drain_and_clear():
    buffers = LookaheadBuffers(2)
    assert buffers.pop(0) is None
    buffers.fill(0, np.array([[1.0], [2.0]]))
    buffers.fill(1, np.array([[5.0]]))
    buffers.clear(1)
    assert buffers.pop(0)[0] == 1.0
    assert buffers.pop(0)[0] == 2.0
    assert buffers.pop(0) is None
    assert buffers.pop(1) is None


class TestDiscreteStepper:
    def test_advance_zero_is_identity(self):
        ensemble = SampleEnsemble([0.1, 0.2, 0.3])
        before = ensemble.states.copy()
        DiscreteStepper(Logistic(r=3.9)).advance(ensemble, 0)
        np.testing.assert_array_equal(ensemble.states, before)

    def test_applies_map_n_times(self):
        ensemble = SampleEnsemble([0.5])
        DiscreteStepper(Logistic(r=2.0)).advance(ensemble, 3)
        assert ensemble.states[0, 0] == pytest.approx(0.5)

    def test_invalid_samples_die_and_keep_their_index(self):
        ensemble = SampleEnsemble([1.0, 2.0, 1e-9])
        stepper = DiscreteStepper(Scale())
        stepper.advance(ensemble, 4)
        assert ensemble.live_count() == 3

        stepper.advance(ensemble, 1)
        np.testing.assert_array_equal(ensemble.alive, [False, False, True])
        assert len(ensemble) == 3
        assert np.isnan(ensemble.states[0]).all()
        assert ensemble.states[2, 0] == pytest.approx(1e-4)

    def test_dead_samples_stay_dead(self):
        ensemble = SampleEnsemble([1.0, 1e-9])
        stepper = DiscreteStepper(Scale())
        stepper.advance(ensemble, 6)
        assert ensemble.alive.tolist() == [False, True]
        stepper.advance(ensemble, 2)
        assert ensemble.alive.tolist() == [False, True]

    def test_tick_time_continues_across_batches(self):
        transition = RecordTime()
        stepper = DiscreteStepper(transition)
        ensemble = SampleEnsemble([0.0])
        stepper.advance(ensemble, 2)
        stepper.advance(ensemble, 2)
        assert transition.times == [0.0, 1.0, 2.0, 3.0]

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch):
            DiscreteStepper(Henon()).advance(SampleEnsemble([0.1, 0.2]), 1)


class TestBatchedIntegrator:
    def test_seed_integrates_every_live_sample_once(self):
        integrator = ScriptedIntegrator()
        ensemble = SampleEnsemble([0.0, 10.0, 20.0], alive=[True, False, True])
        BatchedIntegrator(integrator).seed(ensemble)
        assert len(integrator.calls) == 2

    def test_cached_states_are_drained_before_reintegrating(self):
        integrator = ScriptedIntegrator()
        executor = BatchedIntegrator(integrator)
        ensemble = SampleEnsemble([0.0, 10.0])
        executor.seed(ensemble)

        executor.advance(ensemble, 2)
        np.testing.assert_array_equal(ensemble.states[:, 0], [2.0, 12.0])
        assert len(integrator.calls) == 2

        executor.advance(ensemble, 2)
        np.testing.assert_array_equal(ensemble.states[:, 0], [4.0, 14.0])
        # the second integration starts from the last cached state
        assert len(integrator.calls) == 4
        assert integrator.calls[-1][0] == 13.0

    def test_advance_zero_is_identity(self):
        executor = BatchedIntegrator(ScriptedIntegrator())
        ensemble = SampleEnsemble([0.5, 1.5])
        executor.seed(ensemble)
        before = ensemble.states.copy()
        executor.advance(ensemble, 0)
        np.testing.assert_array_equal(ensemble.states, before)

    def test_reinit_discards_cached_futures(self):
        integrator = ScriptedIntegrator()
        executor = BatchedIntegrator(integrator)
        ensemble = SampleEnsemble([0.0, 10.0])
        executor.seed(ensemble)
        executor.advance(ensemble, 1)

        ensemble.kill(0)
        new_indices = ensemble.reinit([Fixed(value=100.0)], np.random.default_rng(0))
        executor.reinit(ensemble, new_indices)
        executor.advance(ensemble, 1)

        np.testing.assert_array_equal(ensemble.states[:, 0], [101.0, 12.0])
        assert integrator.calls[-1][0] == 100.0

    def test_integration_failure_kills_sample_for_good(self):
        integrator = FailingIntegrator()
        executor = BatchedIntegrator(integrator)
        ensemble = SampleEnsemble([1.0, 2.0])
        executor.seed(ensemble)
        assert ensemble.live_count() == 0
        assert np.isnan(ensemble.states).all()

        executor.advance(ensemble, 5)
        assert ensemble.live_count() == 0
        assert len(integrator.calls) == 2

    def test_failure_during_advance_kills_only_that_sample(self):
        class FailAbove(ScriptedIntegrator):
            def integrate(self, y0):
                if y0[0] > 5.0:
                    raise IntegrationFailure("diverged")
                return super().integrate(y0)

        executor = BatchedIntegrator(FailAbove(offsets=(1.0,)))
        ensemble = SampleEnsemble([0.0, 4.0])
        executor.seed(ensemble)
        executor.advance(ensemble, 3)
        np.testing.assert_array_equal(ensemble.alive, [True, False])
        assert ensemble.states[0, 0] == 3.0

    def test_out_of_bounds_state_kills_sample(self):
        executor = BatchedIntegrator(ScriptedIntegrator(offsets=(1.0, 1e6)))
        ensemble = SampleEnsemble([0.0])
        executor.seed(ensemble)
        executor.advance(ensemble, 1)
        assert ensemble.live_count() == 1
        executor.advance(ensemble, 1)
        assert ensemble.live_count() == 0

    def test_empty_ensemble_is_noop(self):
        executor = BatchedIntegrator(ScriptedIntegrator())
        ensemble = SampleEnsemble(np.empty((0, 1)))
        executor.seed(ensemble)
        executor.advance(ensemble, 10)
        assert len(ensemble) == 0

    def test_dimension_mismatch(self):
        executor = BatchedIntegrator(Rk4Integrator(Lorenz(), fixed_duration=1.0))
        with pytest.raises(DimensionMismatch):
            executor.seed(SampleEnsemble([[1.0, 2.0]]))

    def test_lorenz_ensemble_stays_valid(self, rng):
        ensemble = SampleEnsemble(rng.normal(0.0, 10.0, size=(20, 3)))
        executor = BatchedIntegrator(Rk4Integrator(Lorenz(), step_size=0.01, fixed_duration=0.3))
        executor.seed(ensemble)
        executor.advance(ensemble, 50)
        assert ensemble.live_count() == 20
        assert np.isfinite(ensemble.states).all()
