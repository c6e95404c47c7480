import numpy as np
import pytest

from particle import ParticleSystem


@pytest.fixture
def make_particles():
    """Factory for particle systems with shared scalar attributes."""
    def _make(positions, short=1.0, mid=0.0, mass=1.0, velocities=None):
        positions = np.asarray(positions, dtype=np.float64)
        n = positions.shape[0]
        if velocities is None:
            velocities = np.zeros_like(positions)
        kinematics = np.hstack([positions, np.asarray(velocities, dtype=np.float64)])
        return ParticleSystem(
            np.broadcast_to(short, n), np.broadcast_to(mid, n), np.broadcast_to(mass, n), kinematics
        )
    return _make


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
