"""
Unit tests for the range-based particle filter
(swarmloc/estimators/particle_filter.py).

Covers initialization, likelihood weighting, normalization and degeneracy,
the effective sample size gate, systematic resampling and the posterior
estimate.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from swarmloc.errors import ConstructionError, DegenerateFilterError
from swarmloc.estimators.particle_filter import (
    ParticleFilter,
    ResamplingScheme,
    systematic_resample,
)
from swarmloc.models.enclosures import BoundingBox
from swarmloc.models.motion_models import ConstantVelocity3D, WhiteNoiseAcceleration
from swarmloc.rf.measurement_models import RangeObservation

ANCHORS = np.array([[10.0, 0.0, 0.0], [0.0, 10.0, 0.0], [0.0, 0.0, 10.0]])


def make_filter(n=1000, tau=0.5, seed=0, scheme=ResamplingScheme.SYSTEMATIC, box=None):
    box = box or BoundingBox([-1.0, -1.0, -1.0], [1.0, 1.0, 1.0])
    return ParticleFilter(box, n, tau=tau, rng=np.random.default_rng(seed), scheme=scheme)


def one_hot(n, index):
    weights = np.zeros(n)
    weights[index] = 1.0
    return weights


class TestInitialization:
    def test_particles_drawn_from_enclosure(self):
        box = BoundingBox([0.0, 0.0, 0.0], [2.0, 3.0, 4.0])
        pf = make_filter(n=500, box=box)

        assert pf.particles.shape == (500, 3)
        assert np.all(pf.particles >= box.min_corner)
        assert np.all(pf.particles <= box.max_corner)

    def test_uniform_weights_sum_to_one(self):
        pf = make_filter(n=250)

        assert_allclose(pf.weights, 1.0 / 250)
        assert pf.weights.sum() == pytest.approx(1.0)
        assert pf.effective_sample_size() == pytest.approx(250.0)

    def test_initial_estimate_is_particle_mean(self):
        pf = make_filter(n=100)
        state, cov = pf.get_estimate()

        assert_allclose(state, pf.particles.mean(axis=0), atol=1e-12)
        assert cov.shape == (3, 3)

    @pytest.mark.parametrize("n", [0, -5, 2.5])
    def test_invalid_particle_count(self, n):
        with pytest.raises(ConstructionError):
            make_filter(n=n)

    @pytest.mark.parametrize("tau", [0.0, -0.1, 1.5])
    def test_invalid_tau(self, tau):
        with pytest.raises(ConstructionError):
            make_filter(tau=tau)

    def test_tau_one_allowed(self):
        assert make_filter(tau=1.0).tau == 1.0


class TestWeighting:
    def test_weights_decrease_away_from_truth(self):
        """Particles moving away from every anchor rank by distance to truth."""
        pf = make_filter(n=11)
        direction = -np.ones(3) / np.sqrt(3.0)
        pf.particles = np.outer(np.linspace(0.0, 1.0, 11), direction)
        pf.weights = np.full(11, 1.0 / 11)

        for anchor in ANCHORS:
            pf.update_weight(np.linalg.norm(anchor), anchor, 0.5)
        pf.normalize()

        assert np.argmax(pf.weights) == 0
        assert np.all(np.diff(pf.weights) < 0)

    def test_nearest_particle_dominates(self):
        """With exact ranges the heaviest particle sits next to the truth."""
        pf = make_filter(n=5000, seed=3)
        truth = np.zeros(3)

        for anchor in ANCHORS:
            pf.update_weight(np.linalg.norm(anchor - truth), anchor, 0.05)
        pf.normalize()

        best = pf.particles[np.argmax(pf.weights)]
        assert np.linalg.norm(best - truth) < 0.2

    def test_update_with_observation_matches_update_weight(self):
        a = make_filter(n=200, seed=5)
        b = make_filter(n=200, seed=5)

        a.update_weight(9.5, ANCHORS[0], 0.3)
        b.update(RangeObservation(range=9.5, reference=ANCHORS[0], std=0.3, source="anchor_0"))

        assert_allclose(a.weights, b.weights)

    def test_update_weight_rejects_non_positive_sigma(self):
        pf = make_filter(n=10)
        with pytest.raises(ValueError):
            pf.update_weight(1.0, ANCHORS[0], 0.0)

    def test_log_weights(self):
        pf = make_filter(n=4)
        pf.weights = np.array([0.5, 0.5, 0.0, 0.0])
        logw = pf.log_weights
        assert_allclose(logw[:2], np.log(0.5))
        assert np.all(np.isneginf(logw[2:]))
        assert_allclose(pf.weights, [0.5, 0.5, 0.0, 0.0])

    def test_tight_ranges_do_not_underflow(self):
        """Residuals of 0.5 m and 0.6 m at 1 cm noise still rank the particles."""
        pf = make_filter(n=2)
        pf.particles = np.array([[-0.5, 0.0, 0.0], [-0.6, 0.0, 0.0]])
        pf.weights = np.array([0.5, 0.5])
        truth = np.zeros(3)

        # exp(-1250) and exp(-1800) are both 0.0 as linear weights
        pf.update_weight(np.linalg.norm(ANCHORS[0] - truth), ANCHORS[0], 0.01)
        assert np.all(np.isfinite(pf.log_weights))
        pf.normalize()

        assert np.all(np.isfinite(pf.weights))
        assert pf.weights[0] == pytest.approx(1.0)
        assert pf.weights[1] == pytest.approx(0.0)
        assert_allclose(pf.posterior_mean(), pf.particles[0])

    def test_accumulated_log_likelihoods_match_linear_product(self):
        a = make_filter(n=200, seed=6)
        linear = a.weights.copy()
        for anchor in ANCHORS:
            ranges = np.linalg.norm(a.particles - anchor, axis=1)
            linear *= np.exp(-0.5 * (9.8 - ranges) ** 2 / 0.5**2)
            a.update_weight(9.8, anchor, 0.5)
        a.normalize()

        assert_allclose(a.weights, linear / linear.sum())


class TestNormalize:
    def test_sums_to_one(self):
        pf = make_filter(n=300)
        pf.update_weight(10.0, ANCHORS[1], 0.5)
        pf.normalize()
        assert pf.weights.sum() == pytest.approx(1.0)

    def test_far_range_is_not_degenerate(self):
        """A range far from every particle keeps finite log weights."""
        pf = make_filter(n=300)
        pf.update_weight(1.0e6, ANCHORS[0], 0.01)
        pf.normalize()

        assert pf.weights.sum() == pytest.approx(1.0)
        best = np.argmax(pf.weights)
        ranges = np.linalg.norm(pf.particles - ANCHORS[0], axis=1)
        assert best == np.argmax(ranges)

    def test_all_zero_weights_raise(self):
        pf = make_filter(n=300)
        pf.weights = np.zeros(300)

        with pytest.raises(DegenerateFilterError) as excinfo:
            pf.normalize()
        assert excinfo.value.weight_sum == 0.0

    def test_nan_positions_raise(self):
        pf = make_filter(n=5)
        pf.particles = np.full((5, 3), np.nan)
        pf.update_weight(3.0, ANCHORS[0], 0.5)

        with pytest.raises(DegenerateFilterError):
            pf.normalize()

    def test_non_finite_weights_raise(self):
        pf = make_filter(n=3)
        pf.weights = np.array([np.nan, 0.5, 0.5])
        with pytest.raises(DegenerateFilterError):
            pf.normalize()

    def test_posterior_mean_of_degenerate_filter_raises(self):
        pf = make_filter(n=3)
        pf.weights = np.zeros(3)
        with pytest.raises(DegenerateFilterError):
            pf.posterior_mean()


class TestResamplingGate:
    def test_gate_is_strict(self):
        """N_eff / N equal to tau does not trigger resampling."""
        pf = make_filter(n=4, tau=0.5)
        pf.weights = np.array([0.5, 0.5, 0.0, 0.0])

        assert pf.effective_sample_size() == pytest.approx(2.0)
        assert not pf.needs_resample()
        assert pf.resample() is False

        pf.tau = 0.51
        assert pf.needs_resample()

    def test_uniform_weights_keep_population(self):
        pf = make_filter(n=100)
        before = pf.particles.copy()

        assert pf.resample() is False
        np.testing.assert_array_equal(pf.particles, before)

    def test_ess_of_one_hot_weights(self):
        pf = make_filter(n=50)
        pf.weights = one_hot(50, 7)
        assert pf.effective_sample_size() == pytest.approx(1.0)


class TestSystematicResampling:
    def test_degenerate_weights_select_single_particle(self):
        pf = make_filter(n=100)
        pf.weights = one_hot(100, 3)
        chosen = pf.particles[3].copy()

        assert pf.resample() is True

        assert pf.n_particles == 100
        assert_allclose(pf.particles, np.tile(chosen, (100, 1)))
        assert_allclose(pf.weights, 0.01)
        assert pf.weights.sum() == pytest.approx(1.0)

    def test_weights_uniform_after_resample(self):
        pf = make_filter(n=1000, seed=4)
        for anchor in ANCHORS:
            pf.update_weight(np.linalg.norm(anchor), anchor, 0.1)
        pf.normalize()

        assert pf.resample() is True
        assert pf.weights.sum() == pytest.approx(1.0)
        assert pf.effective_sample_size() == pytest.approx(pf.n_particles)

    def test_resampled_particles_are_copies(self):
        pf = make_filter(n=10)
        pf.weights = one_hot(10, 0)
        pf.resample()

        pf.particles[0] += 1.0
        assert not np.allclose(pf.particles[0], pf.particles[1])

    def test_systematic_scheme_preserves_population(self):
        pf = make_filter(n=100, scheme=ResamplingScheme.SYSTEMATIC)
        pf.weights = np.concatenate([[0.97, 0.01, 0.01, 0.01], np.zeros(96)])

        pf.resample()

        assert pf.n_particles == 100

    def test_unique_scheme_shrinks_population(self):
        """Deduplicating the selected indices leaves fewer particles."""
        pf = make_filter(n=100, scheme=ResamplingScheme.SYSTEMATIC_UNIQUE)
        pf.weights = np.concatenate([[0.97, 0.01, 0.01, 0.01], np.zeros(96)])

        pf.resample()

        assert 1 <= pf.n_particles <= 4
        assert pf.nominal_n_particles == 100
        assert pf.weights.sum() == pytest.approx(1.0)
        assert len(np.unique(pf.particles, axis=0)) == pf.n_particles

    def test_selection_frequency_matches_weights(self):
        """Expected selection count of particle i is N * w_i."""
        weights = np.array([0.1, 0.2, 0.3, 0.4])
        rng = np.random.default_rng(11)
        trials = 5000

        counts = np.zeros(4)
        for _ in range(trials):
            counts += np.bincount(systematic_resample(weights, rng), minlength=4)

        assert_allclose(counts / (trials * len(weights)), weights, atol=0.01)

    def test_uniform_weights_unbiased(self):
        n = 10
        weights = np.full(n, 1.0 / n)
        rng = np.random.default_rng(12)

        counts = np.zeros(n)
        for _ in range(2000):
            counts += np.bincount(systematic_resample(weights, rng), minlength=n)

        assert_allclose(counts / (2000 * n), 1.0 / n, atol=0.01)

    def test_zero_weight_particles_never_selected(self):
        weights = np.array([0.0, 0.5, 0.0, 0.5])
        rng = np.random.default_rng(13)
        for _ in range(200):
            indices = systematic_resample(weights, rng)
            assert set(indices.tolist()) <= {1, 3}

    def test_unique_flag(self):
        indices = systematic_resample(np.array([0.0, 1.0, 0.0]), np.random.default_rng(0), unique=True)
        np.testing.assert_array_equal(indices, [1])


class TestPredict:
    def test_constant_velocity_shifts_particles(self):
        pf = make_filter(n=20)
        before = pf.particles.copy()
        model = ConstantVelocity3D([0.0, 0.0, 0.0], [0.0, 0.0, 0.0])

        pf.predict(0.5, np.array([2.0, 0.0, -1.0]), model)

        assert_allclose(pf.particles, before + np.array([1.0, 0.0, -0.5]))

    def test_zero_dt_leaves_particles(self):
        pf = make_filter(n=20)
        before = pf.particles.copy()
        model = WhiteNoiseAcceleration(np.zeros(3), np.zeros(3), np.zeros(3), np.ones(3) * 5.0)

        pf.predict(0.0, np.array([3.0, 3.0, 3.0]), model)

        np.testing.assert_array_equal(pf.particles, before)

    def test_process_noise_spreads_clones(self):
        pf = make_filter(n=100)
        pf.particles = np.zeros((100, 3))
        model = WhiteNoiseAcceleration(np.zeros(3), np.zeros(3), np.zeros(3), np.ones(3))

        pf.predict(1.0, np.zeros(3), model)

        assert len(np.unique(pf.particles[:, 0])) == 100


class TestEstimate:
    def setup_method(self):
        self.pf = make_filter(n=3)
        self.pf.particles = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 4.0, 0.0]])
        self.pf.weights = np.array([0.5, 0.25, 0.25])

    def test_posterior_mean(self):
        assert_allclose(self.pf.posterior_mean(), [0.5, 1.0, 0.0])

    def test_posterior_mean_of_unnormalized_weights(self):
        self.pf.weights = self.pf.weights * 8.0
        assert_allclose(self.pf.posterior_mean(), [0.5, 1.0, 0.0])

    def test_posterior_covariance(self):
        mean = np.array([0.5, 1.0, 0.0])
        diff = self.pf.particles - mean
        expected = sum(w * np.outer(d, d) for w, d in zip(self.pf.weights, diff))

        assert_allclose(self.pf.posterior_covariance(), expected)

    def test_estimate_updates_state(self):
        mean = self.pf.estimate()
        state, cov = self.pf.get_estimate()

        assert_allclose(mean, [0.5, 1.0, 0.0])
        assert_allclose(state, mean)
        assert cov.shape == (3, 3)

    def test_get_particles_returns_copies(self):
        particles, weights = self.pf.get_particles()
        particles[:] = 0.0
        weights[:] = 0.0

        assert self.pf.particles[1, 0] == 2.0
        assert self.pf.weights.sum() == pytest.approx(1.0)
