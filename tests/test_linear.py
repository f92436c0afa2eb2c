"""Linear-Gaussian checks: the cubature filter must reproduce the Kalman filter."""

import numpy as np
import pytest

from ckf import CubatureKalmanFilter, FunctionSystem, LinearSystem


def linear_kf_step(x, P, A, B, u, Q, C, R, z):
    """Textbook Kalman filter predict + correct."""
    x = A @ x + B @ u
    P = A @ P @ A.T + Q
    S = C @ P @ C.T + R
    K = P @ C.T @ np.linalg.inv(S)
    return x + K @ (z - C @ x), P - K @ S @ K.T, K


@pytest.fixture
def tracker():
    """3-state constant-acceleration model observed in position and velocity."""
    dt = 0.2
    A = np.array([[1.0, dt, 0.5 * dt**2], [0.0, 1.0, dt], [0.0, 0.0, 1.0]])
    B = np.array([[0.0], [0.0], [dt]])
    C = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    return LinearSystem(A=A, C=C, B=B)


def make_filter(system, mean, cov, Q, R):
    return CubatureKalmanFilter(
        system,
        state_dim=system.state_dim,
        input_dim=system.input_dim,
        meas_dim=system.meas_dim,
        process_noise=Q,
        meas_noise=R,
        mean=mean,
        cov=cov,
    )


class TestScalarScenario:
    """N=1, f(x, u) = x + u, h(x) = x, Q=0.01, R=0.1."""

    @pytest.fixture
    def kf(self):
        system = FunctionSystem(lambda x, u: x + u, lambda x: x)
        return CubatureKalmanFilter(
            system,
            state_dim=1,
            input_dim=1,
            meas_dim=1,
            process_noise=np.array([[0.01]]),
            meas_noise=np.array([[0.1]]),
            mean=np.array([0.0]),
            cov=np.array([[1.0]]),
        )

    def test_predict(self, kf):
        kf.predict(np.array([1.0]))
        assert kf.mean[0] == pytest.approx(1.0, abs=1e-9)
        assert kf.cov[0, 0] == pytest.approx(1.01, abs=1e-9)

    def test_correct(self, kf):
        kf.predict(np.array([1.0])).correct(np.array([1.2]))
        gain = 1.01 / 1.11
        assert kf.kalman_gain[0, 0] == pytest.approx(gain, abs=1e-9)
        assert kf.mean[0] == pytest.approx(1.0 + gain * 0.2, abs=1e-9)
        assert kf.cov[0, 0] == pytest.approx(1.01 * (1.0 - gain), abs=1e-9)

    def test_correct_rounded_values(self, kf):
        kf.predict(np.array([1.0])).correct(np.array([1.2]))
        assert kf.kalman_gain[0, 0] == pytest.approx(0.9099, abs=1e-3)
        assert kf.mean[0] == pytest.approx(1.182, abs=1e-3)
        assert kf.cov[0, 0] == pytest.approx(0.0910, abs=1e-3)


class TestLinearPredict:
    def test_matches_linear_transform(self, tracker):
        rng = np.random.default_rng(3)
        a = rng.standard_normal((3, 3))
        cov = a @ a.T + np.eye(3)
        mean = rng.standard_normal(3)
        u = np.array([0.7])

        kf = make_filter(tracker, mean, cov, np.zeros((3, 3)), 0.1 * np.eye(2))
        kf.predict(u)

        A, B = tracker.A, tracker.B
        np.testing.assert_allclose(kf.mean, A @ mean + B @ u, atol=1e-10)
        np.testing.assert_allclose(kf.cov, A @ cov @ A.T, atol=1e-10)

    def test_process_noise_added(self, tracker):
        Q = np.diag([0.1, 0.2, 0.3])
        kf = make_filter(tracker, np.zeros(3), np.eye(3), Q, np.eye(2))
        kf.predict(np.zeros(1))
        A = tracker.A
        np.testing.assert_allclose(kf.cov, A @ A.T + Q, atol=1e-10)

    def test_fixed_point_system(self):
        identity = LinearSystem(A=np.eye(2), C=np.array([[1.0, 0.0]]))
        cov = np.array([[0.5, 0.1], [0.1, 0.3]])
        kf = make_filter(identity, np.array([1.0, -1.0]), cov, np.zeros((2, 2)), np.eye(1))

        traces = []
        for _ in range(25):
            kf.predict()
            traces.append(np.trace(kf.cov))

        np.testing.assert_allclose(kf.mean, [1.0, -1.0], atol=1e-10)
        np.testing.assert_allclose(kf.cov, cov, atol=1e-10)
        for before, after in zip(traces, traces[1:]):
            assert after <= before + 1e-12


class TestLinearCorrect:
    def test_zero_innovation_keeps_mean(self, tracker):
        mean = np.array([1.0, 0.5, -0.2])
        cov = np.diag([0.5, 0.4, 0.3])
        kf = make_filter(tracker, mean, cov, 0.01 * np.eye(3), np.diag([0.2, 0.1]))

        trace_before = np.trace(kf.cov)
        kf.correct(tracker.C @ mean)

        np.testing.assert_allclose(kf.mean, mean, atol=1e-12)
        assert np.trace(kf.cov) < trace_before

    def test_matches_kalman_filter_over_sequence(self, tracker):
        rng = np.random.default_rng(11)
        Q = np.diag([1e-3, 1e-3, 1e-2])
        R = np.diag([0.25, 0.09])
        x = np.array([0.0, 1.0, 0.0])
        P = np.eye(3)
        kf = make_filter(tracker, x, P, Q, R)

        truth = np.array([0.0, 1.0, 0.1])
        for _ in range(30):
            u = rng.normal(0.0, 0.5, size=1)
            truth = tracker.f(truth, u)
            z = tracker.h(truth) + rng.normal(0.0, [0.5, 0.3])

            x, P, K = linear_kf_step(x, P, tracker.A, tracker.B, u, Q, tracker.C, R, z)
            kf.predict(u).correct(z)

            np.testing.assert_allclose(kf.mean, x, rtol=1e-8, atol=1e-8)
            np.testing.assert_allclose(kf.cov, P, rtol=1e-8, atol=1e-8)
            np.testing.assert_allclose(kf.kalman_gain, K, rtol=1e-8, atol=1e-8)

    def test_noise_enters_innovation_once(self):
        """Expected-measurement spread is H P H^T + R, not H P H^T + 2R."""
        system = LinearSystem(A=[[1.0]], C=[[2.0]])
        kf = make_filter(system, np.array([0.0]), np.array([[1.0]]), np.zeros((1, 1)), np.array([[0.5]]))
        kf.correct(np.array([1.0]))

        expected = kf.expected_measurements
        w = kf.ext_weights
        spread = w @ expected**2 - (w @ expected) ** 2
        assert spread[0] == pytest.approx(4.0 + 0.5)
        assert kf.kalman_gain[0, 0] == pytest.approx(2.0 / 4.5)
