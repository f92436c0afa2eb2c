#!/usr/bin/env python3
"""Nonlinear pendulum tracking with the Cubature Kalman Filter.

Optionally generates a matplotlib plot if matplotlib is installed.

Usage:
    python pendulum.py              # text output only
    python pendulum.py --plot       # with matplotlib visualization
    python pendulum.py --duration 20
    python pendulum.py --regularize # clip covariance eigenvalues each step
"""

import argparse
import logging
import math

import numpy as np

from ckf import CubatureKalmanFilter, FilterParameters

# ---------------------------------------------------------------------------
# Pendulum physics
# ---------------------------------------------------------------------------

G = 9.81   # gravitational acceleration (m/s^2)
L = 1.0    # pendulum length (m)
B = 0.1    # damping coefficient


def pendulum_rk4(theta, omega, dt):
    """RK4 integration of the damped pendulum ODE."""

    def deriv(th, om):
        return om, -(G / L) * math.sin(th) - B * om

    k1t, k1o = deriv(theta, omega)
    k2t, k2o = deriv(theta + k1t * dt / 2, omega + k1o * dt / 2)
    k3t, k3o = deriv(theta + k2t * dt / 2, omega + k2o * dt / 2)
    k4t, k4o = deriv(theta + k3t * dt, omega + k3o * dt)

    return (
        theta + (dt / 6) * (k1t + 2 * k2t + 2 * k3t + k4t),
        omega + (dt / 6) * (k1o + 2 * k2o + 2 * k3o + k4o),
    )


# ---------------------------------------------------------------------------
# System model
# ---------------------------------------------------------------------------


class Pendulum:
    """State ``[theta, omega]``; the control input is unused."""

    def __init__(self, dt):
        self.dt = dt

    def f(self, x, u):
        th, om = pendulum_rk4(x[0], x[1], self.dt)
        return np.array([th, om])

    def h(self, x):
        return np.array([x[0]])


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


def run(duration=10.0, dt=0.01, meas_rate=20.0, meas_noise=0.1,
        process_noise=0.01, initial_angle=math.pi / 4, plot=False,
        regularize=False):
    rng = np.random.default_rng(42)
    n_steps = int(duration / dt)
    report_every = max(1, n_steps // 10)
    meas_period = 1.0 / meas_rate

    kf = CubatureKalmanFilter(
        Pendulum(dt),
        state_dim=2,
        input_dim=0,
        meas_dim=1,
        process_noise=process_noise**2 * np.eye(2),
        meas_noise=np.array([[meas_noise**2]]),
        mean=np.array([initial_angle + rng.normal(0, 0.1), rng.normal(0, 0.1)]),
        cov=0.04 * np.eye(2),
        params=FilterParameters(regularize=regularize),
    )

    # Storage
    time_arr = np.zeros(n_steps)
    true_angle = np.zeros(n_steps)
    meas_arr = np.full(n_steps, np.nan)
    est_angle = np.zeros(n_steps)
    uncertainty = np.zeros(n_steps)

    theta_true = initial_angle
    omega_true = 0.0
    time_since_meas = 0.0

    for step in range(n_steps):
        t = step * dt
        time_arr[step] = t

        # True dynamics with process noise
        theta_noisy = theta_true + rng.normal(0, process_noise * dt)
        omega_noisy = omega_true + rng.normal(0, process_noise * dt)
        theta_true, omega_true = pendulum_rk4(theta_noisy, omega_noisy, dt)
        true_angle[step] = theta_true

        kf.predict()

        time_since_meas += dt
        if time_since_meas >= meas_period:
            z = np.array([theta_true + rng.normal(0, meas_noise)])
            meas_arr[step] = z[0]
            kf.correct(z)
            time_since_meas = 0.0

        est_angle[step] = kf.mean[0]
        uncertainty[step] = math.sqrt(kf.cov[0, 0])

        if step % report_every == 0:
            print(f"  {step * 100 // n_steps:3d}%  "
                  f"t={t:.2f}  true={theta_true:.4f}  "
                  f"est={kf.mean[0]:.4f}  err={abs(kf.mean[0] - theta_true):.4f}")

    settle = min(50, n_steps // 2)
    errors = np.abs(est_angle[settle:] - true_angle[settle:])
    if errors.size == 0:
        print("\nNo steps simulated; increase --duration.")
        return
    print("\nResults (after convergence):")
    print(f"  Mean error:  {np.mean(errors):.4f} rad ({np.degrees(np.mean(errors)):.2f} deg)")
    print(f"  Max error:   {np.max(errors):.4f} rad ({np.degrees(np.max(errors)):.2f} deg)")
    print(f"  Final P trace: {np.trace(kf.cov):.6f}")
    print(f"  Final gain:    {kf.kalman_gain.ravel()}")

    if plot:
        _plot(time_arr, true_angle, meas_arr, est_angle, uncertainty)


def _plot(time_arr, true_angle, meas_arr, est_angle, uncertainty):
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        print("\nInstall matplotlib for plotting: pip install matplotlib")
        return

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

    ax1.plot(time_arr, np.degrees(true_angle), "g-", alpha=0.8, label="True angle")
    meas_mask = ~np.isnan(meas_arr)
    ax1.scatter(
        time_arr[meas_mask],
        np.degrees(meas_arr[meas_mask]),
        c="red", s=8, alpha=0.5, label="Measurements", zorder=5,
    )
    ax1.plot(time_arr, np.degrees(est_angle), "b-", lw=2, label="CKF estimate")
    ax1.fill_between(
        time_arr,
        np.degrees(est_angle - uncertainty),
        np.degrees(est_angle + uncertainty),
        alpha=0.2, color="blue", label=r"$\pm 1\sigma$",
    )
    ax1.set_ylabel("Angle (degrees)")
    ax1.set_title("Pendulum Tracking with CKF")
    ax1.legend(loc="upper right")
    ax1.grid(True, alpha=0.3)

    error = np.degrees(np.abs(est_angle - true_angle))
    ax2.plot(time_arr, error, "r-", alpha=0.7)
    ax2.set_xlabel("Time (s)")
    ax2.set_ylabel("Absolute Error (degrees)")
    ax2.set_title("Tracking Error")
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig("pendulum_ckf.svg", dpi=150)
    print("\nSaved: pendulum_ckf.svg")
    plt.show()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Pendulum tracking with CKF")
    parser.add_argument("--duration", type=float, default=10.0)
    parser.add_argument("--noise", type=float, default=0.1)
    parser.add_argument("--plot", action="store_true")
    parser.add_argument("--regularize", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    print("Pendulum Tracking with CKF")
    print("=" * 45)
    run(duration=args.duration, meas_noise=args.noise, plot=args.plot,
        regularize=args.regularize)
