#!/usr/bin/env python3
"""Minimal CKF example: 1D constant-velocity tracking."""

import numpy as np

from ckf import CubatureKalmanFilter, FunctionSystem

dt = 0.1


# Process model: constant velocity  x_next = [pos + dt*vel, vel]
def process_model(x, u):
    return np.array([x[0] + dt * x[1], x[1]])


# Measurement model: observe position only
def meas_model(x):
    return np.array([x[0]])


# Create filter: 2 states [position, velocity], no input, 1 measurement [position]
kf = CubatureKalmanFilter(
    FunctionSystem(process_model, meas_model),
    state_dim=2,
    input_dim=0,
    meas_dim=1,
    process_noise=np.diag([0.1, 0.01]) ** 2,
    meas_noise=np.array([[0.5**2]]),
    mean=np.zeros(2),
    cov=np.eye(2),
)

# Simulate a target moving at constant velocity with noisy measurements
rng = np.random.default_rng(42)
true_velocity = 1.0

for t in range(100):
    true_pos = t * dt * true_velocity
    measurement = np.array([true_pos]) + rng.normal(0, 0.5, size=1)

    kf.predict().correct(measurement)

    print(
        f"t={t * dt:5.1f}  "
        f"true={true_pos:7.3f}  "
        f"meas={measurement[0]:7.3f}  "
        f"est_pos={kf.mean[0]:7.3f}  "
        f"est_vel={kf.mean[1]:7.3f}"
    )
