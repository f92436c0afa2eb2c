"""Cubature Kalman Filter.

Quick start::

    import numpy as np
    from ckf import CubatureKalmanFilter, FunctionSystem

    system = FunctionSystem(
        lambda x, u: np.array([x[0] + 0.1 * x[1], x[1]]),
        lambda x: np.array([x[0]]),
    )
    kf = CubatureKalmanFilter(
        system, state_dim=2, input_dim=0, meas_dim=1,
        process_noise=np.diag([0.01, 0.001]),
        meas_noise=np.array([[0.25]]),
        mean=np.zeros(2), cov=np.eye(2),
    )
    kf.predict()
    kf.correct(np.array([0.12]))
"""

from .core import (
    CkfError,
    CkfMathError,
    CkfParameterError,
    CubatureKalmanFilter,
    FilterParameters,
    NonPositiveDefiniteError,
    SingularInnovationError,
)
from .cubature import cubature_points, cubature_weights, regularize_covariance
from .models import FunctionSystem, LinearSystem, SystemModel
from .version import __version__, __version_info__

__all__ = [
    "CubatureKalmanFilter",
    "FilterParameters",
    "SystemModel",
    "FunctionSystem",
    "LinearSystem",
    "cubature_points",
    "cubature_weights",
    "regularize_covariance",
    "CkfError",
    "CkfParameterError",
    "CkfMathError",
    "NonPositiveDefiniteError",
    "SingularInnovationError",
    "__version__",
    "__version_info__",
]
