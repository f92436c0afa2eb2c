"""High-level Pythonic interface to the Cubature Kalman Filter.

Example
-------
>>> import numpy as np
>>> from ckf import CubatureKalmanFilter, FunctionSystem
>>>
>>> system = FunctionSystem(
...     lambda x, u: np.array([x[0] + 0.1 * x[1], x[1]]),
...     lambda x: np.array([x[0]]),
... )
>>> kf = CubatureKalmanFilter(
...     system, state_dim=2, input_dim=0, meas_dim=1,
...     process_noise=np.diag([0.01, 0.001]),
...     meas_noise=np.array([[0.25]]),
...     mean=np.zeros(2), cov=np.eye(2),
... )
>>> kf.predict().correct(np.array([0.12]))
>>> print(kf.mean)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from numpy.linalg import LinAlgError

from .cubature import (
    DEFAULT_EIGENVALUE_FLOOR,
    cubature_points,
    cubature_weights,
    regularize_covariance,
    weighted_covariance,
    weighted_cross_covariance,
    weighted_mean,
)
from .models import SystemModel
from .utils import (
    augment_covariance,
    augment_mean,
    is_finite,
    symmetrize,
    validate_covariance,
    validate_vector,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------


class CkfError(RuntimeError):
    """Base exception for CKF errors."""


class CkfParameterError(CkfError, ValueError):
    """Raised when an input does not match the filter's dimensions."""


class CkfMathError(CkfError):
    """Raised when a step produces NaN/Inf or a decomposition fails."""


class NonPositiveDefiniteError(CkfMathError):
    """Raised when a covariance has no Cholesky factor."""


class SingularInnovationError(CkfMathError):
    """Raised when the expected-measurement covariance cannot be inverted."""


def _check_shape(validate: Callable[..., np.ndarray], context: str, *args) -> np.ndarray:
    """Run a :mod:`ckf.utils` validator, re-raising as :class:`CkfParameterError`."""
    try:
        return validate(*args)
    except ValueError as exc:
        raise CkfParameterError(f"{context}: {exc}") from exc


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class FilterParameters:
    """Numerical options of :class:`CubatureKalmanFilter`.

    Attributes
    ----------
    regularize : bool
        Clip covariance eigenvalues at *eigenvalue_floor* before every
        Cholesky factorization (default ``False``).
    eigenvalue_floor : float
        Smallest eigenvalue the regularizer lets through (default ``1e-9``).
    symmetrize : bool
        Replace the covariance by ``0.5 * (P + P.T)`` after each step
        (default ``True``).
    """

    regularize: bool = False
    eigenvalue_floor: float = DEFAULT_EIGENVALUE_FLOOR
    symmetrize: bool = True

    def __post_init__(self) -> None:
        if not self.eigenvalue_floor > 0:
            raise CkfParameterError(
                f"eigenvalue_floor must be positive, got {self.eigenvalue_floor}"
            )


# ---------------------------------------------------------------------------
# Main class
# ---------------------------------------------------------------------------


class CubatureKalmanFilter:
    """Cubature Kalman Filter with an augmented-state measurement update.

    Parameters
    ----------
    system : SystemModel
        Object with ``f(x, u) -> x_next`` and ``h(x) -> z``.
    state_dim : int
        Dimension of the state vector (*N*).
    input_dim : int
        Dimension of the control vector (*M*, may be 0).
    meas_dim : int
        Dimension of the measurement vector (*K*).
    process_noise : array_like
        Process noise covariance *Q* (*N* x *N*).
    meas_noise : array_like
        Measurement noise covariance *R* (*K* x *K*).
    mean : array_like
        Initial state estimate (length *N*).
    cov : array_like
        Initial state covariance (*N* x *N*).
    params : FilterParameters, optional
        Numerical options; defaults to ``FilterParameters()``.

    Raises
    ------
    CkfParameterError
        If a dimension is invalid, a matrix has the wrong shape, a
        covariance is not symmetric, or *system* lacks ``f``/``h``.

    Examples
    --------
    >>> kf = CubatureKalmanFilter(
    ...     LinearSystem(A=[[1.0]], C=[[1.0]], B=[[1.0]]),
    ...     state_dim=1, input_dim=1, meas_dim=1,
    ...     process_noise=[[0.01]], meas_noise=[[0.1]],
    ...     mean=[0.0], cov=[[1.0]],
    ... )
    """

    def __init__(
        self,
        system: SystemModel,
        state_dim: int,
        input_dim: int,
        meas_dim: int,
        process_noise: np.ndarray,
        meas_noise: np.ndarray,
        mean: np.ndarray,
        cov: np.ndarray,
        params: Optional[FilterParameters] = None,
    ) -> None:
        if state_dim <= 0 or meas_dim <= 0 or input_dim < 0:
            raise CkfParameterError(
                f"Invalid dimensions: state_dim={state_dim}, "
                f"input_dim={input_dim}, meas_dim={meas_dim}"
            )
        self._check_system(system)

        self._state_dim = int(state_dim)
        self._input_dim = int(input_dim)
        self._meas_dim = int(meas_dim)
        self._system = system
        self._params = params or FilterParameters()

        n, k = self._state_dim, self._meas_dim
        self._process_noise = _check_shape(validate_covariance, "process_noise", process_noise, n, "Q")
        self._meas_noise = _check_shape(validate_covariance, "meas_noise", meas_noise, k, "R")
        self._mean = _check_shape(validate_vector, "mean", mean, n, "mean")
        self._cov = _check_shape(validate_covariance, "cov", cov, n, "cov")

        self._weights = cubature_weights(n)
        self._ext_weights = cubature_weights(n + k)

        self._cubature_points = np.zeros((2 * n, n))
        self._ext_cubature_points = np.zeros((2 * (n + k), n + k))
        self._expected_measurements = np.zeros((2 * (n + k), k))
        self._kalman_gain = np.zeros((n, k))

        logger.info(
            "CKF initialized: state_dim=%d, input_dim=%d, meas_dim=%d, regularize=%s",
            n, self._input_dim, k, self._params.regularize,
        )

    @staticmethod
    def _check_system(system) -> None:
        for name in ("f", "h"):
            if not callable(getattr(system, name, None)):
                raise CkfParameterError(f"system model has no callable '{name}'")

    # -- Properties ---------------------------------------------------------

    @property
    def state_dim(self) -> int:
        """State vector dimension *N*."""
        return self._state_dim

    @property
    def input_dim(self) -> int:
        """Control vector dimension *M*."""
        return self._input_dim

    @property
    def meas_dim(self) -> int:
        """Measurement vector dimension *K*."""
        return self._meas_dim

    @property
    def params(self) -> FilterParameters:
        return self._params

    @property
    def system(self) -> SystemModel:
        """The system model; assign to swap in another ``{f, h}`` object."""
        return self._system

    @system.setter
    def system(self, value: SystemModel) -> None:
        self._check_system(value)
        self._system = value

    @property
    def mean(self) -> np.ndarray:
        """Current state estimate as a 1-D array of length *N*.

        Examples
        --------
        >>> kf.mean
        array([0.])
        >>> kf.mean = np.array([1.0])
        """
        return self._mean.copy()

    @mean.setter
    def mean(self, value: np.ndarray) -> None:
        self.set_mean(value)

    @property
    def cov(self) -> np.ndarray:
        """Current state covariance (*N* x *N*)."""
        return self._cov.copy()

    @cov.setter
    def cov(self, value: np.ndarray) -> None:
        self.set_cov(value)

    @property
    def process_noise(self) -> np.ndarray:
        """Process noise covariance *Q* (*N* x *N*)."""
        return self._process_noise.copy()

    @property
    def meas_noise(self) -> np.ndarray:
        """Measurement noise covariance *R* (*K* x *K*)."""
        return self._meas_noise.copy()

    @property
    def kalman_gain(self) -> np.ndarray:
        """Gain from the last :meth:`correct` (*N* x *K*, zeros before)."""
        return self._kalman_gain.copy()

    @property
    def weights(self) -> np.ndarray:
        """Cubature weights for the state space (``2N`` entries of ``1/(2N)``)."""
        return self._weights.copy()

    @property
    def ext_weights(self) -> np.ndarray:
        """Cubature weights for the augmented space (``2(N+K)`` entries)."""
        return self._ext_weights.copy()

    @property
    def cubature_points(self) -> np.ndarray:
        """Points propagated by the last :meth:`predict` (``2N`` x *N*)."""
        return self._cubature_points.copy()

    @property
    def ext_cubature_points(self) -> np.ndarray:
        """Augmented points sampled by the last :meth:`correct`."""
        return self._ext_cubature_points.copy()

    @property
    def expected_measurements(self) -> np.ndarray:
        """Per-point expected measurements from the last :meth:`correct`."""
        return self._expected_measurements.copy()

    # -- Mutators -----------------------------------------------------------

    def set_mean(self, mean: np.ndarray) -> "CubatureKalmanFilter":
        """Replace the state estimate.

        Returns
        -------
        CubatureKalmanFilter
            *self*, for method chaining.
        """
        self._mean = _check_shape(validate_vector, "set_mean", mean, self._state_dim, "mean")
        return self

    def set_cov(self, cov: np.ndarray) -> "CubatureKalmanFilter":
        """Replace the state covariance.

        Returns
        -------
        CubatureKalmanFilter
            *self*, for method chaining.
        """
        self._cov = _check_shape(validate_covariance, "set_cov", cov, self._state_dim, "cov")
        return self

    def set_process_noise(self, process_noise: np.ndarray) -> "CubatureKalmanFilter":
        """Replace the process noise covariance *Q*.

        Returns
        -------
        CubatureKalmanFilter
            *self*, for method chaining.
        """
        self._process_noise = _check_shape(
            validate_covariance, "set_process_noise", process_noise, self._state_dim, "Q"
        )
        return self

    def set_meas_noise(self, meas_noise: np.ndarray) -> "CubatureKalmanFilter":
        """Replace the measurement noise covariance *R*.

        Returns
        -------
        CubatureKalmanFilter
            *self*, for method chaining.
        """
        self._meas_noise = _check_shape(
            validate_covariance, "set_meas_noise", meas_noise, self._meas_dim, "R"
        )
        return self

    # -- Methods ------------------------------------------------------------

    def predict(self, control: Optional[np.ndarray] = None) -> "CubatureKalmanFilter":
        """Run the prediction step.

        Samples ``2N`` cubature points from the current belief, pushes
        each through ``system.f`` and recombines them into the predicted
        mean and covariance, then adds *Q*.

        Parameters
        ----------
        control : array_like, optional
            Control vector of length *M*.  May be omitted only when the
            filter was built with ``input_dim=0``.

        Returns
        -------
        CubatureKalmanFilter
            *self*, for method chaining.

        Raises
        ------
        CkfParameterError
            If *control* or the output of ``f`` has the wrong length.
        NonPositiveDefiniteError
            If the current covariance has no Cholesky factor.
        CkfMathError
            If the covariance or the output of ``f`` contains NaN/Inf.

        Examples
        --------
        >>> kf.predict(np.array([1.0]))
        """
        control = self._control(control)
        n = self._state_dim

        cov = self._regularize(self._cov, "predict")
        points = self._sample(self._mean, cov, "predict")
        points = self._propagate(
            lambda x: self._system.f(x, control.copy()), points, n, "f", "predict"
        )

        mean_pred = weighted_mean(points, self._weights)
        cov_pred = weighted_covariance(points, self._weights, mean_pred)
        cov_pred += self._process_noise

        self._cubature_points = points
        self._mean = mean_pred
        self._cov = symmetrize(cov_pred) if self._params.symmetrize else cov_pred

        logger.debug("predict: trace(P)=%.6g", float(np.trace(self._cov)))
        return self

    def correct(self, measurement: np.ndarray) -> "CubatureKalmanFilter":
        """Run the correction step.

        The state is augmented with the measurement noise, so the
        ``2(N+K)`` cubature points carry both state uncertainty and *R*
        through ``system.h``.  The updated belief is the state block of
        the corrected augmented belief.

        Parameters
        ----------
        measurement : array_like
            Measurement vector of length *K*.

        Returns
        -------
        CubatureKalmanFilter
            *self*, for method chaining.

        Raises
        ------
        CkfParameterError
            If *measurement* or the output of ``h`` has the wrong length,
            or *measurement* contains NaN/Inf.
        NonPositiveDefiniteError
            If the augmented covariance has no Cholesky factor.
        SingularInnovationError
            If the expected-measurement covariance is singular.
        CkfMathError
            If the output of ``h`` contains NaN/Inf.

        Examples
        --------
        >>> kf.correct(np.array([1.2]))
        """
        measurement = _check_shape(
            validate_vector, "correct", measurement, self._meas_dim, "measurement"
        )
        if not is_finite(measurement):
            raise CkfParameterError("correct: measurement contains NaN or Inf")
        n = self._state_dim

        ext_mean = augment_mean(self._mean, self._meas_dim)
        ext_cov = augment_covariance(self._cov, self._meas_noise)
        ext_cov = self._regularize(ext_cov, "correct")
        ext_points = self._sample(ext_mean, ext_cov, "correct")

        expected = self._propagate(
            self._system.h, ext_points[:, :n], self._meas_dim, "h", "correct"
        )
        expected += ext_points[:, n:]

        w = self._ext_weights
        z_mean = weighted_mean(expected, w)
        z_cov = weighted_covariance(expected, w, z_mean)
        cross_cov = weighted_cross_covariance(ext_points, expected, w, ext_mean, z_mean)

        gain = cross_cov @ self._invert_innovation(z_cov)
        innovation = measurement - z_mean

        ext_mean = ext_mean + gain @ innovation
        ext_cov = ext_cov - gain @ z_cov @ gain.T

        self._ext_cubature_points = ext_points
        self._expected_measurements = expected
        self._kalman_gain = gain[:n]
        self._mean = ext_mean[:n]
        cov = ext_cov[:n, :n]
        self._cov = symmetrize(cov) if self._params.symmetrize else cov

        logger.debug(
            "correct: |innovation|=%.6g, trace(P)=%.6g",
            float(np.linalg.norm(innovation)),
            float(np.trace(self._cov)),
        )
        return self

    #: Alias of :meth:`correct`.
    update = correct

    # -- Internals ----------------------------------------------------------

    def _control(self, control: Optional[np.ndarray]) -> np.ndarray:
        if control is None:
            if self._input_dim:
                raise CkfParameterError(
                    f"predict: control of length {self._input_dim} is required"
                )
            return np.zeros(0)
        return _check_shape(validate_vector, "predict", control, self._input_dim, "control")

    def _regularize(self, cov: np.ndarray, context: str) -> np.ndarray:
        if not self._params.regularize:
            return cov
        if not is_finite(cov):
            raise CkfMathError(f"{context}: covariance contains NaN or Inf")
        try:
            return regularize_covariance(cov, self._params.eigenvalue_floor)
        except LinAlgError as exc:
            raise CkfMathError(f"{context}: eigendecomposition failed") from exc

    @staticmethod
    def _sample(mean: np.ndarray, cov: np.ndarray, context: str) -> np.ndarray:
        if not (is_finite(mean) and is_finite(cov)):
            raise CkfMathError(f"{context}: mean or covariance contains NaN or Inf")
        try:
            return cubature_points(mean, cov)
        except LinAlgError as exc:
            raise NonPositiveDefiniteError(
                f"{context}: non-positive-definite covariance"
            ) from exc

    @staticmethod
    def _propagate(
        func: Callable[[np.ndarray], np.ndarray],
        points: np.ndarray,
        out_dim: int,
        name: str,
        context: str,
    ) -> np.ndarray:
        out = np.empty((points.shape[0], out_dim))
        for i, point in enumerate(points):
            value = np.asarray(func(point.copy()), dtype=np.float64).ravel()
            if value.shape[0] != out_dim:
                raise CkfParameterError(
                    f"{context}: {name} returned {value.shape[0]} elements, "
                    f"expected {out_dim}"
                )
            out[i] = value
        if not is_finite(out):
            raise CkfMathError(f"{context}: {name} produced NaN or Inf")
        return out

    @staticmethod
    def _invert_innovation(z_cov: np.ndarray) -> np.ndarray:
        if not is_finite(z_cov):
            raise SingularInnovationError(
                "correct: innovation covariance contains NaN or Inf"
            )
        cond = np.linalg.cond(z_cov)
        if not np.isfinite(cond) or cond * np.finfo(np.float64).eps >= 1.0:
            raise SingularInnovationError(
                f"correct: singular innovation covariance (cond={cond:.3e})"
            )
        try:
            return np.linalg.inv(z_cov)
        except LinAlgError as exc:
            raise SingularInnovationError(
                "correct: singular innovation covariance"
            ) from exc

    # -- Representation -----------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"CubatureKalmanFilter(state_dim={self._state_dim}, "
            f"input_dim={self._input_dim}, meas_dim={self._meas_dim})"
        )
