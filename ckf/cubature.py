"""Spherical-radial cubature rule.

Pure numpy functions used by :class:`ckf.CubatureKalmanFilter`:

- weight vectors for the third-degree cubature rule,
- cubature point generation from a mean/covariance pair,
- weighted moments of a point set,
- eigenvalue clipping of ill-conditioned covariances.

Points are stored one per row, so a set of ``2n`` points over an
``n``-dimensional space is a ``(2n, n)`` array.

Failures are reported with :class:`numpy.linalg.LinAlgError`; the filter
translates them into its own exception types.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.linalg import LinAlgError

logger = logging.getLogger(__name__)

#: Default eigenvalue floor used by :func:`regularize_covariance`.
DEFAULT_EIGENVALUE_FLOOR = 1e-9

# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------


def cubature_weights(n: int) -> np.ndarray:
    """Return the ``2n`` equal weights ``1 / (2n)`` of the cubature rule.

    Parameters
    ----------
    n : int
        Dimension of the space the points live in (must be > 0).

    Examples
    --------
    >>> cubature_weights(2)
    array([0.25, 0.25, 0.25, 0.25])
    """
    if n <= 0:
        raise ValueError(f"Dimension must be positive, got {n}")
    return np.full(2 * n, 1.0 / (2 * n))


# ---------------------------------------------------------------------------
# Point generation
# ---------------------------------------------------------------------------


def cubature_points(mean: np.ndarray, cov: np.ndarray) -> np.ndarray:
    """Generate the ``2n`` cubature points of ``N(mean, cov)``.

    With ``L`` the lower Cholesky factor of *cov*::

        point[i]     = mean + sqrt(n) * L[:, i]
        point[n + i] = mean - sqrt(n) * L[:, i]

    Parameters
    ----------
    mean : numpy.ndarray
        1-D array of length *n*.
    cov : numpy.ndarray
        Symmetric positive-definite ``(n, n)`` array.

    Returns
    -------
    numpy.ndarray
        ``(2n, n)`` array, one point per row.  The inputs are not modified.

    Raises
    ------
    numpy.linalg.LinAlgError
        If *cov* is not positive definite or not symmetric.
    ValueError
        If the shapes of *mean* and *cov* disagree.
    """
    n = mean.shape[0]
    if cov.shape != (n, n):
        raise ValueError(
            f"covariance shape {cov.shape} does not match mean length {n}"
        )

    if not np.allclose(cov, cov.T):
        raise LinAlgError("non-positive-definite covariance: matrix is not symmetric")

    try:
        chol = np.linalg.cholesky(cov)
    except LinAlgError as exc:
        raise LinAlgError("non-positive-definite covariance") from exc

    offsets = np.sqrt(n) * chol.T  # row i is column i of L * sqrt(n)
    return np.vstack([mean + offsets, mean - offsets])


# ---------------------------------------------------------------------------
# Moments
# ---------------------------------------------------------------------------


def weighted_mean(points: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Return ``sum_i weights[i] * points[i]``."""
    return weights @ points


def weighted_covariance(
    points: np.ndarray,
    weights: np.ndarray,
    mean: np.ndarray,
) -> np.ndarray:
    """Return ``sum_i w_i p_i p_i^T - mean mean^T``."""
    return weighted_cross_covariance(points, points, weights, mean, mean)


def weighted_cross_covariance(
    a: np.ndarray,
    b: np.ndarray,
    weights: np.ndarray,
    mean_a: np.ndarray,
    mean_b: np.ndarray,
) -> np.ndarray:
    """Return ``sum_i w_i a_i b_i^T - mean_a mean_b^T``.

    Parameters
    ----------
    a : numpy.ndarray
        ``(S, p)`` point set.
    b : numpy.ndarray
        ``(S, q)`` point set paired row-by-row with *a*.
    weights : numpy.ndarray
        Length-*S* weights.
    mean_a, mean_b : numpy.ndarray
        Weighted means of *a* and *b*.

    Returns
    -------
    numpy.ndarray
        ``(p, q)`` array.
    """
    return (a * weights[:, None]).T @ b - np.outer(mean_a, mean_b)


# ---------------------------------------------------------------------------
# Regularization
# ---------------------------------------------------------------------------


def regularize_covariance(
    cov: np.ndarray,
    floor: float = DEFAULT_EIGENVALUE_FLOOR,
) -> np.ndarray:
    """Clip the eigenvalues of *cov* from below at *floor*.

    The matrix is symmetrized, eigendecomposed and rebuilt as
    ``V diag(max(lambda, floor)) V^T``, which makes it strictly positive
    definite.  A matrix whose eigenvalues are all above *floor* comes back
    unchanged up to round-off.

    Parameters
    ----------
    cov : numpy.ndarray
        Square covariance matrix.
    floor : float
        Smallest eigenvalue allowed (must be > 0).

    Returns
    -------
    numpy.ndarray
        A new array; *cov* is not modified.

    Raises
    ------
    ValueError
        If *floor* is not positive.
    numpy.linalg.LinAlgError
        If the eigendecomposition does not converge.

    Examples
    --------
    >>> regularize_covariance(np.diag([1.0, -1.0]), floor=1e-3)
    array([[1.e+00, 0.e+00],
           [0.e+00, 1.e-03]])
    """
    if floor <= 0:
        raise ValueError(f"Eigenvalue floor must be positive, got {floor}")

    sym = 0.5 * (cov + cov.T)
    eigvals, eigvecs = np.linalg.eigh(sym)
    clipped = eigvals < floor
    if not np.any(clipped):
        return sym

    logger.debug(
        "Clipped %d of %d eigenvalues (min %.3e) to %.1e",
        int(np.count_nonzero(clipped)),
        eigvals.size,
        float(eigvals.min()),
        floor,
    )
    eigvals = np.maximum(eigvals, floor)
    return (eigvecs * eigvals) @ eigvecs.T
