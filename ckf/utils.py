"""Array helpers for the Cubature Kalman Filter.

Validation of user-supplied vectors and matrices, plus the small block
operations used to build the augmented (state + measurement noise)
distribution.
"""

from __future__ import annotations

import numpy as np

# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def validate_square(arr: np.ndarray, name: str = "matrix") -> np.ndarray:
    """Ensure *arr* is a square 2-D float64 array.

    Parameters
    ----------
    arr : array_like
        Input to validate.
    name : str
        Human-readable name for error messages.

    Returns
    -------
    numpy.ndarray
        Validated array (a new object if dtype conversion occurred).

    Raises
    ------
    ValueError
        If the array is not 2-D or not square.
    """
    arr = np.asarray(arr, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise ValueError(
            f"{name} must be a square 2-D array, got shape {arr.shape}"
        )
    return arr


def validate_matrix(arr: np.ndarray, size: int, name: str = "matrix") -> np.ndarray:
    """Ensure *arr* is a ``size`` x ``size`` float64 array.

    Raises
    ------
    ValueError
        If the array is not square or has the wrong size.
    """
    arr = validate_square(arr, name)
    if arr.shape[0] != size:
        raise ValueError(
            f"{name} must be {size}x{size}, got shape {arr.shape}"
        )
    return arr


def validate_covariance(arr: np.ndarray, size: int, name: str = "covariance") -> np.ndarray:
    """Ensure *arr* is a symmetric ``size`` x ``size`` float64 array.

    Cholesky factorization reads only the lower triangle, so an asymmetric
    matrix would otherwise be factored as a different matrix.

    Raises
    ------
    ValueError
        If the array has the wrong shape or is not symmetric.
    """
    arr = validate_matrix(arr, size, name)
    if not np.allclose(arr, arr.T, equal_nan=True):
        raise ValueError(f"{name} must be symmetric")
    return arr


def validate_vector(arr: np.ndarray, length: int, name: str = "vector") -> np.ndarray:
    """Ensure *arr* is a 1-D float64 array of the given length.

    Column and row vectors are flattened.

    Parameters
    ----------
    arr : array_like
        Input to validate.
    length : int
        Expected number of elements.
    name : str
        Human-readable name for error messages.

    Returns
    -------
    numpy.ndarray
        Validated 1-D array.

    Raises
    ------
    ValueError
        If shape does not match.
    """
    arr = np.asarray(arr, dtype=np.float64).ravel()
    if arr.shape[0] != length:
        raise ValueError(
            f"{name} must have {length} elements, got {arr.shape[0]}"
        )
    return arr


def is_finite(arr: np.ndarray) -> bool:
    """Return *True* when *arr* holds no NaN or Inf."""
    return bool(np.all(np.isfinite(arr)))


# ---------------------------------------------------------------------------
# Block helpers
# ---------------------------------------------------------------------------


def symmetrize(mat: np.ndarray) -> np.ndarray:
    """Return ``0.5 * (mat + mat.T)``."""
    return 0.5 * (mat + mat.T)


def augment_mean(mean: np.ndarray, extra_dim: int) -> np.ndarray:
    """Stack *mean* on top of ``extra_dim`` zeros.

    Examples
    --------
    >>> augment_mean(np.array([1.0, 2.0]), 1)
    array([1., 2., 0.])
    """
    return np.concatenate([mean, np.zeros(extra_dim)])


def augment_covariance(cov: np.ndarray, noise_cov: np.ndarray) -> np.ndarray:
    """Block-diagonal matrix with *cov* top-left and *noise_cov* bottom-right.

    The off-diagonal blocks are zero: state and noise are uncorrelated.

    Examples
    --------
    >>> augment_covariance(np.eye(2), np.array([[0.5]]))
    array([[1. , 0. , 0. ],
           [0. , 1. , 0. ],
           [0. , 0. , 0.5]])
    """
    n = cov.shape[0]
    k = noise_cov.shape[0]
    out = np.zeros((n + k, n + k))
    out[:n, :n] = cov
    out[n:, n:] = noise_cov
    return out
