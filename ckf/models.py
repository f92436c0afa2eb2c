"""System model interface for the Cubature Kalman Filter.

The filter works with any object exposing

- ``f(state, control) -> next_state``  (transition), and
- ``h(state) -> measurement``          (observation).

:class:`SystemModel` spells out that interface for type checkers.
:class:`FunctionSystem` adapts two plain callables and
:class:`LinearSystem` is the linear-Gaussian reference model.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol

import numpy as np


class SystemModel(Protocol):
    """Transition and measurement functions of an estimated system."""

    def f(self, state: np.ndarray, control: np.ndarray) -> np.ndarray:
        """Propagate *state* one step under *control*."""
        ...

    def h(self, state: np.ndarray) -> np.ndarray:
        """Map *state* to the measurement it would produce."""
        ...


class FunctionSystem:
    """Wrap a pair of callables as a :class:`SystemModel`.

    Parameters
    ----------
    transition : callable
        ``transition(x, u) -> x_next``.
    measurement : callable
        ``measurement(x) -> z``.

    Examples
    --------
    >>> system = FunctionSystem(lambda x, u: x + u, lambda x: x[:1])
    >>> system.f(np.array([1.0, 2.0]), np.array([0.5, 0.5]))
    array([1.5, 2.5])
    """

    def __init__(
        self,
        transition: Callable[[np.ndarray, np.ndarray], np.ndarray],
        measurement: Callable[[np.ndarray], np.ndarray],
    ) -> None:
        if not callable(transition) or not callable(measurement):
            raise TypeError("transition and measurement must be callable")
        self._transition = transition
        self._measurement = measurement

    def f(self, state: np.ndarray, control: np.ndarray) -> np.ndarray:
        return self._transition(state, control)

    def h(self, state: np.ndarray) -> np.ndarray:
        return self._measurement(state)

    def __repr__(self) -> str:
        return (
            f"FunctionSystem(transition={self._transition!r}, "
            f"measurement={self._measurement!r})"
        )


class LinearSystem:
    """Linear model ``f(x, u) = A x + B u``, ``h(x) = C x``.

    Parameters
    ----------
    A : array_like
        State transition matrix (*N* x *N*).
    C : array_like
        Observation matrix (*K* x *N*).
    B : array_like, optional
        Control matrix (*N* x *M*).  Omit for systems without input.

    Raises
    ------
    ValueError
        If the matrix shapes are inconsistent.
    """

    def __init__(
        self,
        A: np.ndarray,
        C: np.ndarray,
        B: Optional[np.ndarray] = None,
    ) -> None:
        A = np.atleast_2d(np.asarray(A, dtype=np.float64))
        C = np.atleast_2d(np.asarray(C, dtype=np.float64))
        n = A.shape[0]
        if A.shape != (n, n):
            raise ValueError(f"A must be square, got shape {A.shape}")
        if C.shape[1] != n:
            raise ValueError(
                f"C shape {C.shape} does not match state dimension {n}"
            )
        if B is None:
            B = np.zeros((n, 0))
        else:
            B = np.asarray(B, dtype=np.float64).reshape(n, -1)

        self.A = A
        self.B = B
        self.C = C

    @property
    def state_dim(self) -> int:
        return self.A.shape[0]

    @property
    def input_dim(self) -> int:
        return self.B.shape[1]

    @property
    def meas_dim(self) -> int:
        return self.C.shape[0]

    def f(self, state: np.ndarray, control: np.ndarray) -> np.ndarray:
        return self.A @ state + self.B @ control

    def h(self, state: np.ndarray) -> np.ndarray:
        return self.C @ state

    def __repr__(self) -> str:
        return (
            f"LinearSystem(state_dim={self.state_dim}, "
            f"input_dim={self.input_dim}, meas_dim={self.meas_dim})"
        )
