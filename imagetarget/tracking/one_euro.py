"""
One-euro adaptive low-pass filter.

Smooths a noisy multivariate signal (pose matrix, keypoint coordinates)
while staying responsive to real motion: the cutoff frequency of each
component rises with the smoothed speed of that component.

Ref: https://jaantollander.com/post/noise-filtering-using-one-euro-filter/
"""

import numpy as np
from numpy.typing import ArrayLike

# 1 Hz when timestamps are in milliseconds
DEFAULT_DERIVATIVE_CUTOFF = 0.001


def smoothing_factor(te, cutoff):
    """Exponential smoothing factor for time step ``te`` and ``cutoff``."""
    r = 2 * np.pi * cutoff * te
    return r / (r + 1)


def exponential_smoothing(a, x, x_prev):
    return a * x + (1 - a) * x_prev


class OneEuroFilter:
    """
    Stateful one-euro filter for a signal of fixed shape.

    Values and derivatives live in a two-slot double buffer; each step
    writes the inactive slot and flips ``_active``. Returned arrays are
    copies, so callers never see a buffer the next step overwrites.

    Example:
        >>> f = OneEuroFilter(min_cutoff=0.001, beta=1000)
        >>> for t, pose in stream:
        ...     smoothed = f.filter(t, pose)
    """

    def __init__(
        self,
        min_cutoff: float,
        beta: float,
        d_cutoff: float = DEFAULT_DERIVATIVE_CUTOFF,
    ):
        """
        Initialize the filter.

        Args:
            min_cutoff: Cutoff frequency for a signal at rest (> 0)
            beta: How strongly speed raises the cutoff (>= 0)
            d_cutoff: Cutoff frequency applied to the derivative (> 0)
        """
        if min_cutoff <= 0:
            raise ValueError(f"min_cutoff must be > 0, got {min_cutoff}")
        if beta < 0:
            raise ValueError(f"beta must be >= 0, got {beta}")
        if d_cutoff <= 0:
            raise ValueError(f"d_cutoff must be > 0, got {d_cutoff}")

        self.min_cutoff = min_cutoff
        self.beta = beta
        self.d_cutoff = d_cutoff
        self.reset()

    def reset(self) -> None:
        """Forget all state; the next call behaves like the first."""
        self.initialized = False
        self.t_prev: float | None = None
        self._x_slots: list[np.ndarray | None] = [None, None]
        self._dx_slots: list[np.ndarray | None] = [None, None]
        self._active = 0

    @property
    def x_prev(self) -> np.ndarray | None:
        """Last smoothed value (a live buffer, do not modify)."""
        return self._x_slots[self._active]

    @property
    def dx_prev(self) -> np.ndarray | None:
        """Last smoothed derivative (a live buffer, do not modify)."""
        return self._dx_slots[self._active]

    def filter(self, t: float, x: ArrayLike) -> np.ndarray:
        """
        Filter one sample.

        Args:
            t: Timestamp, in the time units the cutoffs are expressed in
            x: Sample; its shape is fixed by the first call

        Returns:
            Smoothed sample as a new float64 array. A timestamp that does
            not advance returns the previous output and leaves state as is.

        Raises:
            ValueError: If the sample shape differs from the first sample
        """
        x = np.array(x, dtype=np.float64, ndmin=1)

        if not self.initialized:
            self.initialized = True
            self._x_slots = [x.copy(), np.empty_like(x)]
            self._dx_slots = [np.zeros_like(x), np.empty_like(x)]
            self._active = 0
            self.t_prev = t
            return x

        x_prev = self._x_slots[self._active]
        dx_prev = self._dx_slots[self._active]
        if x.shape != x_prev.shape:
            raise ValueError(
                f"Sample shape {x.shape} does not match filter shape {x_prev.shape}"
            )

        te = t - self.t_prev
        if te <= 0:
            return x_prev.copy()

        nxt = 1 - self._active
        x_hat = self._x_slots[nxt]
        dx_hat = self._dx_slots[nxt]

        # The filtered derivative of the signal
        ad = smoothing_factor(te, self.d_cutoff)
        dx = (x - x_prev) / te
        dx_hat[...] = exponential_smoothing(ad, dx, dx_prev)

        # The filtered signal
        cutoff = self.min_cutoff + self.beta * np.abs(dx_hat)
        a = smoothing_factor(te, cutoff)
        x_hat[...] = exponential_smoothing(a, x, x_prev)

        self._active = nxt
        self.t_prev = t
        return x_hat.copy()
