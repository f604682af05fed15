from __future__ import annotations

import math

import numpy as np


def as_float_points(x: np.ndarray) -> np.ndarray:
    """Widen integer coordinates to float64 before any arithmetic.

    int16 differences near the ends of the range (e.g. 32767 - (-32768))
    do not fit in int16, so subtraction always happens in float64.
    """
    return np.asarray(x, dtype=np.float64)


def euclidean_distance(p: np.ndarray, q: np.ndarray) -> float:
    """Return the straight-line distance between two points of equal dimension."""
    p = as_float_points(p)
    q = as_float_points(q)
    if p.shape != q.shape:
        raise ValueError(f"Dimension mismatch: {p.shape} vs {q.shape}.")
    diff = p - q
    return math.sqrt(float(np.sum(diff * diff)))


def pairwise_euclidean(x: np.ndarray) -> np.ndarray:
    """Compute the pairwise Euclidean distance matrix between rows of `x`.

    Parameters
    ----------
    x:
        Array of shape (n_samples, n_features).

    Returns
    -------
    np.ndarray
        Symmetric distance matrix of shape (n_samples, n_samples).
    """
    x = as_float_points(x)

    # Broadcasting to shape (n_samples, n_samples, n_features)
    diff = x[:, None, :] - x[None, :, :]
    return np.sqrt(np.sum(diff * diff, axis=-1))
