from __future__ import annotations

from typing import Protocol

import numpy as np

from .euclidean import as_float_points


def estimate_distance_matrix_memory(n_samples: int, dtype_size: int = 8) -> float:
    """Return the memory footprint (in GB) of an n×n distance matrix."""
    return (n_samples * n_samples * dtype_size) / (1024 ** 3)


class DistanceFunction(Protocol):
    """Protocol for distance lookups over a fixed candidate set.

    The estimator only ever needs whole rows: distances from one candidate
    (or from an accepted center) to every candidate.
    """

    def dist_row(self, i: int) -> np.ndarray:
        """Compute distances from candidate i to all candidates.

        Args:
            i: Index of source candidate

        Returns:
            Array of shape (n_samples,) with distances from candidate i to all candidates
        """
        ...

    def dist_to_point(self, point: np.ndarray) -> np.ndarray:
        """Compute distances from an arbitrary point to all candidates.

        Args:
            point: Array of shape (n_features,)

        Returns:
            Array of shape (n_samples,)
        """
        ...

    def shape(self) -> tuple[int, int]:
        """Return the shape of the distance matrix (n_samples, n_samples)."""
        ...


class EuclideanDistanceFunction:
    """On-the-fly Euclidean distance computation."""

    def __init__(self, X: np.ndarray):
        """Initialize Euclidean distance function.

        Args:
            X: Candidate array of shape (n_samples, n_features)
        """
        self.X = as_float_points(X)
        self.n = self.X.shape[0]

    def dist_row(self, i: int) -> np.ndarray:
        return self.dist_to_point(self.X[i])

    def dist_to_point(self, point: np.ndarray) -> np.ndarray:
        diff = self.X - as_float_points(point)  # Shape: (n_samples, n_features)
        return np.sqrt(np.sum(diff * diff, axis=1))

    def shape(self) -> tuple[int, int]:
        return (self.n, self.n)


class MatrixDistanceFunction:
    """Wrapper to make a precomputed distance matrix look like a DistanceFunction.

    Rows between candidates come from the matrix; distances to points that are
    not rows of the matrix (accepted centers are always candidates, but callers
    may pass any point) fall back to direct computation against `X`.
    """

    def __init__(self, D: np.ndarray, X: np.ndarray):
        self.D = np.asarray(D, dtype=float)
        if self.D.shape[0] != self.D.shape[1]:
            raise ValueError("Distance matrix must be square.")
        self.X = as_float_points(X)
        if self.X.shape[0] != self.D.shape[0]:
            raise ValueError("Distance matrix and candidate set disagree on n_samples.")
        self.n = self.D.shape[0]

    def dist_row(self, i: int) -> np.ndarray:
        return self.D[i].copy()

    def dist_to_point(self, point: np.ndarray) -> np.ndarray:
        diff = self.X - as_float_points(point)
        return np.sqrt(np.sum(diff * diff, axis=1))

    def shape(self) -> tuple[int, int]:
        return self.D.shape
