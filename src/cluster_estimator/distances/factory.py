from __future__ import annotations

from typing import Dict

import numpy as np

from .euclidean import pairwise_euclidean
from .function import (
    DistanceFunction,
    EuclideanDistanceFunction,
    MatrixDistanceFunction,
    estimate_distance_matrix_memory,
)


class DistanceFactory:
    """Factory for candidate-set distance lookups.

    The factory is responsible for:
    - choosing between a precomputed matrix and on-the-fly rows;
    - caching distance matrices keyed by dataset_id, so a parameter sweep over
      one candidate set builds its n×n matrix once;
    - estimating memory requirements for distance matrices.

    A dataset_id must always refer to the same candidate set; call `clear`
    before reusing an id for different candidates.
    """

    def __init__(self) -> None:
        self._cache: Dict[str, np.ndarray] = {}

    @staticmethod
    def estimate_memory(n_samples: int, dtype_size: int = 8) -> float:
        """Estimate memory required for a distance matrix in GB."""
        return estimate_distance_matrix_memory(n_samples, dtype_size)

    def get_distance_matrix(self, X: np.ndarray, dataset_id: str | None = None) -> np.ndarray:
        """Return the distance matrix for a candidate set, cached when `dataset_id` is given."""
        if dataset_id is not None and dataset_id in self._cache:
            return self._cache[dataset_id]

        D = pairwise_euclidean(X)

        if dataset_id is not None:
            self._cache[dataset_id] = D
        return D

    def get_distance_function(
        self,
        X: np.ndarray,
        memory_efficient: bool = False,
        dataset_id: str | None = None,
    ) -> DistanceFunction:
        """Return a distance function over the candidate set `X`.

        In memory-efficient mode rows are computed on demand without storing
        the full n×n matrix; otherwise the matrix is built up front (and cached
        under `dataset_id` when one is given).
        """
        if memory_efficient:
            return EuclideanDistanceFunction(X)
        return MatrixDistanceFunction(self.get_distance_matrix(X, dataset_id=dataset_id), X)

    def clear(self) -> None:
        self._cache.clear()
