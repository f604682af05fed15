from __future__ import annotations

from typing import Iterable

import numpy as np

from cluster_estimator.distances.euclidean import euclidean_distance
from cluster_estimator.distances.function import DistanceFunction

from ._shared import AcceptedCenter


def _sequential_sum(terms: np.ndarray) -> float:
    """Sum terms strictly left to right (np.sum reorders into pairwise blocks)."""
    if terms.size == 0:
        return 0.0
    return float(np.cumsum(terms)[-1])


def potential(x: np.ndarray, candidates: np.ndarray, alpha: float) -> float:
    """Density of candidates around `x`: sum of exp(-alpha * d(x, y)) over all y.

    `x` contributes exp(0) = 1 when it is itself a candidate. The exponent uses
    the plain Euclidean distance, not its square. Terms are added in candidate
    order.
    """
    dists = np.array([euclidean_distance(x, y) for y in candidates], dtype=np.float64)
    return _sequential_sum(np.exp(-alpha * dists))


def bias(x: np.ndarray, accepted: Iterable[AcceptedCenter], beta: float) -> float:
    """Suppression of `x` by accepted centers: sum of p * exp(-beta * d(loc, x))."""
    centers = list(accepted)
    weights = np.array([center.potential for center in centers], dtype=np.float64)
    dists = np.array(
        [euclidean_distance(center.location, x) for center in centers], dtype=np.float64
    )
    return _sequential_sum(weights * np.exp(-beta * dists))


def potential_field(distance: DistanceFunction, alpha: float) -> np.ndarray:
    """Return the potential of every candidate, shape (n_samples,).

    The potential does not depend on the accepted centers, so one pass over the
    rows serves every round of the peak search. Each entry equals
    ``potential(x_i, candidates, alpha)`` bit for bit.
    """
    n = distance.shape()[0]
    field = np.empty(n, dtype=np.float64)
    for i in range(n):
        field[i] = _sequential_sum(np.exp(-alpha * distance.dist_row(i)))
    return field


def bias_contribution(
    distance: DistanceFunction, center: AcceptedCenter, beta: float
) -> np.ndarray:
    """Suppression added by a single accepted center to every candidate.

    Adding contributions in acceptance order reproduces `bias` exactly.
    """
    return center.potential * np.exp(-beta * distance.dist_to_point(center.location))
