from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from cluster_estimator.distances.factory import DistanceFactory

from ._shared import (
    AcceptedCenter,
    NoPeakError,
    centers_to_array,
    validate_candidates,
    validate_edge_divisor,
)
from .fields import bias_contribution, potential_field

logger = logging.getLogger(__name__)

# Rounds allowed after the unconditional first acceptance.
MAX_EXTRA_ROUNDS = 100


@dataclass(frozen=True)
class MountainConfig:
    """Configuration for mountain (subtractive) cluster-center estimation.

    Attributes
    ----------
    edge_divisor:
        The run stops once the best remaining net potential falls below
        ``first_peak / edge_divisor``. Must fit in a uint8; 0 keeps only
        the first peak.
    alpha:
        Decay rate of the potential field. Larger values make the density
        estimate more local.
    beta:
        Decay rate of the suppression around accepted centers. Larger values
        narrow the suppression radius.
    memory_efficient:
        Compute distance rows on demand instead of building the n×n matrix.
        Results are identical either way.
    """

    edge_divisor: int = 2
    alpha: float = 0.19
    beta: float = 0.2
    memory_efficient: bool = False

    def __post_init__(self) -> None:
        validate_edge_divisor(self.edge_divisor)


def find_peak(net: np.ndarray) -> Tuple[float, int | None]:
    """Return (net potential, index) of the best candidate.

    Candidates are compared in order against a running maximum that starts at
    0 with a strict ``>``, so ties go to the earliest candidate and NaN never
    wins. When nothing exceeds 0 the index is ``None``.
    """
    scores = np.where(np.isnan(net), -np.inf, net)
    idx = int(np.argmax(scores))
    best = float(scores[idx])
    if not best > 0.0:
        return 0.0, None
    return best, idx


def mountain_cluster_centers(
    candidates: np.ndarray,
    config: MountainConfig,
    factory: DistanceFactory | None = None,
    dataset_id: str | None = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Estimate cluster centers by iterative peak extraction.

    Parameters
    ----------
    candidates:
        Integer array of shape (n_samples, n_features) with values in the
        int16 range.
    config:
        Estimation parameters.
    factory:
        Distance factory to build distances with. Passing the same factory
        and `dataset_id` across calls reuses the cached distance matrix.
    dataset_id:
        Cache key for the candidate set (matrix mode only).

    Returns
    -------
    centers:
        int16 array of shape (n_centers, n_features), in selection order.
    potentials:
        Net potential of each center at the moment it was selected
        (shape: (n_centers,)).
    """
    X = validate_candidates(candidates)
    if factory is None:
        factory = DistanceFactory()
    distance = factory.get_distance_function(
        X, memory_efficient=config.memory_efficient, dataset_id=dataset_id
    )

    # Negative decay rates may overflow to inf; those runs still terminate.
    with np.errstate(over="ignore", invalid="ignore"):
        field = potential_field(distance, config.alpha)

        first_potential, first_idx = find_peak(field)
        if first_idx is None:
            raise NoPeakError(
                f"No candidate has a positive potential (alpha={config.alpha!r})."
            )

        if config.edge_divisor == 0:
            edge_threshold = math.inf
        else:
            edge_threshold = first_potential / config.edge_divisor
        logger.debug(
            "First peak %s with potential %.6g, edge threshold %.6g",
            X[first_idx].tolist(),
            first_potential,
            edge_threshold,
        )

        accepted: List[AcceptedCenter] = [
            AcceptedCenter(potential=first_potential, location=X[first_idx].copy())
        ]
        suppression = np.zeros_like(field)
        iterations = 0

        while True:
            suppression += bias_contribution(distance, accepted[-1], config.beta)
            peak_potential, peak_idx = find_peak(field - suppression)

            if iterations > MAX_EXTRA_ROUNDS - 1:
                logger.debug("Stopping after %d extra rounds", iterations)
                break
            if peak_idx is None or edge_threshold > peak_potential:
                logger.debug(
                    "Stopping: best net potential %.6g below edge threshold %.6g",
                    peak_potential,
                    edge_threshold,
                )
                break

            accepted.append(AcceptedCenter(potential=peak_potential, location=X[peak_idx].copy()))
            iterations += 1

    potentials = np.array([center.potential for center in accepted], dtype=np.float64)
    return centers_to_array(accepted), potentials


def estimate(
    candidates: np.ndarray,
    edge_divisor: int,
    alpha: float,
    beta: float,
    *,
    memory_efficient: bool = False,
) -> np.ndarray:
    """Estimate cluster centers of an int16 (n_samples, n_features) candidate set.

    Returns an int16 array of shape (n_centers, n_features) with
    1 <= n_centers <= 101, highest-density center first.
    """
    config = MountainConfig(
        edge_divisor=edge_divisor,
        alpha=alpha,
        beta=beta,
        memory_efficient=memory_efficient,
    )
    centers, _ = mountain_cluster_centers(candidates, config)
    return centers
