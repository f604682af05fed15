from __future__ import annotations

import numpy as np
import pytest

from cluster_estimator import MountainConfig, NoPeakError, estimate, mountain_cluster_centers
from cluster_estimator.algorithms import AcceptedCenter, bias, find_peak, potential
from cluster_estimator.distances import DistanceFactory


def _mid_centers() -> np.ndarray:
    return np.array(
        [
            [1, 3, 4],
            [2, 5, 6],
            [75, 34, 12],
            [234, 42, 122],
            [4, 2, 1],
            [99, 12, 40],
            [57, 27, 11],
            [20, 30, 20],
        ],
        dtype=np.int16,
    )


def _spaced_line(n: int, step: int = 100) -> np.ndarray:
    return (np.arange(n, dtype=np.int64) * step).reshape(-1, 1).astype(np.int16)


def test_estimated_cluster_centers() -> None:
    estimated = estimate(_mid_centers(), 2, 0.19, 0.2)

    expected = np.array([[1, 3, 4], [57, 27, 11], [75, 34, 12], [20, 30, 20]], dtype=np.int16)
    assert estimated.dtype == np.int16
    assert np.array_equal(estimated, expected)


def test_memory_efficient_mode_gives_identical_result() -> None:
    X = _mid_centers()
    matrix_centers, matrix_potentials = mountain_cluster_centers(
        X, MountainConfig(edge_divisor=2, alpha=0.19, beta=0.2)
    )
    lazy_centers, lazy_potentials = mountain_cluster_centers(
        X, MountainConfig(edge_divisor=2, alpha=0.19, beta=0.2, memory_efficient=True)
    )
    assert np.array_equal(matrix_centers, lazy_centers)
    assert np.array_equal(matrix_potentials, lazy_potentials)


def test_potentials_follow_selection_order() -> None:
    X = _mid_centers()
    centers, potentials = mountain_cluster_centers(X, MountainConfig(edge_divisor=2, alpha=0.19, beta=0.2))

    assert potentials.shape == (centers.shape[0],)
    assert np.isclose(potentials[0], potential(X[0], X, alpha=0.19))
    # Every later peak kept at least half of the first peak's potential.
    assert np.all(potentials[1:] >= potentials[0] / 2)


def test_zero_edge_divisor_keeps_only_first_peak() -> None:
    estimated = estimate(_mid_centers(), 0, 0.19, 0.2)
    assert np.array_equal(estimated, np.array([[1, 3, 4]], dtype=np.int16))


def test_single_candidate_is_its_own_peak() -> None:
    estimated = estimate(np.array([[5, 5, 5]], dtype=np.int16), 2, 0.19, 0.2)
    assert np.array_equal(estimated, np.array([[5, 5, 5]], dtype=np.int16))


def test_first_center_has_highest_raw_potential() -> None:
    rng = np.random.default_rng(3)
    X = rng.integers(-200, 200, size=(40, 2)).astype(np.int16)

    raw = np.array([potential(x, X, alpha=0.05) for x in X])
    estimated = estimate(X, 3, 0.05, 0.1)
    assert np.array_equal(estimated[0], X[int(np.argmax(raw))])


def test_output_is_capped_at_101_rows() -> None:
    X = _spaced_line(150)
    estimated = estimate(X, 255, 1.0, 1.0)

    assert estimated.shape == (101, 1)
    assert np.array_equal(estimated, X[:101])


def test_estimate_is_deterministic() -> None:
    rng = np.random.default_rng(11)
    X = rng.integers(0, 300, size=(60, 3)).astype(np.int16)

    first = estimate(X, 4, 0.05, 0.05)
    second = estimate(X, 4, 0.05, 0.05)
    assert first.tobytes() == second.tobytes()


def test_non_decaying_parameters_still_terminate() -> None:
    X = _mid_centers()

    # alpha = beta = 0: every candidate has potential N and the first center
    # suppresses all of it.
    assert estimate(X, 2, 0.0, 0.0).shape == (1, 3)

    grown = estimate(X, 2, -0.01, 0.2)
    assert 1 <= grown.shape[0] <= 101
    assert grown.shape[1] == 3


def test_accepts_plain_integer_lists() -> None:
    estimated = estimate(_mid_centers().tolist(), 2, 0.19, 0.2)
    assert estimated.dtype == np.int16
    assert estimated.shape == (4, 3)


def test_input_is_not_mutated() -> None:
    X = _mid_centers()
    before = X.copy()
    estimate(X, 2, 0.19, 0.2)
    assert np.array_equal(X, before)


def test_empty_candidate_set_fails_loudly() -> None:
    with pytest.raises(ValueError):
        estimate(np.empty((0, 3), dtype=np.int16), 2, 0.19, 0.2)


def test_nan_alpha_raises_no_peak() -> None:
    with pytest.raises(NoPeakError):
        estimate(_mid_centers(), 2, float("nan"), 0.2)


@pytest.mark.parametrize(
    "candidates",
    [
        np.array([1, 2, 3], dtype=np.int16),
        np.array([[40000, 0]]),
        np.array([[1.5, 2.0]]),
        np.array([["a", "b"]]),
    ],
)
def test_invalid_candidates_raise(candidates: np.ndarray) -> None:
    with pytest.raises(ValueError):
        estimate(candidates, 2, 0.19, 0.2)


@pytest.mark.parametrize("edge_divisor", [-1, 256, 2.5, True, None, "2", 2.0])
def test_edge_divisor_must_fit_uint8(edge_divisor) -> None:
    with pytest.raises(ValueError):
        MountainConfig(edge_divisor=edge_divisor, alpha=0.19, beta=0.2)


def test_find_peak_prefers_earliest_maximum() -> None:
    assert find_peak(np.array([0.5, 2.0, 2.0, 1.0])) == (2.0, 1)
    assert find_peak(np.array([np.nan, 0.3, 0.1])) == (0.3, 1)


def test_find_peak_reports_missing_peak() -> None:
    assert find_peak(np.array([0.0, -1.0])) == (0.0, None)
    assert find_peak(np.array([np.nan, np.nan])) == (0.0, None)


def _sequential_reference(X: np.ndarray, edge_divisor: int, alpha: float, beta: float) -> np.ndarray:
    """Round-by-round recomputation from the per-point definitions."""
    accepted: list[AcceptedCenter] = []
    threshold = None
    for _ in range(101):
        best, best_idx = 0.0, None
        for idx, x in enumerate(X):
            net = potential(x, X, alpha) - bias(x, accepted, beta)
            if net > best:
                best, best_idx = net, idx
        if threshold is None:
            threshold = best / edge_divisor
        elif best_idx is None or threshold > best:
            break
        accepted.append(AcceptedCenter(potential=best, location=X[best_idx]))
    return np.array([center.location for center in accepted], dtype=np.int16)


def test_exact_ties_go_to_the_earliest_candidate() -> None:
    # Far apart: every potential is exactly 1.0, so every round is a tie.
    X = np.array([[0], [300], [-300], [600], [-600], [900], [-900]], dtype=np.int16)
    estimated = estimate(X, 255, 1.0, 1.0)
    assert np.array_equal(estimated, X)

    estimated_twins_first = estimate(X[[2, 1, 4, 3, 6, 5, 0]], 255, 1.0, 1.0)
    assert estimated_twins_first[:, 0].tolist() == [-300, 300, -600, 600, -900, 900, 0]


@pytest.mark.parametrize("seed", [5, 19, 35, 77])
def test_mirror_symmetric_sets_match_sequential_recomputation(seed: int) -> None:
    rng = np.random.default_rng(seed)
    base = rng.integers(-15, 15, size=(12, 2))
    X = np.vstack([base, -base]).astype(np.int16)

    for memory_efficient in (False, True):
        estimated = estimate(X, 2, 0.19, 0.2, memory_efficient=memory_efficient)
        assert np.array_equal(estimated, _sequential_reference(X, 2, 0.19, 0.2))


def test_shared_factory_reuses_distance_matrix() -> None:
    X = _mid_centers()
    factory = DistanceFactory()

    first, _ = mountain_cluster_centers(
        X, MountainConfig(edge_divisor=2, alpha=0.19, beta=0.2), factory=factory, dataset_id="mid"
    )
    cached = factory.get_distance_matrix(X, dataset_id="mid")
    second, _ = mountain_cluster_centers(
        X, MountainConfig(edge_divisor=3, alpha=0.19, beta=0.2), factory=factory, dataset_id="mid"
    )

    assert factory.get_distance_matrix(X, dataset_id="mid") is cached
    assert np.array_equal(first, estimate(X, 2, 0.19, 0.2))
    assert np.array_equal(second, estimate(X, 3, 0.19, 0.2))
