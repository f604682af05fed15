from __future__ import annotations

import numbers
from dataclasses import dataclass

import numpy as np

INT16_MIN = int(np.iinfo(np.int16).min)
INT16_MAX = int(np.iinfo(np.int16).max)
UINT8_MAX = int(np.iinfo(np.uint8).max)


class NoPeakError(ValueError):
    """Raised when no candidate has a positive net potential.

    The reference scan of a non-empty candidate set always has a positive
    peak for finite ``alpha``; this only fires for degenerate parameters
    (e.g. NaN) and stops the run instead of returning a malformed row.
    """


@dataclass(frozen=True)
class AcceptedCenter:
    """One selected cluster center and its net potential at selection time."""

    potential: float
    location: np.ndarray


def validate_candidates(candidates: np.ndarray) -> np.ndarray:
    """Return the candidate set as a read-only (n_samples, n_features) int16 array."""
    arr = np.asarray(candidates)
    if arr.ndim != 2:
        raise ValueError(f"Candidates must be a 2-D array, got shape {arr.shape}.")
    if arr.shape[0] == 0:
        raise ValueError("Candidate set must contain at least one point.")
    if arr.shape[1] == 0:
        raise ValueError("Candidate points must have at least one coordinate.")

    if arr.dtype != np.int16:
        if not (np.issubdtype(arr.dtype, np.integer) or np.issubdtype(arr.dtype, np.floating)):
            raise ValueError(f"Candidates must be numeric, got dtype {arr.dtype}.")
        if not np.all(np.isfinite(arr)) or not np.all(np.equal(np.mod(arr, 1), 0)):
            raise ValueError("Candidate coordinates must be integral.")
        if arr.min() < INT16_MIN or arr.max() > INT16_MAX:
            raise ValueError(
                f"Candidate coordinates must lie in [{INT16_MIN}, {INT16_MAX}]."
            )
        arr = arr.astype(np.int16)

    view = arr.view()
    view.flags.writeable = False
    return view


def validate_edge_divisor(edge_divisor: int) -> None:
    if isinstance(edge_divisor, bool) or not isinstance(edge_divisor, numbers.Integral):
        raise ValueError("edge_divisor must be an integer.")
    if not (0 <= edge_divisor <= UINT8_MAX):
        raise ValueError(f"edge_divisor must satisfy 0 <= edge_divisor <= {UINT8_MAX}.")


def centers_to_array(accepted: list[AcceptedCenter]) -> np.ndarray:
    """Stack accepted locations, in acceptance order, into an (M, D) int16 matrix."""
    if not accepted:
        raise ValueError("At least one accepted center is required.")
    n_features = accepted[0].location.shape[0]
    for center in accepted:
        if center.location.shape != (n_features,):
            raise ValueError(
                f"Accepted center has dimension {center.location.shape}, expected ({n_features},)."
            )
    return np.array([center.location for center in accepted], dtype=np.int16).reshape(
        len(accepted), n_features
    )
