
from ._shared import AcceptedCenter, NoPeakError
from .fields import bias, bias_contribution, potential, potential_field
from .mountain import MountainConfig, estimate, find_peak, mountain_cluster_centers

__all__ = [
    "AcceptedCenter",
    "MountainConfig",
    "NoPeakError",
    "bias",
    "bias_contribution",
    "estimate",
    "find_peak",
    "mountain_cluster_centers",
    "potential",
    "potential_field",
]
