
from .euclidean import euclidean_distance, pairwise_euclidean
from .factory import DistanceFactory
from .function import DistanceFunction, EuclideanDistanceFunction, MatrixDistanceFunction

__all__ = [
    "DistanceFactory",
    "DistanceFunction",
    "EuclideanDistanceFunction",
    "MatrixDistanceFunction",
    "euclidean_distance",
    "pairwise_euclidean",
]
