"""
K-Means clustering of raw observations.

Used to seed per-state emission models before learning. Observations are
numeric scalars or vectors and distances are Euclidean.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import numpy as np

from ..config import get_config
from ..exceptions import DegenerateClusteringError, InvalidModelError, InvalidSequenceError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class Cluster:
    """Indices (into the clustered observations) of a cluster and its centroid."""
    indices: np.ndarray
    centroid: np.ndarray = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.indices)


class KMeansCalculator:
    """
    Partition observations into exactly n_clusters non-empty clusters.

    Initial centroids are evenly spaced picks among the distinct observations
    (in sorted order). Lloyd iterations follow: assign every observation to
    its nearest centroid, re-seed empty clusters with the observation
    farthest from its centroid, recompute centroids as means, until the
    assignment is stable or max_iterations is reached.
    """

    def __init__(self, n_clusters: int, observations: Sequence[Any], max_iterations: Optional[int] = None):
        """
        Args:
            n_clusters: Requested number of clusters (strictly positive)
            observations: Numeric observations (scalars or equal-length vectors)
            max_iterations: Iteration cap (default from config 'kmeans')

        Raises:
            InvalidModelError: If n_clusters is not strictly positive
            InvalidSequenceError: If observations are not numeric
            DegenerateClusteringError: If there are fewer distinct observations than clusters
        """
        if n_clusters <= 0:
            raise InvalidModelError("Number of clusters must be strictly positive")
        if max_iterations is None:
            max_iterations = get_config('kmeans', 'max_iterations') or 100

        self.observations = list(observations)
        self._points = self._as_points(self.observations)
        n = len(self._points)

        distinct = np.unique(self._points, axis=0) if n else self._points
        if len(distinct) < n_clusters:
            raise DegenerateClusteringError(
                f"Cannot build {n_clusters} clusters from {n} observations "
                f"with {len(distinct)} distinct values"
            )

        self._n_clusters = n_clusters
        self.centroids = self._initial_centroids(distinct, n_clusters)
        self.labels = np.full(n, -1, dtype=int)
        self.iterations = 0

        for _ in range(max_iterations):
            self.iterations += 1
            labels = self._assign(self.centroids)
            labels = self._reseed_empty(labels)
            changed = not np.array_equal(labels, self.labels)
            self.labels = labels
            self.centroids = self._centroids(labels)
            if not changed:
                break
        else:
            logger.info(f"K-means stopped after {max_iterations} iterations without stabilizing")

        logger.debug(f"K-means completed: {n_clusters} clusters, {n} observations, "
                     f"{self.iterations} iterations")

    @staticmethod
    def _as_points(observations: List[Any]) -> np.ndarray:
        try:
            points = np.asarray(observations, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidSequenceError(f"K-means needs numeric observations: {e}") from e
        if points.ndim == 1:
            points = points[:, None]
        if points.ndim != 2:
            raise InvalidSequenceError("Observations must be scalars or equal-length vectors")
        return points

    @staticmethod
    def _initial_centroids(distinct: np.ndarray, k: int) -> np.ndarray:
        # Spacing is at least one, so the floored indices are all different
        picks = np.floor(np.linspace(0, len(distinct) - 1, k)).astype(int)
        return distinct[picks].copy()

    def _distances(self, centroids: np.ndarray) -> np.ndarray:
        diff = self._points[:, None, :] - centroids[None, :, :]
        return np.sqrt((diff ** 2).sum(axis=2))

    def _assign(self, centroids: np.ndarray) -> np.ndarray:
        return np.argmin(self._distances(centroids), axis=1)

    def _reseed_empty(self, labels: np.ndarray) -> np.ndarray:
        labels = labels.copy()
        counts = np.bincount(labels, minlength=self._n_clusters)

        for empty in np.flatnonzero(counts == 0):
            centroids = self._centroids(labels, fallback=self.centroids)
            own_distance = self._distances(centroids)[np.arange(len(labels)), labels]
            # Only take from clusters that keep at least one member
            own_distance[counts[labels] <= 1] = -1.0
            moved = int(np.argmax(own_distance))
            counts[labels[moved]] -= 1
            labels[moved] = empty
            counts[empty] += 1

        return labels

    def _centroids(self, labels: np.ndarray, fallback: Optional[np.ndarray] = None) -> np.ndarray:
        dim = self._points.shape[1]
        sums = np.zeros((self._n_clusters, dim))
        np.add.at(sums, labels, self._points)
        counts = np.bincount(labels, minlength=self._n_clusters)

        centroids = np.zeros((self._n_clusters, dim)) if fallback is None else fallback.copy()
        filled = counts > 0
        centroids[filled] = sums[filled] / counts[filled, None]
        return centroids

    @property
    def n_clusters(self) -> int:
        """Number of non-empty clusters."""
        return int(np.count_nonzero(np.bincount(self.labels, minlength=self._n_clusters)))

    @property
    def clusters(self) -> List[Cluster]:
        return [Cluster(np.flatnonzero(self.labels == k), self.centroids[k])
                for k in range(self._n_clusters)]

    def cluster(self, index: int) -> List[Any]:
        """Observations belonging to cluster index."""
        return [self.observations[i] for i in np.flatnonzero(self.labels == index)]
