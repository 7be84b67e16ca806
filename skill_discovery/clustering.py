"""
Density-based clustering of candidate patterns.

Patterns are embedded from their natural-language descriptions and grouped
with DBSCAN over cosine distance (1 - cosine similarity). The neighborhood
radius is tuned automatically from the knee of the sorted k-distance curve.

Clustering is advisory: with too few points, or when embeddings are
unavailable, every pattern becomes its own singleton cluster.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from .config import ClusteringConfig
from .embeddings import EmbeddingProvider, Err, embed_texts

logger = logging.getLogger(__name__)

NOISE = -1
_UNVISITED = -2


@dataclass(frozen=True)
class Cluster:
    """A group of semantically similar patterns (or one noise point)."""

    members: tuple[str, ...]
    centroid_approx: tuple[float, ...] = ()
    is_noise: bool = False


@dataclass
class ClusteringResult:
    """Clusters plus diagnostics."""

    clusters: list[Cluster] = field(default_factory=list)
    epsilon: float | None = None
    min_points: int = 0
    degraded: bool = False
    warning: str | None = None

    def cluster_of(self, pattern_key: str) -> Cluster | None:
        for cluster in self.clusters:
            if pattern_key in cluster.members:
                return cluster
        return None

    @property
    def dense_clusters(self) -> list[Cluster]:
        """Clusters with more than one member."""
        return [c for c in self.clusters if not c.is_noise and len(c.members) > 1]


def cosine_distance_matrix(vectors: np.ndarray) -> np.ndarray:
    """Pairwise 1 - cosine similarity, clipped to [0, 2] with a zero diagonal."""
    matrix = np.asarray(vectors, dtype=float)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms == 0, 1.0, norms)
    unit = matrix / safe
    distances = np.clip(1.0 - unit @ unit.T, 0.0, 2.0)
    np.fill_diagonal(distances, 0.0)
    return distances


def k_distances(distances: np.ndarray, min_points: int) -> np.ndarray:
    """
    Distance from each point to its min_points-th nearest neighbor.

    The point itself counts as its first neighbor, matching the core-point
    rule, so a radius equal to a point's k-distance makes it a core point.
    """
    n = distances.shape[0]
    if n == 0:
        return np.zeros(0)
    k = min(max(min_points, 1), n) - 1
    return np.sort(distances, axis=1)[:, k]


def find_knee(sorted_values: Sequence[float]) -> float:
    """
    Value at the point of maximum curvature of an ascending curve.

    Approximated by the first index maximizing the discrete second
    derivative d[i-1] - 2 d[i] + d[i+1]. With fewer than three values the
    largest value is returned.
    """
    values = np.asarray(sorted_values, dtype=float)
    if values.size == 0:
        return 0.0
    if values.size < 3:
        return float(values[-1])
    second = values[:-2] - 2.0 * values[1:-1] + values[2:]
    knee = int(np.argmax(second)) + 1
    return float(values[knee])


def tune_epsilon(distances: np.ndarray, config: ClusteringConfig) -> float:
    """Pick epsilon from the k-distance knee, clamped to the configured range."""
    curve = np.sort(k_distances(distances, config.min_points))
    epsilon = find_knee(curve)
    return float(min(max(epsilon, config.min_epsilon), config.max_epsilon))


def dbscan(distances: np.ndarray, epsilon: float, min_points: int) -> list[int]:
    """
    DBSCAN over a precomputed distance matrix.

    A point is core if at least min_points points (itself included) lie within
    epsilon. Points are visited in index order, so labels are deterministic; a
    border point reachable from two clusters joins the first one found.

    Returns:
        Cluster label per point, NOISE (-1) for noise
    """
    n = distances.shape[0]
    neighbors = [np.flatnonzero(distances[i] <= epsilon) for i in range(n)]
    labels = [_UNVISITED] * n
    cluster_id = 0

    for i in range(n):
        if labels[i] != _UNVISITED:
            continue
        if len(neighbors[i]) < min_points:
            labels[i] = NOISE
            continue

        labels[i] = cluster_id
        queue = deque(int(j) for j in neighbors[i])
        while queue:
            j = queue.popleft()
            if labels[j] == NOISE:
                # Border point
                labels[j] = cluster_id
            if labels[j] != _UNVISITED:
                continue
            labels[j] = cluster_id
            if len(neighbors[j]) >= min_points:
                queue.extend(int(m) for m in neighbors[j])
        cluster_id += 1

    return labels


def _centroid(vectors: np.ndarray) -> tuple[float, ...]:
    mean = vectors.mean(axis=0)
    norm = np.linalg.norm(mean)
    if norm > 0:
        mean = mean / norm
    return tuple(float(x) for x in mean)


def singleton_clusters(
    keys: Sequence[str], vectors: np.ndarray | None = None
) -> list[Cluster]:
    """One cluster per key: the no-clustering fallback."""
    clusters = []
    for i, key in enumerate(keys):
        centroid = _centroid(vectors[i:i + 1]) if vectors is not None else ()
        clusters.append(Cluster(members=(key,), centroid_approx=centroid))
    return clusters


def cluster_vectors(
    keys: Sequence[str],
    vectors: Sequence[Sequence[float]],
    config: ClusteringConfig | None = None,
) -> ClusteringResult:
    """
    Cluster already-embedded patterns.

    Args:
        keys: Pattern keys, one per vector
        vectors: Embedding vectors
        config: Clustering settings (fixed epsilon if config.epsilon is set)

    Returns:
        ClusteringResult; clusters come in label order, then noise in key order
    """
    config = config or ClusteringConfig()
    if len(keys) != len(vectors):
        raise ValueError(f"{len(keys)} keys but {len(vectors)} vectors")

    matrix = np.asarray(vectors, dtype=float) if len(vectors) else np.zeros((0, 0))
    if len(keys) < config.min_points:
        return ClusteringResult(
            clusters=singleton_clusters(keys, matrix if len(keys) else None),
            min_points=config.min_points,
        )

    distances = cosine_distance_matrix(matrix)
    epsilon = config.epsilon if config.epsilon is not None else tune_epsilon(distances, config)
    labels = dbscan(distances, epsilon, config.min_points)

    grouped: dict[int, list[int]] = {}
    noise: list[int] = []
    for index, label in enumerate(labels):
        if label == NOISE:
            noise.append(index)
        else:
            grouped.setdefault(label, []).append(index)

    clusters = [
        Cluster(
            members=tuple(keys[i] for i in indices),
            centroid_approx=_centroid(matrix[indices]),
        )
        for _, indices in sorted(grouped.items())
    ]
    clusters.extend(
        Cluster(members=(keys[i],), centroid_approx=_centroid(matrix[i:i + 1]), is_noise=True)
        for i in noise
    )

    logger.debug(
        f"Clustered {len(keys)} patterns: {len(grouped)} clusters, {len(noise)} noise, eps={epsilon:.3f}"
    )
    return ClusteringResult(clusters=clusters, epsilon=epsilon, min_points=config.min_points)


async def cluster_patterns(
    keys: Sequence[str],
    descriptions: Sequence[str],
    embedder: EmbeddingProvider | None,
    config: ClusteringConfig | None = None,
) -> ClusteringResult:
    """
    Embed pattern descriptions and cluster them.

    Only the first config.max_points keys are clustered (callers pass keys in
    rank order); the rest stay singletons. Falls back to singletons with a
    warning when embeddings are unavailable.

    Args:
        keys: Pattern keys
        descriptions: Text to embed, parallel to keys
        embedder: Embedding provider (None disables clustering)
        config: Clustering settings

    Returns:
        ClusteringResult
    """
    config = config or ClusteringConfig()
    if len(keys) != len(descriptions):
        raise ValueError(f"{len(keys)} keys but {len(descriptions)} descriptions")

    if len(keys) < config.min_points:
        return ClusteringResult(clusters=singleton_clusters(keys), min_points=config.min_points)

    head = list(keys[:config.max_points])
    tail = list(keys[config.max_points:])

    result = await embed_texts(embedder, descriptions[:len(head)], head)
    if isinstance(result, Err):
        warning = f"Clustering skipped: {result.reason}"
        if embedder is not None:
            logger.warning(warning)
        return ClusteringResult(
            clusters=singleton_clusters(keys),
            min_points=config.min_points,
            degraded=True,
            warning=warning,
        )

    clustered = cluster_vectors(head, result.value, config)
    clustered.clusters.extend(singleton_clusters(tail))
    return clustered


__all__ = [
    "Cluster",
    "ClusteringResult",
    "NOISE",
    "cluster_patterns",
    "cluster_vectors",
    "cosine_distance_matrix",
    "dbscan",
    "find_knee",
    "k_distances",
    "singleton_clusters",
    "tune_epsilon",
]
