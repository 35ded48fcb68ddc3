"""
Room clustering over weighted-visibility signatures.

Signatures are sparse distributions over boundary points and cannot be
averaged, so this is k-medoids rather than k-means: a cluster's center is the
member with the smallest sum of squared distances to the other members.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from core.errors import PreconditionViolation
from observability.monitoring import monitor_stage
from segmentation.boundary import Signature

logger = logging.getLogger(__name__)

MERGE_THRESHOLD = 0.5


@dataclass
class ClusteringResult:
    centers: list[int] = field(default_factory=list)
    clusters: list[list[int]] = field(default_factory=list)
    rounds: int = 0

    @property
    def num_clusters(self) -> int:
        return len(self.clusters)

    def label_of(self, index: int) -> int | None:
        for c, members in enumerate(self.clusters):
            if index in members:
                return c
        return None


def visibility_distance(lhs: Signature, rhs: Signature) -> float:
    """
    Half the L1 distance between two signatures sorted by boundary index.
    Shared indices contribute nothing; the result lies in [0, 1].
    """
    i = 0
    j = 0
    distance = 0.0
    while i < len(lhs) or j < len(rhs):
        if i == len(lhs):
            distance += rhs[j][1]
            j += 1
        elif j == len(rhs):
            distance += lhs[i][1]
            i += 1
        elif lhs[i][0] == rhs[j][0]:
            i += 1
            j += 1
        elif lhs[i][0] < rhs[j][0]:
            distance += lhs[i][1]
            i += 1
        else:
            distance += rhs[j][1]
            j += 1
    return distance / 2.0


def initial_centers(signatures: list[Signature], count: int, rng: np.random.Generator) -> list[int]:
    """Random pick of `count` candidates that have a non-empty signature."""
    candidates = [i for i, sig in enumerate(signatures) if sig]
    order = rng.permutation(len(candidates))[: int(count)]
    return [candidates[int(k)] for k in order]


def closest_center_index(signatures: list[Signature], index: int, centers: list[int]) -> int:
    """Position in `centers` of the nearest center; ties go to the lowest position."""
    if not centers:
        raise PreconditionViolation("cannot assign a candidate without cluster centers")
    best = 0
    best_distance = np.inf
    for c, center in enumerate(centers):
        d = visibility_distance(signatures[index], signatures[center])
        if d < best_distance:
            best_distance = d
            best = c
    return best


def update_centers(
    signatures: list[Signature],
    clusters: list[list[int]],
    previous: list[int],
) -> list[int]:
    """Medoid of every cluster; an empty cluster keeps its previous center."""
    centers: list[int] = []
    for c, members in enumerate(clusters):
        if not members:
            centers.append(previous[c])
            continue
        sums = [0.0] * len(members)
        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                d = visibility_distance(signatures[members[i]], signatures[members[j]])
                sums[i] += d * d
                sums[j] += d * d
        centers.append(members[int(np.argmin(sums))])
    return centers


def cluster(
    signatures: list[Signature],
    centers: list[int],
    iterations: int = 10,
) -> tuple[list[int], list[list[int]]]:
    """Fixed number of assign/update rounds; no convergence test."""
    centers = list(centers)
    clusters: list[list[int]] = [[] for _ in centers]
    for _ in range(int(iterations)):
        clusters = [[] for _ in centers]
        for i, sig in enumerate(signatures):
            if not sig:
                continue
            clusters[closest_center_index(signatures, i, centers)].append(i)
        centers = update_centers(signatures, clusters, centers)
    return centers, clusters


def merge(
    signatures: list[Signature],
    centers: list[int],
    clusters: list[list[int]],
    threshold: float = MERGE_THRESHOLD,
) -> tuple[bool, list[int], list[list[int]]]:
    """
    Greedily merge the closest pair of centers while closer than `threshold`.
    A center takes part in at most one merge per call.
    Returns (merged, centers, clusters).
    """
    n = len(centers)
    distances = np.full((n, n), np.inf, dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            distances[i, j] = visibility_distance(signatures[centers[i]], signatures[centers[j]])

    pairs: list[tuple[int, int]] = []
    while n > 1:
        flat = int(np.argmin(distances))
        i, j = divmod(flat, n)
        if not distances[i, j] < threshold:
            break
        pairs.append((i, j))
        distances[[i, j], :] = np.inf
        distances[:, [i, j]] = np.inf

    if not pairs:
        return False, list(centers), [list(m) for m in clusters]

    logger.debug("Merging %d cluster pairs: %s", len(pairs), pairs)
    merged_clusters = [list(m) for m in clusters]
    for i, j in pairs:
        merged_clusters[i].extend(merged_clusters[j])
    erase = {j for _, j in pairs}
    kept_clusters = [m for c, m in enumerate(merged_clusters) if c not in erase]
    kept_centers = [center for c, center in enumerate(centers) if c not in erase]

    return True, update_centers(signatures, kept_clusters, kept_centers), kept_clusters


@monitor_stage("cluster_merge")
def cluster_merge(
    signatures: list[Signature],
    centers: list[int],
    *,
    threshold: float = MERGE_THRESHOLD,
    max_rounds: int = 5,
    iterations: int = 10,
) -> ClusteringResult:
    """Alternate cluster/merge until nothing merges, then finish on a cluster pass."""
    rounds = 0
    clusters: list[list[int]] = []
    for _ in range(int(max_rounds)):
        rounds += 1
        centers, clusters = cluster(signatures, centers, iterations)
        merged, centers, clusters = merge(signatures, centers, clusters, threshold)
        logger.debug("Round %d: %d clusters, merged=%s", rounds, len(centers), merged)
        if not merged:
            break
    centers, clusters = cluster(signatures, centers, iterations)
    return ClusteringResult(centers=centers, clusters=clusters, rounds=rounds)
