"""
Task Clusters

Groups open tasks into named clusters for the day: first by the most
widely shared keyword, then by category. Each task joins at most one
cluster.
"""

from __future__ import annotations

from collections import Counter
from typing import Protocol, Sequence

from cadence.utils.logging import get_logger

logger = get_logger(__name__)

OVERLOAD_THRESHOLD = 10


class Clusterable(Protocol):
    id: str
    keywords: list[str]
    category: str | None


def cluster_tasks(tasks: Sequence[Clusterable], min_size: int = 2) -> dict[str, list[str]]:
    """
    Compute clusters from open tasks.

    Args:
        tasks: Open tasks with keywords and category
        min_size: Smallest group worth naming

    Returns:
        Cluster name → task ids, largest clusters first
    """
    frequency = Counter(
        keyword.lower()
        for task in tasks
        for keyword in {k.lower() for k in (task.keywords or [])}
    )

    groups: dict[str, list[str]] = {}
    leftovers: list[Clusterable] = []
    for task in tasks:
        shared = [k.lower() for k in (task.keywords or []) if frequency[k.lower()] >= min_size]
        if shared:
            best = max(shared, key=lambda k: frequency[k])
            groups.setdefault(best, []).append(task.id)
        else:
            leftovers.append(task)

    by_category: dict[str, list[str]] = {}
    for task in leftovers:
        if task.category:
            by_category.setdefault(task.category, []).append(task.id)
    for category, ids in by_category.items():
        if len(ids) >= min_size:
            groups.setdefault(category, []).extend(ids)

    groups = {name: ids for name, ids in groups.items() if len(ids) >= min_size}
    return dict(sorted(groups.items(), key=lambda item: len(item[1]), reverse=True))


def overloaded_clusters(clusters: dict[str, list[str]], threshold: int = OVERLOAD_THRESHOLD) -> list[str]:
    """Names of clusters holding threshold or more tasks."""
    return [name for name, ids in clusters.items() if len(ids) >= threshold]


def cluster_of(task_id: str, clusters: dict[str, list[str]]) -> str | None:
    for name, ids in clusters.items():
        if task_id in ids:
            return name
    return None
