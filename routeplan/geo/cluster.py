"""Screen-space marker clustering.

Markers are grouped by a spatial hash over their current pixel positions:
every marker falls into the ``bucket_size x bucket_size`` cell containing it,
and each non-empty cell becomes one cluster. This is a single O(n) pass, not a
radius search, so two markers a few pixels apart on either side of a cell
boundary stay in separate clusters.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from routeplan.config import get_settings
from routeplan.models.common import Coordinate


@dataclass(frozen=True)
class PixelPoint:
    """Position on the rendering surface."""

    x: float
    y: float


@dataclass(frozen=True)
class ClusterItem:
    """Marker to cluster; the coordinate only identifies it."""

    key: str
    coordinate: Coordinate


@dataclass
class Cluster:
    """Markers sharing one bucket, anchored at their centroid."""

    member_keys: list[str]
    anchor: PixelPoint
    member_points: dict[str, PixelPoint] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.member_keys)

    @property
    def is_single(self) -> bool:
        return len(self.member_keys) == 1


def _bucket(point: PixelPoint, bucket_size: float) -> tuple[int, int]:
    return (math.floor(point.x / bucket_size), math.floor(point.y / bucket_size))


def cluster(
    items: Iterable[ClusterItem],
    points: Mapping[str, PixelPoint],
    bucket_size: float | None = None,
) -> list[Cluster]:
    """Group items by the pixel bucket their position falls into.

    Items with an invalid geographic coordinate, without a pixel position, or
    with a non-finite pixel position are left out. Clusters are returned in
    the order their first member appears in ``items``.

    Raises:
        ValueError: If ``bucket_size`` is not positive
    """
    if bucket_size is None:
        bucket_size = get_settings().cluster_bucket_px
    if not bucket_size > 0:
        raise ValueError("bucket_size must be positive")

    buckets: dict[tuple[int, int], dict[str, PixelPoint]] = {}
    seen: set[str] = set()
    for item in items:
        if item.key in seen or not item.coordinate.is_valid:
            continue
        point = points.get(item.key)
        if point is None or not (math.isfinite(point.x) and math.isfinite(point.y)):
            continue
        seen.add(item.key)
        buckets.setdefault(_bucket(point, bucket_size), {})[item.key] = point

    clusters: list[Cluster] = []
    for members in buckets.values():
        n = len(members)
        anchor = PixelPoint(
            x=sum(p.x for p in members.values()) / n,
            y=sum(p.y for p in members.values()) / n,
        )
        clusters.append(Cluster(member_keys=list(members), anchor=anchor, member_points=members))
    return clusters
