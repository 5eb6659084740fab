"""Tests for screen-space marker clustering."""

import math

import pytest

from routeplan.geo.cluster import ClusterItem, PixelPoint, cluster
from routeplan.models.common import Coordinate


def _item(key: str, lat: float = 23.6, lon: float = 116.6) -> ClusterItem:
    return ClusterItem(key=key, coordinate=Coordinate(latitude=lat, longitude=lon))


class TestCluster:
    """Test bucket grouping."""

    def test_items_in_same_cell_merge(self) -> None:
        items = [_item("a"), _item("b")]
        points = {"a": PixelPoint(10, 10), "b": PixelPoint(50, 40)}

        clusters = cluster(items, points, 60)

        assert len(clusters) == 1
        assert clusters[0].member_keys == ["a", "b"]
        assert clusters[0].anchor == PixelPoint(30, 25)
        assert clusters[0].count == 2
        assert clusters[0].is_single is False

    def test_cell_boundary_splits_close_items(self) -> None:
        """Items a pixel apart across a cell edge stay separate."""
        items = [_item("a"), _item("b")]
        points = {"a": PixelPoint(59.5, 10), "b": PixelPoint(60.5, 10)}

        clusters = cluster(items, points, 60)

        assert [c.member_keys for c in clusters] == [["a"], ["b"]]
        assert all(c.is_single for c in clusters)

    def test_negative_pixels_use_floor(self) -> None:
        items = [_item("a"), _item("b")]
        points = {"a": PixelPoint(-1, 5), "b": PixelPoint(1, 5)}

        clusters = cluster(items, points, 60)

        assert len(clusters) == 2

    def test_clusters_in_first_seen_order(self) -> None:
        items = [_item("far"), _item("near1"), _item("near2")]
        points = {
            "far": PixelPoint(500, 500),
            "near1": PixelPoint(5, 5),
            "near2": PixelPoint(6, 6),
        }

        clusters = cluster(items, points, 60)

        assert [c.member_keys for c in clusters] == [["far"], ["near1", "near2"]]

    def test_every_key_in_exactly_one_cluster(self) -> None:
        items = [_item(f"k{i}") for i in range(50)]
        points = {f"k{i}": PixelPoint(i * 17.0, (i * 31) % 200) for i in range(50)}

        clusters = cluster(items, points, 45)

        keys = [k for c in clusters for k in c.member_keys]
        assert sorted(keys) == sorted(points)
        assert sum(c.count for c in clusters) == 50

    def test_extreme_valid_coordinates_are_clustered(self) -> None:
        items = [_item("north", 90.0, 180.0), _item("south", -90.0, -180.0)]
        points = {"north": PixelPoint(0, 0), "south": PixelPoint(0, 0)}

        clusters = cluster(items, points, 60)

        assert clusters[0].member_keys == ["north", "south"]


    def test_sparse_items_form_singletons(self) -> None:
        items = [_item("a"), _item("b"), _item("c")]
        points = {"a": PixelPoint(0, 0), "b": PixelPoint(150, 0), "c": PixelPoint(0, 150)}

        clusters = cluster(items, points, 60)

        assert [c.count for c in clusters] == [1, 1, 1]

    def test_dense_items_form_one_cluster(self) -> None:
        items = [_item("a"), _item("b"), _item("c")]
        points = {"a": PixelPoint(20, 20), "b": PixelPoint(30, 25), "c": PixelPoint(34, 33)}

        clusters = cluster(items, points, 60)

        assert len(clusters) == 1
        assert clusters[0].count == 3

    def test_extreme_coordinates_far_apart_stay_separate(self) -> None:
        items = [_item("north", 90.0, 180.0), _item("south", -90.0, -180.0)]
        points = {"north": PixelPoint(10, 10), "south": PixelPoint(900, 700)}

        clusters = cluster(items, points, 60)

        assert [c.member_keys for c in clusters] == [["north"], ["south"]]


class TestClusterExclusions:
    """Test items that cannot be placed."""

    def test_invalid_coordinate_excluded(self) -> None:
        items = [_item("ok"), _item("bad", lat=91.0), _item("nan", lat=math.nan)]
        points = {k: PixelPoint(1, 1) for k in ("ok", "bad", "nan")}

        clusters = cluster(items, points, 60)

        assert [c.member_keys for c in clusters] == [["ok"]]

    def test_missing_or_non_finite_pixel_excluded(self) -> None:
        items = [_item("ok"), _item("offscreen"), _item("inf")]
        points = {"ok": PixelPoint(1, 1), "inf": PixelPoint(math.inf, 1)}

        clusters = cluster(items, points, 60)

        assert [c.member_keys for c in clusters] == [["ok"]]

    def test_empty_input(self) -> None:
        assert cluster([], {}, 60) == []

    @pytest.mark.parametrize("bucket_size", [0, -10])
    def test_non_positive_bucket_size_rejected(self, bucket_size: float) -> None:
        with pytest.raises(ValueError, match="bucket_size"):
            cluster([_item("a")], {"a": PixelPoint(0, 0)}, bucket_size)

    def test_default_bucket_size_from_settings(self) -> None:
        """Default cell is 60 px."""
        items = [_item("a"), _item("b")]
        points = {"a": PixelPoint(0, 0), "b": PixelPoint(59, 59)}

        assert len(cluster(items, points)) == 1
