"""Conversions between WGS84, GCJ02 and BD09.

GCJ02 is the obfuscated system mandated for maps of mainland China; BD09 adds
a further polar offset on top of it. All functions are pure and return new
``Coordinate`` values.
"""

import math

from routeplan.models.common import Coordinate, CoordinateSystem

# Krasovsky 1940 ellipsoid used by the GCJ02 correction
_A = 6378245.0
_EE = 0.00669342162296594323

# BD09 polar offset constants
_BD_Z_FACTOR = 0.00002
_BD_THETA_FACTOR = 0.000003
_BD_LON_SHIFT = 0.0065
_BD_LAT_SHIFT = 0.006


def out_of_china(coord: Coordinate) -> bool:
    """True outside the mainland-China bounding box (no correction applies)."""
    return (
        coord.longitude < 72.004
        or coord.longitude > 137.8347
        or coord.latitude < 0.8293
        or coord.latitude > 55.8271
    )


def _transform_lat(x: float, y: float) -> float:
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(y * math.pi) + 40.0 * math.sin(y / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (160.0 * math.sin(y / 12.0 * math.pi) + 320 * math.sin(y * math.pi / 30.0)) * 2.0 / 3.0
    return ret


def _transform_lon(x: float, y: float) -> float:
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(x * math.pi) + 40.0 * math.sin(x / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (150.0 * math.sin(x / 12.0 * math.pi) + 300.0 * math.sin(x / 30.0 * math.pi)) * 2.0 / 3.0
    return ret


def _delta(coord: Coordinate) -> tuple[float, float]:
    """GCJ02 offset (d_lat, d_lon) evaluated at ``coord``."""
    d_lat = _transform_lat(coord.longitude - 105.0, coord.latitude - 35.0)
    d_lon = _transform_lon(coord.longitude - 105.0, coord.latitude - 35.0)
    rad_lat = coord.latitude / 180.0 * math.pi
    magic = math.sin(rad_lat)
    magic = 1 - _EE * magic * magic
    sqrt_magic = math.sqrt(magic)
    d_lat = (d_lat * 180.0) / ((_A * (1 - _EE)) / (magic * sqrt_magic) * math.pi)
    d_lon = (d_lon * 180.0) / (_A / sqrt_magic * math.cos(rad_lat) * math.pi)
    return d_lat, d_lon


def wgs84_to_gcj02(coord: Coordinate) -> Coordinate:
    if out_of_china(coord):
        return coord
    d_lat, d_lon = _delta(coord)
    return Coordinate(latitude=coord.latitude + d_lat, longitude=coord.longitude + d_lon)


def gcj02_to_wgs84(coord: Coordinate) -> Coordinate:
    """Approximate inverse of ``wgs84_to_gcj02``.

    Evaluates the offset at the GCJ02 point rather than iterating, so the
    round trip is off by up to ~0.0003 degrees.
    """
    if out_of_china(coord):
        return coord
    d_lat, d_lon = _delta(coord)
    shifted_lat = coord.latitude + d_lat
    shifted_lon = coord.longitude + d_lon
    return Coordinate(
        latitude=coord.latitude * 2 - shifted_lat,
        longitude=coord.longitude * 2 - shifted_lon,
    )


def gcj02_to_bd09(coord: Coordinate) -> Coordinate:
    x = coord.longitude
    y = coord.latitude
    z = math.sqrt(x * x + y * y) + _BD_Z_FACTOR * math.sin(y * math.pi)
    theta = math.atan2(y, x) + _BD_THETA_FACTOR * math.cos(x * math.pi)
    return Coordinate(
        latitude=z * math.sin(theta) + _BD_LAT_SHIFT,
        longitude=z * math.cos(theta) + _BD_LON_SHIFT,
    )


def bd09_to_gcj02(coord: Coordinate) -> Coordinate:
    x = coord.longitude - _BD_LON_SHIFT
    y = coord.latitude - _BD_LAT_SHIFT
    z = math.sqrt(x * x + y * y) - _BD_Z_FACTOR * math.sin(y * math.pi)
    theta = math.atan2(y, x) - _BD_THETA_FACTOR * math.cos(x * math.pi)
    return Coordinate(latitude=z * math.sin(theta), longitude=z * math.cos(theta))


def wgs84_to_bd09(coord: Coordinate) -> Coordinate:
    return gcj02_to_bd09(wgs84_to_gcj02(coord))


def bd09_to_wgs84(coord: Coordinate) -> Coordinate:
    return gcj02_to_wgs84(bd09_to_gcj02(coord))


def to_gcj02(coord: Coordinate, system: CoordinateSystem) -> Coordinate:
    """Convert a coordinate in ``system`` into the GCJ02 rendering system."""
    if system == CoordinateSystem.wgs84:
        return wgs84_to_gcj02(coord)
    if system == CoordinateSystem.bd09:
        return bd09_to_gcj02(coord)
    return coord
