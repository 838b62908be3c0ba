"""
Geometry primitives on WGS84 coordinates.

Thin wrappers around shapely (planar lon/lat geometry) and pyproj.Geod
(ellipsoidal distances, bearings and areas). Everything here is stateless.
Shapely geometries use (lon, lat) axis order throughout.
"""

import math
from typing import Iterable, List, Optional, Sequence, Tuple
import logging

from pyproj import Geod
from shapely.geometry import MultiPoint, Point, Polygon
from shapely.geometry.base import BaseGeometry

from core.models import BoundingBox, Coordinate

log = logging.getLogger(__name__)

_geod = Geod(ellps="WGS84")


def bbox_to_polygon(bbox: BoundingBox) -> Polygon:
    """Rectangle for a bbox, wound SW -> SE -> NE -> NW."""
    s, w, n, e = bbox
    return Polygon([(w, s), (e, s), (e, n), (w, n), (w, s)])


def polygon_to_bbox(geometry: BaseGeometry) -> BoundingBox:
    """Axis-aligned bbox around any geometry."""
    minx, miny, maxx, maxy = geometry.bounds
    return BoundingBox(south=miny, west=minx, north=maxy, east=maxx)


def is_coordinate_in_bbox(coordinate: Coordinate, bbox: BoundingBox) -> bool:
    return bbox.contains(coordinate)


def destination_point(origin: Coordinate, distance_m: float, bearing_deg: float) -> Coordinate:
    """Point reached travelling distance_m from origin along a compass bearing."""
    lon, lat, _ = _geod.fwd(origin.lng, origin.lat, bearing_deg, distance_m)
    return Coordinate(lat=lat, lng=lon)


def project_points(
    points: Sequence[Tuple[float, float]],
    distance_m: float,
    bearing_deg: float
) -> List[Tuple[float, float]]:
    """
    Move every (lon, lat) point the same distance along the same bearing.

    Points whose projection is not finite are dropped, so callers can
    compare lengths to detect partial failure.
    """
    if not points:
        return []
    lons = [p[0] for p in points]
    lats = [p[1] for p in points]
    out_lons, out_lats, _ = _geod.fwd(
        lons, lats, [bearing_deg] * len(points), [distance_m] * len(points)
    )
    projected = []
    for lon, lat in zip(out_lons, out_lats):
        if math.isfinite(lon) and math.isfinite(lat):
            projected.append((lon, lat))
    return projected


def convex_hull(points: Iterable[Tuple[float, float]]) -> Optional[Polygon]:
    """Convex hull as a Polygon, or None when the points are degenerate."""
    hull = MultiPoint(list(points)).convex_hull
    if isinstance(hull, Polygon) and not hull.is_empty:
        return hull
    return None


def point_in_polygon(coordinate: Coordinate, polygon: BaseGeometry) -> bool:
    """Containment test where the boundary counts as inside."""
    return polygon.covers(Point(coordinate.lng, coordinate.lat))


def centroid(geometry: BaseGeometry) -> Coordinate:
    c = geometry.centroid
    return Coordinate(lat=c.y, lng=c.x)


def polygon_difference(a: BaseGeometry, b: BaseGeometry) -> BaseGeometry:
    return a.difference(b)


def geodesic_area(polygon: BaseGeometry) -> float:
    """Area in square metres on the WGS84 ellipsoid."""
    area, _ = _geod.geometry_area_perimeter(polygon)
    return abs(area)


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Geodesic distance in metres."""
    _, _, dist = _geod.inv(a.lng, a.lat, b.lng, b.lat)
    return dist


def bbox_around(center: Coordinate, radius_m: float) -> BoundingBox:
    """Smallest bbox containing a circle of radius_m around center."""
    north = destination_point(center, radius_m, 0)
    east = destination_point(center, radius_m, 90)
    south = destination_point(center, radius_m, 180)
    west = destination_point(center, radius_m, 270)
    return BoundingBox(south=south.lat, west=west.lng, north=north.lat, east=east.lng)
