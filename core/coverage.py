"""
Region fetch-coverage tracker.

Works out which parts of the current viewport have not been covered by any
previously fetched bbox, so panning and zooming only requests new ground.
The fetch history is treated as a union of covered area; overlapping or
redundant boxes are fine.
"""

from typing import Iterable, List, Optional, Sequence
import logging

from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from core.geo import bbox_to_polygon, geodesic_area, polygon_difference, polygon_to_bbox
from core.models import BoundingBox

log = logging.getLogger(__name__)


def _split_polygons(geometry: BaseGeometry) -> List[Polygon]:
    if geometry.is_empty:
        return []
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, (MultiPolygon, GeometryCollection)):
        parts = []
        for part in geometry.geoms:
            parts.extend(_split_polygons(part))
        return parts
    # Lines or points left over from slivers cover no area
    return []


def unfetched_areas(viewport: BoundingBox, history: Iterable[BoundingBox]) -> List[Polygon]:
    """
    Parts of the viewport not covered by any bbox in history.

    A history entry that breaks the difference operation is logged and
    skipped; the remainder is left as it was.

    Returns:
        Simple polygons making up the uncovered area, empty when covered
    """
    remainder: BaseGeometry = bbox_to_polygon(viewport)

    for fetched in history:
        try:
            diff = polygon_difference(remainder, bbox_to_polygon(fetched))
        except Exception as e:
            log.warning(f"Difference against fetched bbox {tuple(fetched)} failed: {e}")
            continue
        if diff is None or diff.is_empty:
            return []
        remainder = diff

    return _split_polygons(remainder)


def largest_gap(polygons: Sequence[Polygon]) -> Optional[BoundingBox]:
    """
    Bbox of the largest polygon by geodesic area.

    The first of several equally large polygons wins. Zero-area polygons
    are never selected.
    """
    target = None
    largest_area = 0.0
    for polygon in polygons:
        try:
            area = geodesic_area(polygon)
        except Exception as e:
            log.warning(f"Area of uncovered region failed: {e}")
            continue
        if area > largest_area:
            largest_area = area
            target = polygon_to_bbox(polygon)
    return target


def next_fetch_bbox(viewport: BoundingBox, history: Iterable[BoundingBox]) -> Optional[BoundingBox]:
    """Bbox to request next for this viewport, or None when fully covered."""
    return largest_gap(unfetched_areas(viewport, history))
