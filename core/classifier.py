"""
Sun/shade classifier.

Decides which coordinate of a place is tested against the shadows, and
whether that coordinate is in the sun. A classification pass is stateless:
the same places, buildings and sun position always give the same output.
"""

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence
import logging

from shapely.geometry import LineString, MultiPolygon, Point, Polygon
from shapely.geometry.base import BaseGeometry

from core.geo import centroid, point_in_polygon
from core.models import Building, Coordinate, Place, SunPosition, SunState
from core.settings import ShadeSettings
from core.shadow import calculate_shadows

log = logging.getLogger(__name__)

SUN_FILTERS = ("all", "sun", "shade")


def _footprint_parts(building: Building) -> List[Polygon]:
    footprint = building.footprint
    if isinstance(footprint, MultiPolygon):
        return list(footprint.geoms)
    return [footprint]


def _nearest_point_on_ring(part: Polygon, location: Coordinate) -> Optional[Coordinate]:
    if part.is_empty or len(part.exterior.coords) < 2:
        return None
    line = LineString(part.exterior.coords)
    nearest = line.interpolate(line.project(Point(location.lng, location.lat)))
    return Coordinate(lat=nearest.y, lng=nearest.x)


def relevant_shadow_point(
    place: Place,
    buildings: Sequence[Building] = (),
    snap_to_edge: bool = False
) -> Optional[Coordinate]:
    """
    The coordinate used to test a place for shadow.

    Building outlines use their centroid. Everything else uses the stored
    centre. With snap_to_edge, a point place that sits inside a building
    footprint is moved to the nearest point on the outer ring of the
    footprint part that contains it.
    """
    if place.is_building_outline and isinstance(place.geometry, Polygon):
        try:
            return centroid(place.geometry)
        except Exception as e:
            log.warning(f"Centroid failed for place {place.id}, using center: {e}")
            return place.center

    if snap_to_edge and place.center is not None and not isinstance(place.geometry, (Polygon, LineString)):
        for building in buildings:
            try:
                for part in _footprint_parts(building):
                    if point_in_polygon(place.center, part):
                        snapped = _nearest_point_on_ring(part, place.center)
                        if snapped is not None:
                            return snapped
            except Exception as e:
                log.warning(f"Edge snapping against building {building.id} failed for place {place.id}: {e}")

    return place.center


def is_location_in_sun(location: Optional[Coordinate], shadows: Iterable[BaseGeometry]) -> bool:
    """
    True unless the location lies inside or on the edge of a shadow.

    A missing location is treated as in the sun.
    """
    if location is None:
        return True
    for shadow in shadows:
        if shadow is None:
            continue
        try:
            if point_in_polygon(location, shadow):
                return False
        except Exception as e:
            log.warning(f"Point-in-shadow test failed: {e}")
    return True


def classify_places(
    places: Iterable[Place],
    buildings: Sequence[Building],
    sun: Optional[SunPosition],
    snap_to_edge: bool = False,
    settings: Optional[ShadeSettings] = None
) -> List[Place]:
    """
    Assign a sun state and relevant shadow point to every place.

    Sun down (None or altitude <= 0): everything is in shade.
    Sun up with no buildings loaded: everything is in the sun.

    Returns:
        New Place records; the inputs are left untouched
    """
    places = list(places)

    if sun is None or sun.altitude <= 0:
        return [
            replace(
                p,
                sun_state=SunState.IN_SHADE,
                relevant_shadow_point=relevant_shadow_point(p, buildings, snap_to_edge),
            )
            for p in places
        ]

    if not buildings:
        return [
            replace(
                p,
                sun_state=SunState.IN_SUN,
                relevant_shadow_point=relevant_shadow_point(p, buildings, snap_to_edge),
            )
            for p in places
        ]

    shadows = calculate_shadows(buildings, sun, settings)
    log.debug(f"Classifying {len(places)} places against {len(shadows)} shadows")

    classified = []
    for place in places:
        point = relevant_shadow_point(place, buildings, snap_to_edge)
        in_sun = is_location_in_sun(point, shadows)
        classified.append(replace(
            place,
            sun_state=SunState.IN_SUN if in_sun else SunState.IN_SHADE,
            relevant_shadow_point=point,
        ))
    return classified


def filter_places(places: Iterable[Place], sun_filter: str = "all", name_query: str = "") -> List[Place]:
    """
    Apply the sun/shade filter and a case-insensitive name filter.

    Unclassified places only pass the "all" filter.
    """
    if sun_filter not in SUN_FILTERS:
        raise ValueError(f"Unknown sun filter {sun_filter!r}, expected one of {SUN_FILTERS}")
    query = name_query.lower().strip()

    result = []
    for place in places:
        if sun_filter == "sun" and place.sun_state is not SunState.IN_SUN:
            continue
        if sun_filter == "shade" and place.sun_state is not SunState.IN_SHADE:
            continue
        if query and query not in (place.name or "").lower():
            continue
        result.append(place)
    return result
