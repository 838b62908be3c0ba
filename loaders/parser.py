"""
Overpass response parser.

Turns raw `out body geom` elements into Place and Building entities.
Elements with unusable geometry (open or too-short rings, missing
coordinates) are dropped quietly; they never surface as errors.
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from shapely.geometry import LineString, MultiPolygon, Point, Polygon

from core.models import Building, Coordinate, MapData, Place
from core.settings import DEFAULT_AMENITY_TYPES

log = logging.getLogger(__name__)

_NUMBER = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


def parse_number(value: Optional[str]) -> Optional[float]:
    """Leading number of an OSM tag value ("12", "12.5 m"), or None."""
    if value is None:
        return None
    match = _NUMBER.match(str(value))
    if not match:
        return None
    return float(match.group(1))


def _coords(geometry: Optional[Iterable[Dict]]) -> List[Tuple[float, float]]:
    """(lon, lat) pairs from an Overpass geometry list, skipping holes in the data."""
    if not geometry:
        return []
    return [(pt["lon"], pt["lat"]) for pt in geometry
            if pt and pt.get("lat") is not None and pt.get("lon") is not None]


def is_closed_ring(coords: Sequence[Tuple[float, float]]) -> bool:
    """At least 4 entries, 3 of them distinct, with the first repeated as the last."""
    return len(coords) >= 4 and coords[0] == coords[-1] and len(set(coords[:-1])) >= 3


def _parse_place(el: Dict, element_id: str, tags: Dict[str, str]) -> Optional[Place]:
    center = None
    geometry = None
    is_outline = False

    if el["type"] == "node" and el.get("lat") is not None and el.get("lon") is not None:
        center = Coordinate(lat=el["lat"], lng=el["lon"])
        geometry = Point(el["lon"], el["lat"])
    elif el["type"] == "way":
        coords = _coords(el.get("geometry"))
        if is_closed_ring(coords):
            geometry = Polygon(coords)
            c = geometry.centroid
            if c.is_empty:
                center = Coordinate.from_lon_lat(coords[0])
            else:
                center = Coordinate(lat=c.y, lng=c.x)
            is_outline = "building" in tags
        elif len(coords) >= 2:
            geometry = LineString(coords)
            center = Coordinate.from_lon_lat(coords[0])

    if center is None or geometry is None:
        log.debug(f"Dropping place {element_id}: no usable geometry")
        return None

    return Place(
        id=element_id,
        kind=el["type"],
        name=tags.get("name") or tags.get("amenity", "").replace("_", " ") or "Unnamed Place",
        tags=dict(tags),
        center=center,
        geometry=geometry,
        is_building_outline=is_outline,
    )


def _parse_building(el: Dict, element_id: str, tags: Dict[str, str]) -> Optional[Building]:
    footprint = None

    if el["type"] == "way":
        coords = _coords(el.get("geometry"))
        if is_closed_ring(coords):
            footprint = Polygon(coords)
    elif el["type"] == "relation" and tags.get("type") == "multipolygon":
        outers = []
        for member in el.get("members") or []:
            if member.get("type") != "way" or member.get("role") != "outer":
                continue
            coords = _coords(member.get("geometry"))
            if is_closed_ring(coords):
                outers.append(coords)
        if len(outers) == 1:
            footprint = Polygon(outers[0])
        elif outers:
            footprint = MultiPolygon([Polygon(ring) for ring in outers])

    if footprint is None or footprint.is_empty:
        log.debug(f"Dropping building {element_id}: no closed outer ring")
        return None

    return Building(
        id=element_id,
        footprint=footprint,
        height=parse_number(tags.get("height")),
        levels=parse_number(tags.get("building:levels")),
    )


def parse_overpass_elements(
    elements: Iterable[Dict],
    amenity_types: Optional[Sequence[str]] = None
) -> MapData:
    """
    Parse Overpass elements into places and buildings.

    An element can be both, e.g. a cafe mapped as a building outline.

    Args:
        elements: the "elements" list of an Overpass JSON response
        amenity_types: amenity values that make an element a place
    """
    amenity_types = set(amenity_types or DEFAULT_AMENITY_TYPES)
    places = []
    buildings = []

    for el in elements:
        if "type" not in el or "id" not in el:
            continue
        element_id = f"{el['type']}/{el['id']}"
        tags = el.get("tags") or {}

        if tags.get("amenity") in amenity_types:
            place = _parse_place(el, element_id, tags)
            if place is not None:
                places.append(place)

        if "building" in tags:
            building = _parse_building(el, element_id, tags)
            if building is not None:
                buildings.append(building)

    log.debug(f"Parsed {len(places)} places and {len(buildings)} buildings")
    return MapData(places=tuple(places), buildings=tuple(buildings))
