"""
Shadow caster.

Projects a building footprint along the shadow bearing and returns the
convex hull of footprint + projection as the ground shadow. The hull
over-approximates the shadow of concave footprints; this is accepted.

Nothing in here raises: a building that cannot produce a valid shadow is
logged and skipped so the rest of the scene still classifies.
"""

import math
from typing import Iterable, List, Optional
import logging

from shapely.geometry import Polygon

from core.geo import convex_hull, project_points
from core.models import Building, SunPosition
from core.settings import ShadeSettings, get_settings

log = logging.getLogger(__name__)


def shadow_length(height_m: float, altitude_rad: float) -> float:
    """Length of the shadow cast by a vertical edge of height_m."""
    return height_m / math.tan(altitude_rad)


def shadow_bearing(azimuth_rad: float) -> float:
    """
    Compass bearing (degrees from north) along which shadows fall.

    The sun's compass bearing is the south-based azimuth plus 180; the
    shadow points the opposite way, another 180 on top.
    """
    sun_bearing = math.degrees(azimuth_rad) + 180.0
    return (sun_bearing + 180.0) % 360.0


def calculate_shadow(
    building: Building,
    sun: SunPosition,
    settings: Optional[ShadeSettings] = None
) -> Optional[Polygon]:
    """
    Ground shadow of one building for one sun position.

    Returns:
        The shadow polygon, or None when the building casts no usable shadow
    """
    settings = settings or get_settings()

    if sun.altitude <= settings.min_sun_altitude_rad:
        return None

    height = building.effective_height(
        settings.default_building_height_m, settings.meters_per_level
    )
    if height <= 0:
        log.warning(f"Building {building.id} has non-positive height {height}, no shadow")
        return None

    length = shadow_length(height, sun.altitude)
    if not math.isfinite(length) or length <= 0 or length < settings.min_shadow_length_m:
        log.warning(f"Building {building.id}: degenerate shadow length {length}")
        return None

    ring = building.outer_ring()
    if len(ring) < 4 or len(set(ring)) < 3:
        log.warning(f"Building {building.id} has invalid geometry for shadow calculation")
        return None

    bearing = shadow_bearing(sun.azimuth)
    try:
        projected = project_points(ring, length, bearing)
    except Exception as e:
        log.warning(f"Projecting footprint of building {building.id} failed: {e}")
        return None

    if len(projected) != len(ring):
        log.warning(
            f"Building {building.id}: projected {len(projected)} of {len(ring)} vertices, no shadow"
        )
        return None

    hull_points = ring + projected
    if len(set(hull_points)) < 3:
        return None

    try:
        hull = convex_hull(hull_points)
    except Exception as e:
        log.warning(f"Convex hull for building {building.id} failed: {e}")
        return None

    if hull is None:
        log.warning(f"Building {building.id}: shadow hull is not a polygon")
    return hull


def calculate_shadows(
    buildings: Iterable[Building],
    sun: SunPosition,
    settings: Optional[ShadeSettings] = None
) -> List[Polygon]:
    """Shadows for a batch of buildings, skipping those that cast none."""
    shadows = []
    for building in buildings:
        shadow = calculate_shadow(building, sun, settings)
        if shadow is not None:
            shadows.append(shadow)
    return shadows
