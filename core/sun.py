"""
Sun position provider.

Wraps astral's solar ephemeris and converts to the convention the shadow
caster works in: azimuth in radians measured from south, clockwise, and
altitude in radians above the horizon.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from astral import Observer
from astral.sun import azimuth, elevation

from core.models import SunPosition


def _as_utc(when: datetime) -> datetime:
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def north_to_south_azimuth(azimuth_deg: float) -> float:
    """Compass azimuth (degrees from north) -> radians from south, in (-pi, pi]."""
    angle = math.radians(azimuth_deg - 180.0)
    return math.atan2(math.sin(angle), math.cos(angle))


def sun_position(when: datetime, lat: float, lng: float) -> SunPosition:
    """
    Sun azimuth and altitude for a moment and place.

    Naive datetimes are taken as UTC.
    """
    observer = Observer(latitude=lat, longitude=lng)
    moment = _as_utc(when)
    az_deg = azimuth(observer, moment)
    alt_deg = elevation(observer, moment)
    return SunPosition(
        azimuth=north_to_south_azimuth(az_deg),
        altitude=math.radians(alt_deg),
    )


def sun_position_or_none(when: datetime, lat: float, lng: float) -> Optional[SunPosition]:
    """Sun position, or None when the sun is at or below the horizon."""
    position = sun_position(when, lat, lng)
    if position.altitude > 0:
        return position
    return None
