"""
Runtime settings for the sun/shade engine.

Every tunable lives here with an explicit default. Values can be overridden
through SHADESPOT_* environment variables via ShadeSettings.from_env().
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional
import logging

log = logging.getLogger(__name__)


DEFAULT_AMENITY_TYPES = [
    "restaurant",
    "cafe",
    "pub",
    "bar",
    "fast_food",
    "food_court",
    "ice_cream",
    "biergarten",
    "lounge",
    "cocktail_bar",
]


@dataclass
class ShadeSettings:
    """
    All configurable settings for shadow casting, fetching and alerts.
    """

    # Shadow casting
    default_building_height_m: float = 10.0
    """Height used when a building has neither a height nor a levels tag."""

    meters_per_level: float = 3.5
    """Storey height used to derive building height from building:levels."""

    min_sun_altitude_rad: float = 0.01
    """At or below this altitude the sun is treated as down (no shadows)."""

    min_shadow_length_m: float = 0.01
    """Shadows shorter than this are numerically degenerate and skipped."""

    # Fetching
    min_fetch_zoom: int = 13
    """Map zoom below which no map data is requested."""

    search_zoom: int = 14
    """Zoom applied after selecting a searched location."""

    gps_zoom: int = 15
    """Zoom applied after centring on the user's own location."""

    gps_radius_m: float = 2000.0
    """Half-width of the query box built around a GPS fix."""

    amenity_types: List[str] = field(default_factory=lambda: list(DEFAULT_AMENITY_TYPES))
    """Amenity values that count as points of interest."""

    overpass_url: str = "https://overpass-api.de/api/interpreter"
    overpass_timeout_s: int = 60
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "ShadeSpot/1.0 (https://github.com/shadespot)"
    max_search_results: int = 5

    # Caches
    overpass_cache_path: str = "overpass_cache.db"
    geocode_cache_path: str = "geocode_cache.db"

    # Sun alerts
    alert_horizon_min: int = 30
    """How far ahead to look for a bookmarked place coming into the sun."""

    alert_step_min: int = 5
    """Step between look-ahead samples."""

    alert_lead_min: int = 15
    """Only alert when the sun arrives within this many minutes."""

    alert_building_radius_m: float = 2000.0
    """Buildings farther than this from a place are ignored for alerts."""

    @classmethod
    def from_env(cls) -> "ShadeSettings":
        """Build settings from SHADESPOT_* environment variables."""
        settings = cls()
        overrides = {
            "SHADESPOT_DEFAULT_BUILDING_HEIGHT": ("default_building_height_m", float),
            "SHADESPOT_METERS_PER_LEVEL": ("meters_per_level", float),
            "SHADESPOT_MIN_FETCH_ZOOM": ("min_fetch_zoom", int),
            "SHADESPOT_GPS_RADIUS_M": ("gps_radius_m", float),
            "SHADESPOT_OVERPASS_URL": ("overpass_url", str),
            "SHADESPOT_OVERPASS_TIMEOUT": ("overpass_timeout_s", int),
            "SHADESPOT_NOMINATIM_URL": ("nominatim_url", str),
            "SHADESPOT_USER_AGENT": ("user_agent", str),
            "SHADESPOT_OVERPASS_CACHE": ("overpass_cache_path", str),
            "SHADESPOT_GEOCODE_CACHE": ("geocode_cache_path", str),
        }
        for env_name, (attr, cast) in overrides.items():
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            try:
                setattr(settings, attr, cast(raw))
            except ValueError:
                log.warning(f"Ignoring invalid {env_name}={raw!r}")

        amenities = os.getenv("SHADESPOT_AMENITY_TYPES")
        if amenities:
            settings.amenity_types = [a.strip() for a in amenities.split(",") if a.strip()]
        return settings


# Singleton
_settings: Optional[ShadeSettings] = None

def get_settings() -> ShadeSettings:
    """Get the singleton settings, read from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = ShadeSettings.from_env()
    return _settings
