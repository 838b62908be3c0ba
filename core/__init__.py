"""
Core module for the sun/shade spot finder.
Contains data models, the shadow geometry engine, fetch-coverage tracking
and session state.
"""

from core.models import (
    BoundingBox,
    Building,
    Coordinate,
    LocationCandidate,
    MapData,
    Place,
    SunPosition,
    SunState,
)
from core.settings import ShadeSettings, get_settings
from core.errors import DataSourceError, MapDataFetchError, GeocodingError
from core.sun import sun_position, sun_position_or_none
from core.shadow import calculate_shadow, calculate_shadows
from core.classifier import classify_places, filter_places, is_location_in_sun, relevant_shadow_point
from core.coverage import unfetched_areas, largest_gap, next_fetch_bbox
from core.store import ShadeStore
from core.session import ExplorationSession, FetchOutcome, FetchStatus
from core.alerts import SunAlert, SunAlertPlanner

__all__ = [
    # Models
    "BoundingBox",
    "Building",
    "Coordinate",
    "LocationCandidate",
    "MapData",
    "Place",
    "SunPosition",
    "SunState",
    # Settings and errors
    "ShadeSettings",
    "get_settings",
    "DataSourceError",
    "MapDataFetchError",
    "GeocodingError",
    # Engine
    "sun_position",
    "sun_position_or_none",
    "calculate_shadow",
    "calculate_shadows",
    "classify_places",
    "filter_places",
    "is_location_in_sun",
    "relevant_shadow_point",
    "unfetched_areas",
    "largest_gap",
    "next_fetch_bbox",
    # Session
    "ShadeStore",
    "ExplorationSession",
    "FetchOutcome",
    "FetchStatus",
    "SunAlert",
    "SunAlertPlanner",
]
