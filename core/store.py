"""
Application state for one exploration session.

ShadeStore owns everything that changes while a user looks around a map:
the accumulated place/building pool, the fetch history, the current time,
the map view and the filters. It is passed by reference to the fetch and
classification code instead of living as module-level state.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
import threading
import logging

from core.classifier import SUN_FILTERS, classify_places, filter_places
from core.models import BoundingBox, Building, Coordinate, LocationCandidate, MapData, Place, SunPosition
from core.settings import ShadeSettings, get_settings
from core.sun import sun_position_or_none

log = logging.getLogger(__name__)

# Sarajevo, used until a location is searched or located
DEFAULT_MAP_CENTER = Coordinate(lat=43.8563, lng=18.4131)
DEFAULT_MAP_ZOOM = 13

SLIDER_STEP_MINUTES = 15
SLIDER_MAX_STEP = (24 * 60) // SLIDER_STEP_MINUTES - 1


def slider_step_for(when: datetime) -> int:
    """Index of the 15-minute slot of the day containing when."""
    return (when.hour * 60 + when.minute) // SLIDER_STEP_MINUTES


def time_for_slider_step(step: int, day: datetime) -> datetime:
    """Start of 15-minute slot `step` on the same day (and tz) as `day`."""
    step = max(0, min(SLIDER_MAX_STEP, step))
    midnight = day.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(minutes=step * SLIDER_STEP_MINUTES)


class ShadeStore:
    """
    Mutable session state. Places and buildings are replaced, never patched.

    Merges are serialized with a lock so concurrent fetch callbacks cannot
    break id de-duplication or the fetch history.
    """

    def __init__(
        self,
        settings: Optional[ShadeSettings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

        self.manual_time: Optional[datetime] = None
        self.map_center: Coordinate = DEFAULT_MAP_CENTER
        self.map_zoom: int = DEFAULT_MAP_ZOOM
        self.viewport: Optional[BoundingBox] = None
        self.selected_location: Optional[LocationCandidate] = None
        self.has_map_moved = False

        self._places: Dict[str, Place] = {}
        self._buildings: Dict[str, Building] = {}
        self.fetch_history: List[BoundingBox] = []
        self.history_generation = 0
        self.processed_places: List[Place] = []

        self.sun_filter = "all"
        self.name_query = ""
        self.snap_to_edge = False
        self.bookmarks: List[str] = []

    # ── Time ──────────────────────────────────────────────────────────

    @property
    def current_time(self) -> datetime:
        if self.manual_time is not None:
            return self.manual_time
        return self._clock()

    @property
    def is_time_manual(self) -> bool:
        return self.manual_time is not None

    def set_manual_time(self, when: datetime) -> None:
        self.manual_time = when

    def set_slider_step(self, step: int) -> datetime:
        """Pin the time to a 15-minute slot of the current day."""
        self.manual_time = time_for_slider_step(step, self.current_time)
        return self.manual_time

    def resume_live_time(self) -> None:
        self.manual_time = None

    # ── Location and view ─────────────────────────────────────────────

    def _clear_history(self) -> None:
        self.fetch_history = []
        self.history_generation += 1

    def reset_for_location(
        self,
        center: Coordinate,
        bbox: Optional[BoundingBox],
        zoom: int,
        location: Optional[LocationCandidate] = None
    ) -> None:
        """Start over around a new location: drops pools, history and results."""
        with self._lock:
            self._places = {}
            self._buildings = {}
            self.processed_places = []
            self._clear_history()
            self.map_center = center
            self.map_zoom = zoom
            self.viewport = bbox
            self.selected_location = location
            self.has_map_moved = False
        log.info(f"New location at ({center.lat:.4f}, {center.lng:.4f}), zoom {zoom}")

    def clear_location(self) -> None:
        self.reset_for_location(DEFAULT_MAP_CENTER, None, DEFAULT_MAP_ZOOM)

    def set_map_view(self, center: Coordinate, zoom: int) -> bool:
        """
        Record where the map is looking after the user pans or zooms.

        Zooming out below the fetch threshold clears the fetch history.

        Returns:
            True if the view actually changed
        """
        changed = (
            f"{self.map_center.lat:.5f}" != f"{center.lat:.5f}" or
            f"{self.map_center.lng:.5f}" != f"{center.lng:.5f}" or
            self.map_zoom != zoom
        )
        if not changed:
            return False

        self.map_center = center
        self.map_zoom = zoom
        self.has_map_moved = self.viewport is not None
        if zoom < self.settings.min_fetch_zoom and self.fetch_history:
            log.info(f"Zoomed out to {zoom}, clearing fetch history")
            with self._lock:
                self._clear_history()
        return True

    def set_viewport(self, bbox: Optional[BoundingBox]) -> None:
        """Query the given area (the "search this area" action)."""
        self.viewport = bbox
        self.has_map_moved = False

    # ── Data pool ─────────────────────────────────────────────────────

    @property
    def all_places(self) -> List[Place]:
        return list(self._places.values())

    @property
    def all_buildings(self) -> List[Building]:
        return list(self._buildings.values())

    def merge_fetched(self, data: MapData, bbox: BoundingBox) -> None:
        """
        Union a fetch result into the pool and mark its bbox as fetched.

        Entities are keyed by id, so merging the same result twice or out
        of order leaves the pool unchanged. The bbox is recorded even when
        the result is empty.
        """
        with self._lock:
            for place in data.places:
                self._places[place.id] = place
            for building in data.buildings:
                self._buildings[building.id] = building
            self.fetch_history.append(bbox)
        log.debug(
            f"Merged {len(data.places)} places, {len(data.buildings)} buildings; "
            f"pool now {len(self._places)}/{len(self._buildings)}"
        )

    def visible_places(self) -> List[Place]:
        if self.viewport is None:
            return []
        return [p for p in self._places.values()
                if p.center is not None and self.viewport.contains(p.center)]

    def visible_buildings(self) -> List[Building]:
        if self.viewport is None:
            return []
        return [b for b in self._buildings.values()
                if b.centroid is not None and self.viewport.contains(b.centroid)]

    # ── Classification ────────────────────────────────────────────────

    def sun_position(self) -> Optional[SunPosition]:
        """One shared sun position, taken at the map centre."""
        return sun_position_or_none(self.current_time, self.map_center.lat, self.map_center.lng)

    def recompute(self) -> List[Place]:
        """Re-classify every visible place for the current time."""
        self.processed_places = classify_places(
            self.visible_places(),
            self.visible_buildings(),
            self.sun_position(),
            snap_to_edge=self.snap_to_edge,
            settings=self.settings,
        )
        return self.processed_places

    def set_sun_filter(self, sun_filter: str) -> None:
        if sun_filter not in SUN_FILTERS:
            raise ValueError(f"Unknown sun filter {sun_filter!r}")
        self.sun_filter = sun_filter

    def filtered_places(self) -> List[Place]:
        return filter_places(self.processed_places, self.sun_filter, self.name_query)

    # ── Bookmarks (in memory; persistence lives elsewhere) ────────────

    def add_bookmark(self, place_id: str) -> None:
        if place_id not in self.bookmarks:
            self.bookmarks.append(place_id)

    def remove_bookmark(self, place_id: str) -> None:
        self.bookmarks = [b for b in self.bookmarks if b != place_id]

    def is_bookmarked(self, place_id: str) -> bool:
        return place_id in self.bookmarks

    def bookmarked_places(self) -> List[Place]:
        return [self._places[b] for b in self.bookmarks if b in self._places]
