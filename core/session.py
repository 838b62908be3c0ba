"""
Fetch orchestration for one exploration session.

Ties the coverage tracker to the map-data source: pick the largest
uncovered part of the viewport, fetch it, merge it into the store and
re-classify. Loaders are injected so tests and other front ends can swap
them out.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging

from core.coverage import next_fetch_bbox
from core.errors import DataSourceError
from core.geo import bbox_around
from core.models import BoundingBox, Coordinate, LocationCandidate
from core.settings import ShadeSettings, get_settings
from core.store import ShadeStore

log = logging.getLogger(__name__)


class FetchStatus:
    """Outcomes of one refresh() call."""
    NO_VIEWPORT = "no_viewport"     # Nothing selected yet
    SKIPPED_ZOOM = "skipped_zoom"   # Zoomed out too far to fetch
    COVERED = "covered"             # Viewport fully fetched already
    CACHED = "cached"               # Same viewport + history already handled
    FETCHED = "fetched"             # New data merged
    EMPTY = "empty"                 # Fetch succeeded but returned nothing
    FAILED = "failed"               # Data source error; bbox stays unfetched


@dataclass
class FetchOutcome:
    status: str
    bbox: Optional[BoundingBox] = None
    places_added: int = 0
    buildings_added: int = 0
    message: str = ""

    @property
    def fetched_something(self) -> bool:
        return self.status in (FetchStatus.FETCHED, FetchStatus.EMPTY)


QueryKey = Tuple[int, Tuple[float, ...], Tuple[Tuple[float, ...], ...]]


class ExplorationSession:
    """
    Search, locate and incrementally fetch map data for a ShadeStore.

    map_source needs fetch(bbox) -> MapData; searcher needs
    search(query) -> List[LocationCandidate].

    Usage:
        session = ExplorationSession(OverpassLoader(), Geocoder())
        candidates = session.search("Sarajevo")
        session.select_location(candidates[0])
        session.fill_viewport()
        sunny = session.store.filtered_places()
    """

    def __init__(
        self,
        map_source,
        searcher=None,
        store: Optional[ShadeStore] = None,
        settings: Optional[ShadeSettings] = None
    ):
        self.settings = settings or get_settings()
        self.store = store or ShadeStore(settings=self.settings)
        self.map_source = map_source
        self.searcher = searcher
        self._handled: Dict[QueryKey, FetchOutcome] = {}
        self._handled_generation = self.store.history_generation

    # ── Location selection ────────────────────────────────────────────

    def search(self, query: str) -> List[LocationCandidate]:
        """
        Place-name search. Blank input returns no results without a request.

        Raises:
            GeocodingError: the search service failed
        """
        if not query or not query.strip():
            return []
        if self.searcher is None:
            log.warning("No location searcher configured")
            return []
        return self.searcher.search(query.strip())

    def select_location(self, candidate: LocationCandidate) -> BoundingBox:
        """Centre on a search result and query its bbox hint."""
        bbox = candidate.bounding_box or bbox_around(candidate.coordinate, self.settings.gps_radius_m)
        self.store.reset_for_location(
            candidate.coordinate, bbox, self.settings.search_zoom, location=candidate
        )
        self._handled = {}
        return bbox

    def use_gps_location(self, coordinate: Coordinate) -> BoundingBox:
        """Centre on the user's own position with a square query box around it."""
        bbox = bbox_around(coordinate, self.settings.gps_radius_m)
        self.store.reset_for_location(coordinate, bbox, self.settings.gps_zoom)
        self._handled = {}
        return bbox

    def search_this_area(self, bbox: BoundingBox, zoom: int) -> bool:
        """Make the visible map area the query viewport, if zoomed in enough."""
        if zoom < self.settings.min_fetch_zoom:
            log.info(f"Zoom {zoom} below {self.settings.min_fetch_zoom}, not searching this area")
            return False
        self.store.map_zoom = zoom
        self.store.set_viewport(bbox)
        return True

    # ── Fetching ──────────────────────────────────────────────────────

    def _query_key(self, viewport: BoundingBox) -> QueryKey:
        return (
            self.store.history_generation,
            tuple(viewport),
            tuple(tuple(b) for b in self.store.fetch_history),
        )

    def refresh(self) -> FetchOutcome:
        """
        Fetch the largest uncovered part of the viewport, then re-classify.

        A failed fetch does not mark its bbox as fetched, so the next call
        retries it.
        """
        store = self.store
        viewport = store.viewport
        if viewport is None:
            return FetchOutcome(FetchStatus.NO_VIEWPORT)
        if store.map_zoom < self.settings.min_fetch_zoom:
            return FetchOutcome(
                FetchStatus.SKIPPED_ZOOM,
                message=f"Zoom in to level {self.settings.min_fetch_zoom} to search for places.",
            )

        if self._handled_generation != store.history_generation:
            # Keys from a cleared history can never match again
            self._handled = {}
            self._handled_generation = store.history_generation

        key = self._query_key(viewport)
        if key in self._handled:
            store.recompute()
            return FetchOutcome(FetchStatus.CACHED, bbox=self._handled[key].bbox)

        target = next_fetch_bbox(viewport, store.fetch_history)
        if target is None:
            store.recompute()
            outcome = FetchOutcome(FetchStatus.COVERED)
            self._handled[key] = outcome
            return outcome

        try:
            data = self.map_source.fetch(target)
        except DataSourceError as e:
            log.error(f"Map data fetch for {target.to_overpass()} failed: {e}")
            store.recompute()
            return FetchOutcome(
                FetchStatus.FAILED, bbox=target, message=f"Failed to load places: {e}"
            )

        store.merge_fetched(data, target)
        store.recompute()

        if data.is_empty:
            outcome = FetchOutcome(
                FetchStatus.EMPTY, bbox=target,
                message="No new places found in the recently explored area.",
            )
        else:
            outcome = FetchOutcome(
                FetchStatus.FETCHED, bbox=target,
                places_added=len(data.places), buildings_added=len(data.buildings),
            )
        self._handled[key] = outcome
        log.info(
            f"Fetched {len(data.places)} places, {len(data.buildings)} buildings "
            f"for {target.to_overpass()}"
        )
        return outcome

    def fill_viewport(self, max_fetches: int = 10) -> List[FetchOutcome]:
        """Keep fetching gaps until the viewport is covered, fails, or max_fetches is hit."""
        outcomes = []
        for _ in range(max_fetches):
            outcome = self.refresh()
            outcomes.append(outcome)
            if not outcome.fetched_something:
                break
        return outcomes
