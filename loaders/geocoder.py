"""
Geocoder - Find places by name using Nominatim.

Features:
- Rate limiting (1 request/second per Nominatim policy)
- Caching to avoid repeated lookups
- Retry with exponential backoff
"""

import time
import sqlite3
import json
import hashlib
from typing import Optional, Dict, List
import logging
import requests
from tenacity import retry, stop_after_attempt, wait_exponential

from core.errors import GeocodingError
from core.models import BoundingBox, Coordinate, LocationCandidate
from core.settings import ShadeSettings, get_settings

log = logging.getLogger(__name__)

# Rate limiter - tracks last request time
_last_request_time = 0.0
_MIN_REQUEST_INTERVAL = 1.1  # 1.1 seconds between requests (slightly over 1/sec)

# Result types worth centring a map on
SETTLEMENT_TYPES = {
    "administrative",
    "city",
    "town",
    "village",
    "hamlet",
    "county",
    "state",
    "suburb",
}


class GeocodingCache:
    """SQLite cache for geocoding results."""

    def __init__(self, db_path: str = "geocode_cache.db"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        conn = sqlite3.connect(self.db_path)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS geocode_cache (
                query_hash TEXT PRIMARY KEY,
                query_text TEXT,
                result_json TEXT,
                created_at REAL
            )
        """)
        conn.commit()
        conn.close()

    def _hash_query(self, query: str) -> str:
        return hashlib.md5(query.lower().strip().encode()).hexdigest()

    def get(self, query: str) -> Optional[Dict]:
        conn = sqlite3.connect(self.db_path)
        row = conn.execute(
            "SELECT result_json FROM geocode_cache WHERE query_hash = ?",
            (self._hash_query(query),)
        ).fetchone()
        conn.close()
        if row:
            return json.loads(row[0])
        return None

    def set(self, query: str, result: Dict):
        conn = sqlite3.connect(self.db_path)
        conn.execute(
            """INSERT OR REPLACE INTO geocode_cache
               (query_hash, query_text, result_json, created_at)
               VALUES (?, ?, ?, ?)""",
            (self._hash_query(query), query, json.dumps(result), time.time())
        )
        conn.commit()
        conn.close()


def _is_settlement(result: Dict) -> bool:
    return (result.get("type") in SETTLEMENT_TYPES or
            (result.get("class") == "boundary" and result.get("type") == "administrative"))


def _to_candidate(result: Dict) -> LocationCandidate:
    bbox = None
    if result.get("boundingbox"):
        try:
            bbox = BoundingBox.from_nominatim(result["boundingbox"])
        except (ValueError, IndexError, TypeError) as e:
            log.warning(f"Ignoring bad bounding box for {result.get('display_name')}: {e}")
    return LocationCandidate(
        display_name=result.get("display_name", ""),
        coordinate=Coordinate(lat=float(result["lat"]), lng=float(result["lon"])),
        bounding_box=bbox,
        place_type=result.get("type", "unknown"),
    )


class Geocoder:
    """
    Place-name search using OpenStreetMap Nominatim API.

    Respects rate limits: max 1 request per second.
    Uses caching to avoid redundant API calls.
    """

    def __init__(self, settings: Optional[ShadeSettings] = None, cache_path: Optional[str] = None):
        self.settings = settings or get_settings()
        self.cache = GeocodingCache(cache_path or self.settings.geocode_cache_path)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.settings.user_agent})

    def _rate_limit(self):
        """Ensure we don't exceed 1 request per second."""
        global _last_request_time
        elapsed = time.time() - _last_request_time
        if elapsed < _MIN_REQUEST_INTERVAL:
            time.sleep(_MIN_REQUEST_INTERVAL - elapsed)
        _last_request_time = time.time()

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=2, min=2, max=10))
    def _make_request(self, path: str, params: Dict):
        """Make a rate-limited request with retry."""
        self._rate_limit()
        response = self.session.get(f"{self.settings.nominatim_url}/{path}", params=params, timeout=10)
        response.raise_for_status()
        return response.json()

    def search(self, query: str) -> List[LocationCandidate]:
        """
        Find towns, cities and districts matching free text.

        Args:
            query: Free-form place name, e.g. "Sarajevo"

        Returns:
            Up to max_search_results candidates, best first; empty for blank input

        Raises:
            GeocodingError: Nominatim could not be reached
        """
        query = (query or "").strip()
        if not query:
            return []

        cached = self.cache.get(query)
        if cached:
            log.debug(f"Cache hit for: {query}")
            return [_to_candidate(r) for r in cached["results"]]

        params = {
            "q": query,
            "format": "jsonv2",
            "addressdetails": 0,
            "limit": self.settings.max_search_results,
            "accept-language": "en",
        }

        try:
            results = self._make_request("search", params)
        except Exception as e:
            log.error(f"Geocoding failed for '{query}': {e}")
            raise GeocodingError(f"Failed to fetch geocoding results: {e}") from e

        kept = [r for r in results or [] if _is_settlement(r)][:self.settings.max_search_results]
        if not kept:
            log.warning(f"No results for: {query}")

        self.cache.set(query, {"results": kept})
        log.info(f"Geocoded: {query} -> {len(kept)} candidates")
        return [_to_candidate(r) for r in kept]

    def reverse_geocode(self, lat: float, lon: float) -> Optional[str]:
        """
        Convert coordinates to a display name.

        Returns:
            Display name string, or None if not found or the request failed
        """
        cache_key = f"reverse:{lat:.6f},{lon:.6f}"
        cached = self.cache.get(cache_key)
        if cached:
            return cached.get("display_name")

        params = {
            "lat": lat,
            "lon": lon,
            "format": "jsonv2",
        }

        try:
            result = self._make_request("reverse", params)
        except Exception as e:
            log.error(f"Reverse geocoding failed: {e}")
            return None

        display_name = result.get("display_name", "")
        self.cache.set(cache_key, {"display_name": display_name})

        return display_name


# Singleton instance
_geocoder: Optional[Geocoder] = None

def get_geocoder() -> Geocoder:
    """Get the singleton geocoder instance."""
    global _geocoder
    if _geocoder is None:
        _geocoder = Geocoder()
    return _geocoder
