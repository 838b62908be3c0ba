"""
OpenStreetMap map-data loader via Overpass API.

Fetches amenities (cafes, bars, restaurants ...) and building footprints
inside a bounding box, with:
- Rate limiting (per Overpass API guidelines)
- SQLite caching to avoid redundant requests
- Retry with exponential backoff
"""

import time
import sqlite3
import json
import hashlib
from typing import Optional, Dict
import logging
import requests
from tenacity import retry, stop_after_attempt, wait_exponential

from core.errors import MapDataFetchError
from core.models import BoundingBox, MapData
from core.settings import ShadeSettings, get_settings
from loaders.parser import parse_overpass_elements

log = logging.getLogger(__name__)

# Rate limiter - Overpass is generous but we should be respectful
_last_request_time = 0.0
_MIN_REQUEST_INTERVAL = 2.0  # 2 seconds between requests

_CACHE_MAX_AGE_SECONDS = 30 * 24 * 60 * 60


class OverpassCache:
    """SQLite cache for Overpass API results."""

    def __init__(self, db_path: str = "overpass_cache.db"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        conn = sqlite3.connect(self.db_path)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS overpass_cache (
                query_hash TEXT PRIMARY KEY,
                result_json TEXT,
                created_at REAL
            )
        """)
        conn.execute(
            "DELETE FROM overpass_cache WHERE created_at < ?",
            (time.time() - _CACHE_MAX_AGE_SECONDS,)
        )
        conn.commit()
        conn.close()

    def _hash_query(self, bbox: BoundingBox, amenity_filter: str) -> str:
        # 6 decimals (~10cm) keeps distinct viewports distinct
        s, w, n, e = bbox
        key = f"{s:.6f},{w:.6f},{n:.6f},{e:.6f}|{amenity_filter}"
        return hashlib.md5(key.encode()).hexdigest()

    def get(self, bbox: BoundingBox, amenity_filter: str) -> Optional[Dict]:
        conn = sqlite3.connect(self.db_path)
        row = conn.execute(
            "SELECT result_json FROM overpass_cache WHERE query_hash = ?",
            (self._hash_query(bbox, amenity_filter),)
        ).fetchone()
        conn.close()
        if row:
            return json.loads(row[0])
        return None

    def set(self, bbox: BoundingBox, amenity_filter: str, result: Dict):
        conn = sqlite3.connect(self.db_path)
        conn.execute(
            """INSERT OR REPLACE INTO overpass_cache
               (query_hash, result_json, created_at)
               VALUES (?, ?, ?)""",
            (self._hash_query(bbox, amenity_filter), json.dumps(result), time.time())
        )
        conn.commit()
        conn.close()


class OverpassLoader:
    """
    Map-data source for the sun/shade engine.

    Fetches, for one bbox:
    - Amenity nodes, ways and relations of the configured types
    - Building ways and relations (footprints for shadow casting)
    """

    def __init__(self, settings: Optional[ShadeSettings] = None, cache_path: Optional[str] = None):
        self.settings = settings or get_settings()
        self.cache = OverpassCache(cache_path or self.settings.overpass_cache_path)
        self.timeout = self.settings.overpass_timeout_s
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.settings.user_agent})

    @property
    def amenity_filter(self) -> str:
        return "|".join(self.settings.amenity_types)

    def _rate_limit(self):
        """Ensure we don't exceed rate limits."""
        global _last_request_time
        elapsed = time.time() - _last_request_time
        if elapsed < _MIN_REQUEST_INTERVAL:
            time.sleep(_MIN_REQUEST_INTERVAL - elapsed)
        _last_request_time = time.time()

    def build_query(self, bbox: BoundingBox) -> str:
        """Overpass QL for amenities and buildings inside bbox, with full geometry."""
        area = bbox.to_overpass()
        amenity = self.amenity_filter
        return f"""
        [out:json][timeout:{self.timeout}];
        (
          node["amenity"~"^({amenity})$"]({area});
          way["amenity"~"^({amenity})$"]({area});
          relation["amenity"~"^({amenity})$"]({area});

          // Footprints; building nodes carry no outline
          way["building"]({area});
          relation["building"]({area});
        );
        out body geom;
        """

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=2, min=2, max=15))
    def _make_request(self, query: str) -> Dict:
        """Make a rate-limited request with retry."""
        self._rate_limit()
        response = self.session.post(
            self.settings.overpass_url,
            data={"data": query},
            timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def fetch_raw(self, bbox: BoundingBox) -> Dict:
        """
        Fetch raw OSM data for a bbox.

        Returns:
            Raw Overpass API response

        Raises:
            MapDataFetchError: the request failed after retries
        """
        cached = self.cache.get(bbox, self.amenity_filter)
        if cached:
            log.debug(f"Cache hit for Overpass bbox {bbox.to_overpass()}")
            return cached

        query = self.build_query(bbox)

        try:
            data = self._make_request(query)
        except Exception as e:
            log.error(f"Overpass request failed for {bbox.to_overpass()}: {e}")
            raise MapDataFetchError(f"Failed to fetch map data: {e}") from e

        self.cache.set(bbox, self.amenity_filter, data)
        log.info(f"Overpass fetched {len(data.get('elements', []))} elements for {bbox.to_overpass()}")
        return data

    def fetch(self, bbox: BoundingBox) -> MapData:
        """Fetch and parse places and buildings for a bbox."""
        raw = self.fetch_raw(bbox)
        return parse_overpass_elements(raw.get("elements", []), self.settings.amenity_types)


# Singleton
_loader: Optional[OverpassLoader] = None

def get_overpass_loader() -> OverpassLoader:
    """Get singleton Overpass loader."""
    global _loader
    if _loader is None:
        _loader = OverpassLoader()
    return _loader
