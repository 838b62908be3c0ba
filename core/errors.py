"""
Errors raised by external data sources.

Geometry problems never raise; only network/HTTP failures reach callers,
so they can be shown as retryable notifications.
"""


class DataSourceError(Exception):
    """An external data source could not be reached or answered badly."""


class MapDataFetchError(DataSourceError):
    """Overpass (map data) request failed after retries."""


class GeocodingError(DataSourceError):
    """Nominatim (place search) request failed after retries."""
