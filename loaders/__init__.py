"""
Data loaders for the sun/shade spot finder.

Includes:
- Place-name search (Nominatim)
- Amenities and building footprints (OpenStreetMap Overpass)
- Overpass response parsing into Place/Building entities
"""

from loaders.overpass import OverpassLoader, OverpassCache, get_overpass_loader
from loaders.geocoder import Geocoder, GeocodingCache, get_geocoder
from loaders.parser import parse_overpass_elements

__all__ = [
    "OverpassLoader",
    "OverpassCache",
    "get_overpass_loader",
    "Geocoder",
    "GeocodingCache",
    "get_geocoder",
    "parse_overpass_elements",
]
