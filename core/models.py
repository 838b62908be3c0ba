"""
Core data models for the sun/shade engine.

Entities are immutable: a classification pass produces new Place records
instead of patching existing ones.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from shapely.geometry import LineString, MultiPolygon, Point, Polygon


FootprintGeometry = Union[Polygon, MultiPolygon]
PlaceGeometry = Union[Point, Polygon, LineString]


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 latitude/longitude pair in degrees."""
    lat: float
    lng: float

    def to_lon_lat(self) -> Tuple[float, float]:
        """Shapely/GeoJSON axis order."""
        return (self.lng, self.lat)

    @classmethod
    def from_lon_lat(cls, position: Sequence[float]) -> "Coordinate":
        return cls(lat=float(position[1]), lng=float(position[0]))


@dataclass(frozen=True)
class BoundingBox:
    """
    Geographic bounding box, ordered (south, west, north, east) in degrees.

    No antimeridian wraparound: west must not exceed east.
    """
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        if self.south > self.north:
            raise ValueError(f"south {self.south} is north of north {self.north}")
        if self.west > self.east:
            raise ValueError(f"west {self.west} is east of east {self.east}")

    def __iter__(self) -> Iterator[float]:
        return iter((self.south, self.west, self.north, self.east))

    @property
    def center(self) -> Coordinate:
        return Coordinate((self.south + self.north) / 2, (self.west + self.east) / 2)

    def contains(self, coordinate: Coordinate) -> bool:
        """Check if a coordinate is inside (or on the edge of) this box."""
        return (self.south <= coordinate.lat <= self.north and
                self.west <= coordinate.lng <= self.east)

    def to_overpass(self) -> str:
        """Overpass QL bbox filter: s,w,n,e."""
        return f"{self.south},{self.west},{self.north},{self.east}"

    @classmethod
    def from_nominatim(cls, boundingbox: Sequence) -> "BoundingBox":
        """Nominatim orders its box as [minlat, maxlat, minlon, maxlon]."""
        return cls(
            south=float(boundingbox[0]),
            west=float(boundingbox[2]),
            north=float(boundingbox[1]),
            east=float(boundingbox[3]),
        )


@dataclass(frozen=True)
class SunPosition:
    """
    Sun position for one place and moment.

    azimuth: radians measured from south, clockwise (west is +pi/2)
    altitude: radians above the horizon; <= 0 means the sun is down
    """
    azimuth: float
    altitude: float

    @property
    def is_up(self) -> bool:
        return self.altitude > 0


class SunState(Enum):
    """Classification of a place at one moment."""
    UNKNOWN = "unknown"
    IN_SUN = "sun"
    IN_SHADE = "shade"


@dataclass(frozen=True)
class Building:
    """
    A building footprint that can cast a shadow.

    height is the explicit height tag in metres, levels the building:levels
    tag. Only the outer ring of the first polygon is used for shadows.
    """
    id: str
    footprint: FootprintGeometry
    height: Optional[float] = None
    levels: Optional[float] = None
    centroid: Optional[Coordinate] = None

    def __post_init__(self):
        if self.centroid is None and not self.footprint.is_empty:
            c = self.footprint.centroid
            object.__setattr__(self, "centroid", Coordinate(lat=c.y, lng=c.x))

    def effective_height(self, default_height: float = 10.0, meters_per_level: float = 3.5) -> float:
        """Explicit height, else levels * storey height, else the default."""
        if self.height is not None:
            return self.height
        if self.levels is not None:
            return self.levels * meters_per_level
        return default_height

    def outer_ring(self) -> List[Tuple[float, float]]:
        """(lon, lat) vertices of the outer ring of the first polygon."""
        polygon = self.footprint
        if isinstance(polygon, MultiPolygon):
            if polygon.is_empty:
                return []
            polygon = polygon.geoms[0]
        if polygon.is_empty:
            return []
        return [(x, y) for x, y in polygon.exterior.coords]


@dataclass(frozen=True)
class Place:
    """
    A point of interest (cafe, bar, restaurant ...).

    relevant_shadow_point and sun_state are derived and are replaced
    wholesale on every classification pass.
    """
    id: str
    kind: str  # "node", "way" or "relation"
    name: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    center: Optional[Coordinate] = None
    geometry: Optional[PlaceGeometry] = None
    is_building_outline: bool = False
    relevant_shadow_point: Optional[Coordinate] = None
    sun_state: SunState = SunState.UNKNOWN

    @property
    def is_in_sun(self) -> Optional[bool]:
        """True/False once classified, None while unknown."""
        if self.sun_state is SunState.UNKNOWN:
            return None
        return self.sun_state is SunState.IN_SUN

    @property
    def amenity_label(self) -> str:
        return self.tags.get("amenity", "").replace("_", " ")

    @property
    def cuisine_label(self) -> str:
        return self.tags.get("cuisine", "").replace("_", " ").replace(";", ", ")

    @property
    def address_line(self) -> str:
        """Street, number, city and postcode joined the way a card shows them."""
        street = " ".join(
            p for p in (self.tags.get("addr:street"), self.tags.get("addr:housenumber")) if p
        )
        city = " ".join(
            p for p in (self.tags.get("addr:city"), self.tags.get("addr:postcode")) if p
        )
        return ", ".join(p for p in (street, city) if p)


@dataclass(frozen=True)
class MapData:
    """Places and buildings parsed from one map-data response."""
    places: Tuple[Place, ...] = ()
    buildings: Tuple[Building, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.places and not self.buildings


@dataclass(frozen=True)
class LocationCandidate:
    """One result of a place-name search."""
    display_name: str
    coordinate: Coordinate
    bounding_box: Optional[BoundingBox] = None
    place_type: str = "unknown"
