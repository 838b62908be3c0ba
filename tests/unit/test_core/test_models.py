import pytest
from shapely.geometry import MultiPolygon, Polygon

from core.models import BoundingBox, Building, Coordinate, MapData, Place, SunPosition, SunState


def test_coordinate_axis_order():
    """Shapely wants (lon, lat); Coordinate stores lat first."""
    c = Coordinate(lat=43.8, lng=18.4)
    assert c.to_lon_lat() == (18.4, 43.8)
    assert Coordinate.from_lon_lat((18.4, 43.8)) == c


def test_bounding_box_order_and_validation():
    bbox = BoundingBox(south=43.85, west=18.40, north=43.86, east=18.42)
    assert tuple(bbox) == (43.85, 18.40, 43.86, 18.42)
    assert bbox.to_overpass() == "43.85,18.4,43.86,18.42"
    assert bbox.center.lat == pytest.approx(43.855)
    assert bbox.contains(Coordinate(43.85, 18.40))
    assert not bbox.contains(Coordinate(43.87, 18.41))

    with pytest.raises(ValueError):
        BoundingBox(south=44.0, west=18.4, north=43.0, east=18.5)
    with pytest.raises(ValueError):
        BoundingBox(south=43.0, west=18.5, north=44.0, east=18.4)


def test_bounding_box_from_nominatim():
    """Nominatim sends [minlat, maxlat, minlon, maxlon] as strings."""
    bbox = BoundingBox.from_nominatim(["43.80", "43.90", "18.30", "18.50"])
    assert bbox == BoundingBox(43.80, 18.30, 43.90, 18.50)


def test_sun_position_is_up():
    assert SunPosition(0.0, 0.2).is_up
    assert not SunPosition(0.0, 0.0).is_up


def test_building_defaults():
    square = Polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    building = Building(id="way/1", footprint=square)
    assert building.centroid == Coordinate(lat=0.5, lng=0.5)
    assert building.effective_height() == 10.0
    assert building.effective_height(default_height=6.0) == 6.0
    assert Building(id="way/2", footprint=square, levels=3).effective_height() == pytest.approx(10.5)
    assert Building(id="way/3", footprint=square, height=22, levels=3).effective_height() == 22
    assert len(building.outer_ring()) == 5


def test_building_outer_ring_of_multipolygon():
    first = Polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    second = Polygon([(5, 5), (6, 5), (6, 6), (5, 6)])
    building = Building(id="relation/1", footprint=MultiPolygon([first, second]))
    assert building.outer_ring() == list(first.exterior.coords)
    assert Building(id="way/9", footprint=Polygon()).outer_ring() == []


def test_place_labels():
    place = Place(
        id="node/1",
        kind="node",
        name="Kafana",
        tags={
            "amenity": "fast_food",
            "cuisine": "burger;kebab",
            "addr:street": "Ferhadija",
            "addr:housenumber": "12",
            "addr:city": "Sarajevo",
            "addr:postcode": "71000",
        },
    )
    assert place.amenity_label == "fast food"
    assert place.cuisine_label == "burger, kebab"
    assert place.address_line == "Ferhadija 12, Sarajevo 71000"
    assert Place(id="node/2", kind="node").address_line == ""


def test_place_sun_state():
    place = Place(id="node/1", kind="node")
    assert place.sun_state is SunState.UNKNOWN
    assert place.is_in_sun is None
    assert Place(id="node/1", kind="node", sun_state=SunState.IN_SUN).is_in_sun is True
    assert Place(id="node/1", kind="node", sun_state=SunState.IN_SHADE).is_in_sun is False


def test_map_data_is_empty():
    assert MapData().is_empty
    assert not MapData(places=(Place(id="node/1", kind="node"),)).is_empty
