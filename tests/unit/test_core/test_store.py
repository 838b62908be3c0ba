import pytest
from datetime import datetime, timezone

from core.models import BoundingBox, Building, Coordinate, MapData, Place, SunState
from core.settings import ShadeSettings
from core.store import (
    DEFAULT_MAP_CENTER,
    SLIDER_MAX_STEP,
    ShadeStore,
    slider_step_for,
    time_for_slider_step,
)
from shapely.geometry import Polygon

VIEWPORT = BoundingBox(43.85, 18.40, 43.86, 18.42)
MIDNIGHT = datetime(2025, 6, 21, 22, 30, tzinfo=timezone.utc)


def place(place_id, lat, lng, name="Cafe"):
    return Place(id=place_id, kind="node", name=name, center=Coordinate(lat, lng))


def building(building_id, lat, lng, size=0.0001):
    return Building(
        id=building_id,
        footprint=Polygon([(lng, lat), (lng + size, lat), (lng + size, lat + size), (lng, lat + size)]),
        height=10,
    )


@pytest.fixture
def store():
    return ShadeStore(settings=ShadeSettings(), clock=lambda: MIDNIGHT)


def test_merge_deduplicates_by_id(store):
    first = MapData(places=(place("node/1", 43.855, 18.41),), buildings=(building("way/1", 43.855, 18.41),))
    renamed = MapData(places=(place("node/1", 43.855, 18.41, name="Renamed"),))

    store.merge_fetched(first, VIEWPORT)
    store.merge_fetched(first, VIEWPORT)
    assert len(store.all_places) == 1
    assert len(store.all_buildings) == 1

    store.merge_fetched(renamed, VIEWPORT)
    assert [p.name for p in store.all_places] == ["Renamed"]
    assert len(store.fetch_history) == 3


def test_empty_merge_still_marks_bbox_fetched(store):
    store.merge_fetched(MapData(), VIEWPORT)
    assert store.fetch_history == [VIEWPORT]
    assert store.all_places == []


def test_reset_for_location_clears_everything(store):
    store.merge_fetched(MapData(places=(place("node/1", 43.855, 18.41),)), VIEWPORT)
    store.recompute()
    generation = store.history_generation

    center = Coordinate(45.0, 15.0)
    bbox = BoundingBox(44.99, 14.99, 45.01, 15.01)
    store.reset_for_location(center, bbox, 14)

    assert store.all_places == []
    assert store.all_buildings == []
    assert store.fetch_history == []
    assert store.processed_places == []
    assert store.history_generation == generation + 1
    assert store.map_center == center
    assert store.map_zoom == 14
    assert store.viewport == bbox

    store.clear_location()
    assert store.map_center == DEFAULT_MAP_CENTER
    assert store.viewport is None


def test_visible_entities_follow_viewport(store):
    inside = place("node/1", 43.855, 18.41)
    outside = place("node/2", 43.90, 18.41)
    no_center = Place(id="node/3", kind="node", name="Lost")
    near = building("way/1", 43.855, 18.41)
    far = building("way/2", 43.95, 18.50)
    store.merge_fetched(MapData(places=(inside, outside, no_center), buildings=(near, far)), VIEWPORT)

    assert store.visible_places() == []  # no viewport yet
    store.set_viewport(VIEWPORT)
    assert store.visible_places() == [inside]
    assert store.visible_buildings() == [near]


def test_zoom_out_clears_history(store):
    store.merge_fetched(MapData(), VIEWPORT)
    generation = store.history_generation

    assert store.set_map_view(store.map_center, 15) is True
    assert store.fetch_history == [VIEWPORT]

    assert store.set_map_view(store.map_center, 12) is True
    assert store.fetch_history == []
    assert store.history_generation == generation + 1


def test_small_pan_is_not_a_change(store):
    center = store.map_center
    nudged = Coordinate(center.lat + 1e-7, center.lng - 1e-7)
    assert store.set_map_view(nudged, store.map_zoom) is False
    assert store.set_map_view(Coordinate(center.lat + 0.001, center.lng), store.map_zoom) is True


def test_map_moved_flag(store):
    store.set_map_view(Coordinate(43.86, 18.42), 15)
    assert store.has_map_moved is False  # nothing queried yet

    store.set_viewport(VIEWPORT)
    store.set_map_view(Coordinate(43.87, 18.42), 15)
    assert store.has_map_moved is True

    store.set_viewport(VIEWPORT)
    assert store.has_map_moved is False


def test_recompute_at_night_marks_everything_shade(store):
    store.set_viewport(VIEWPORT)
    store.merge_fetched(MapData(places=(place("node/1", 43.855, 18.41),)), VIEWPORT)

    assert store.sun_position() is None
    result = store.recompute()
    assert [p.sun_state for p in result] == [SunState.IN_SHADE]
    assert store.all_places[0].sun_state is SunState.UNKNOWN


def test_recompute_with_sun_up_and_no_buildings(store):
    store.set_viewport(VIEWPORT)
    store.merge_fetched(MapData(places=(place("node/1", 43.855, 18.41),)), VIEWPORT)
    store.set_manual_time(datetime(2025, 6, 21, 10, 47, tzinfo=timezone.utc))

    assert store.is_time_manual
    assert [p.sun_state for p in store.recompute()] == [SunState.IN_SUN]

    store.resume_live_time()
    assert store.current_time == MIDNIGHT


def test_sun_filter_validation(store):
    store.set_sun_filter("shade")
    assert store.sun_filter == "shade"
    with pytest.raises(ValueError):
        store.set_sun_filter("dusk")


def test_bookmarks(store):
    store.merge_fetched(MapData(places=(place("node/1", 43.855, 18.41),)), VIEWPORT)
    store.add_bookmark("node/1")
    store.add_bookmark("node/1")
    store.add_bookmark("node/404")

    assert store.bookmarks == ["node/1", "node/404"]
    assert store.is_bookmarked("node/1")
    assert [p.id for p in store.bookmarked_places()] == ["node/1"]

    store.remove_bookmark("node/1")
    assert not store.is_bookmarked("node/1")


def test_slider_steps():
    noon = datetime(2025, 6, 21, 12, 7, tzinfo=timezone.utc)
    assert slider_step_for(noon) == 48
    assert time_for_slider_step(48, noon) == datetime(2025, 6, 21, 12, 0, tzinfo=timezone.utc)
    assert time_for_slider_step(SLIDER_MAX_STEP + 10, noon).hour == 23
    assert time_for_slider_step(SLIDER_MAX_STEP + 10, noon).minute == 45
    assert time_for_slider_step(-3, noon).hour == 0


def test_set_slider_step_pins_time(store):
    when = store.set_slider_step(40)
    assert store.is_time_manual
    assert when == datetime(2025, 6, 21, 10, 0, tzinfo=timezone.utc)
