"""
Find sunny and shady spots around a place from the command line.

    python main.py "Sarajevo" --time 2025-06-21T16:00:00+02:00 --filter sun
"""

import argparse
import logging
from datetime import datetime

from core import DataSourceError, ExplorationSession, SunState, get_settings
from loaders import Geocoder, OverpassLoader

log = logging.getLogger("shadespot")

STATE_SYMBOLS = {
    SunState.IN_SUN: "SUN  ",
    SunState.IN_SHADE: "SHADE",
    SunState.UNKNOWN: "?    ",
}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Sunny or shady? Classify cafes and bars around a place")
    parser.add_argument("location", help="Town, city or district to search for")
    parser.add_argument("--time", type=datetime.fromisoformat, help="ISO timestamp to evaluate (default: now)")
    parser.add_argument("--filter", choices=["all", "sun", "shade"], default="all", help="Only show sunny or shady places")
    parser.add_argument("--name", default="", help="Only show places whose name contains this")
    parser.add_argument("--snap-to-edge", action="store_true", help="Test points inside buildings at the nearest wall")
    parser.add_argument("--max-fetches", type=int, default=4, help="Maximum map-data requests")
    parser.add_argument("--verbose", action="store_true")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    settings = get_settings()
    session = ExplorationSession(OverpassLoader(settings), Geocoder(settings), settings=settings)

    try:
        candidates = session.search(args.location)
    except DataSourceError as e:
        print(f"Search failed, try again: {e}")
        return 1
    if not candidates:
        print(f"No results for '{args.location}'")
        return 1

    location = candidates[0]
    print(f"Location: {location.display_name}")
    session.select_location(location)

    store = session.store
    if args.time:
        store.set_manual_time(args.time)
    store.snap_to_edge = args.snap_to_edge
    store.set_sun_filter(args.filter)
    store.name_query = args.name

    for outcome in session.fill_viewport(max_fetches=args.max_fetches):
        if outcome.message:
            print(f"   -> {outcome.message}")

    sun = store.sun_position()
    if sun is None:
        print(f"Sun is down at {store.current_time.isoformat()}")
    else:
        print(f"Sun at {store.current_time.isoformat()}: altitude {sun.altitude:.3f} rad, azimuth {sun.azimuth:.3f} rad")

    places = store.filtered_places()
    print(f"\n{len(places)} places ({len(store.processed_places)} before filters)\n")
    for place in sorted(places, key=lambda p: (p.name or "").lower()):
        label = place.amenity_label
        print(f" {STATE_SYMBOLS[place.sun_state]} {place.name} ({label})" + (f" - {place.address_line}" if place.address_line else ""))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
