"""
Sun alerts for bookmarked places.

For every bookmarked place that is in shade right now, look ahead in small
steps and report when it is expected to come into the sun. Each place is
evaluated with its own sun position and only nearby buildings.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence
import logging

from core.classifier import is_location_in_sun, relevant_shadow_point
from core.geo import distance_m
from core.models import Building, Place
from core.settings import ShadeSettings, get_settings
from core.shadow import calculate_shadows
from core.sun import sun_position

log = logging.getLogger(__name__)


@dataclass
class SunAlert:
    """A bookmarked place expected to be sunny soon."""
    place_id: str
    place_name: str
    predicted_time: datetime
    minutes_until: int

    @property
    def message(self) -> str:
        return f"{self.place_name} is expected to be in the sun in about {self.minutes_until} minutes!"


class SunAlertPlanner:
    """
    Predicts shade-to-sun transitions for bookmarked places.

    Remembers alerts already issued so the same transition is reported
    only once.
    """

    def __init__(self, settings: Optional[ShadeSettings] = None):
        self.settings = settings or get_settings()
        self._notified: List[SunAlert] = []

    def _nearby_buildings(self, place: Place, buildings: Sequence[Building]) -> List[Building]:
        nearby = []
        for building in buildings:
            if building.centroid is None:
                continue
            try:
                if distance_m(place.center, building.centroid) < self.settings.alert_building_radius_m:
                    nearby.append(building)
            except Exception as e:
                log.debug(f"Distance to building {building.id} failed: {e}")
        return nearby

    def is_in_sun_at(self, place: Place, buildings: Sequence[Building], when: datetime) -> bool:
        """Sun state of one place at one moment, using its own sun position."""
        sun = sun_position(when, place.center.lat, place.center.lng)
        if sun.altitude <= 0:
            return False
        if not buildings:
            return True
        shadows = calculate_shadows(buildings, sun, self.settings)
        point = relevant_shadow_point(place, buildings)
        return is_location_in_sun(point, shadows)

    def _already_notified(self, place_id: str, now: datetime) -> bool:
        return any(a.place_id == place_id and now < a.predicted_time for a in self._notified)

    def check(
        self,
        now: datetime,
        bookmarks: Iterable[str],
        places: Iterable[Place],
        buildings: Sequence[Building]
    ) -> List[SunAlert]:
        """
        New alerts for bookmarked places coming into the sun soon.

        Args:
            now: current moment (timezone-aware, or naive UTC)
            bookmarks: bookmarked place ids
            places: every known place
            buildings: every known building

        Returns:
            Alerts not issued before, at most one per place
        """
        horizon = timedelta(minutes=self.settings.alert_horizon_min)
        self._notified = [a for a in self._notified if now < a.predicted_time + horizon * 2]

        by_id = {p.id: p for p in places}
        alerts = []
        for place_id in bookmarks:
            place = by_id.get(place_id)
            if place is None or place.center is None:
                continue
            if self._already_notified(place_id, now):
                continue

            nearby = self._nearby_buildings(place, buildings)
            if self.is_in_sun_at(place, nearby, now):
                continue

            step = self.settings.alert_step_min
            for offset in range(step, self.settings.alert_horizon_min + 1, step):
                future = now + timedelta(minutes=offset)
                if not self.is_in_sun_at(place, nearby, future):
                    continue
                if offset <= self.settings.alert_lead_min:
                    alert = SunAlert(
                        place_id=place.id,
                        place_name=place.name or "A bookmarked spot",
                        predicted_time=future,
                        minutes_until=offset,
                    )
                    alerts.append(alert)
                    self._notified.append(alert)
                    log.info(alert.message)
                break
        return alerts
