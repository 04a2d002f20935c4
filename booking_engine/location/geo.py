"""
Great-circle radius matching and serviceable-region containment.

Pure geometry, no I/O apart from the optional one-off load of the
serviceable region boundaries from a JSON file.
"""

import json
import logging
import math
from pathlib import Path
from typing import Iterable, Optional

from pydantic import TypeAdapter
from shapely.geometry import Point, Polygon

from booking_engine.config import settings
from booking_engine.schemas.catalog_schema import ServiceableRegion

logger = logging.getLogger(__name__)

_REGIONS_ADAPTER = TypeAdapter(list[ServiceableRegion])


def is_valid_coordinate(lat: Optional[float], lng: Optional[float]) -> bool:
    """Reject missing, NaN and out-of-range coordinates before matching."""
    if lat is None or lng is None:
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return settings.geo.earth_radius_km * c


def is_within_radius(
    center_lat: float, center_lng: float, point_lat: float, point_lng: float, radius_km: float
) -> bool:
    """True iff the point lies no further than ``radius_km`` from the center."""
    return haversine_km(center_lat, center_lng, point_lat, point_lng) <= radius_km


def region_polygon(region: ServiceableRegion) -> Optional[Polygon]:
    """Shapely polygon in (lng, lat) order, or None for a degenerate boundary."""
    if len(region.vertices) < 3:
        logger.warning("Region '%s' has fewer than 3 vertices; ignored", region.name)
        return None
    return Polygon([(lng, lat) for lat, lng in region.vertices])


def load_regions(path: str) -> list[ServiceableRegion]:
    """Load serviceable region polygons from a JSON file."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    regions = _REGIONS_ADAPTER.validate_python(raw)
    logger.info("Loaded %d serviceable region(s) from %s", len(regions), path)
    return regions


class GeoMatcher:
    """Point-in-radius and point-in-serviceable-region tests.

    The serviceable regions are a broader superset of the individual
    Locations and gate services flagged as available everywhere.
    """

    def __init__(self, regions: Optional[Iterable[ServiceableRegion]] = None) -> None:
        if regions is None:
            path = settings.geo.serviceable_regions_file
            regions = load_regions(path) if path else []
        self._regions = list(regions)
        self._polygons: list[tuple[ServiceableRegion, Polygon]] = []
        for region in self._regions:
            polygon = region_polygon(region)
            if polygon is not None:
                self._polygons.append((region, polygon))

    @property
    def regions(self) -> list[ServiceableRegion]:
        return list(self._regions)

    def is_within_radius(
        self,
        center_lat: float,
        center_lng: float,
        point_lat: float,
        point_lng: float,
        radius_km: float,
    ) -> bool:
        return is_within_radius(center_lat, center_lng, point_lat, point_lng, radius_km)

    def distance_km(self, lat1: float, lng1: float, lat2: float, lng2: float) -> float:
        return haversine_km(lat1, lng1, lat2, lng2)

    def is_in_serviceable_region(self, lat: float, lng: float) -> bool:
        """Boundary points count as inside."""
        point = Point(lng, lat)
        for region, polygon in self._polygons:
            if polygon.covers(point):
                logger.debug("Point (%s, %s) inside region '%s'", lat, lng, region.name)
                return True
        return False
