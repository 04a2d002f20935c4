"""
Resolve whether a service/task can be delivered at a customer address.

The result is a tagged union:

    Feasible(location, cost, offer)    matched a Location with its own price
    Everywhere(cost, offer, location)  service-level "available everywhere" override
    Infeasible(message)                no match; booking must be rejected

Usage:
    resolver = FeasibilityResolver(store, GeoMatcher())
    result = resolver.resolve(address_id, Selector(service_id=1, category_id=1,
                                                   subcategory_id=2, task_id=7))
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from booking_engine.errors import InvalidService, NotFound
from booking_engine.location.geo import GeoMatcher, is_valid_coordinate
from booking_engine.schemas.catalog_schema import Geolocation, Location, Offer, Service
from booking_engine.storage.repository import BookingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selector:
    """What is being booked. ``task_id=None`` means an inspection booking."""
    service_id: int
    category_id: int
    subcategory_id: int
    task_id: Optional[int] = None


@dataclass(frozen=True)
class Feasible:
    location: Location
    cost: Decimal
    offer: Optional[Offer]


@dataclass(frozen=True)
class Everywhere:
    """Base cost and base offer apply. ``location`` is set when a Location also matched."""
    cost: Decimal
    offer: Optional[Offer]
    location: Optional[Location] = None


@dataclass(frozen=True)
class Infeasible:
    message: str


FeasibilityResult = Union[Feasible, Everywhere, Infeasible]


class FeasibilityResolver:
    """Maps an address and a selector to a priced, located result."""

    def __init__(self, repository: BookingRepository, geo: GeoMatcher) -> None:
        self._repo = repository
        self._geo = geo

    def resolve(self, address_id: int, selector: Selector) -> FeasibilityResult:
        address = self._repo.get_address(address_id)
        if address is None:
            raise NotFound(f"Address #{address_id} not found")
        return self.resolve_point(address.geolocation, selector)

    def resolve_point(self, point: Geolocation, selector: Selector) -> FeasibilityResult:
        service = self._repo.get_service(selector.service_id)
        if service is None:
            raise NotFound(f"Service #{selector.service_id} not found")

        unavailable = Infeasible(f"{service.name} is not available at the selected address")
        if not is_valid_coordinate(point.latitude, point.longitude):
            logger.debug("Invalid coordinate (%s, %s)", point.latitude, point.longitude)
            return unavailable

        base_cost, base_offer = self._base_pricing(service, selector)
        candidates = self._matching_locations(point, selector)

        if service.is_available_everywhere:
            if candidates:
                return Everywhere(cost=base_cost, offer=base_offer, location=candidates[0])
            if self._geo.is_in_serviceable_region(point.latitude, point.longitude):
                return Everywhere(cost=base_cost, offer=base_offer)
            return unavailable

        if not candidates:
            return unavailable

        location = candidates[0]
        if selector.task_id is None:
            return Feasible(location=location, cost=base_cost, offer=base_offer)

        task_location = self._repo.get_task_location(selector.task_id, location.id)
        offer = self._repo.get_offer(task_location.offer_id) if task_location.offer_id else None
        return Feasible(location=location, cost=task_location.cost, offer=offer)

    def _base_pricing(self, service: Service, selector: Selector) -> tuple[Decimal, Optional[Offer]]:
        task_id = selector.task_id if selector.task_id is not None else service.inspection_task_id
        if task_id is None:
            raise InvalidService(f"{service.name} has no inspection task")
        task = self._repo.get_task(task_id)
        if task is None:
            raise NotFound(f"Task #{task_id} not found")
        offer = self._repo.get_offer(service.base_offer_id) if service.base_offer_id else None
        return task.base_cost, offer

    def _matching_locations(self, point: Geolocation, selector: Selector) -> list[Location]:
        """Active locations covering the point, nearest first.

        Ties on distance fall back to the smaller radius, then the lower id.
        """
        matches: list[tuple[float, float, int, Location]] = []
        for location in self._repo.list_locations(active_only=True):
            if not self._geo.is_within_radius(
                location.latitude, location.longitude,
                point.latitude, point.longitude, location.radius_km,
            ):
                continue
            if not self._enabled_at(location.id, selector):
                continue
            distance = self._geo.distance_km(
                location.latitude, location.longitude, point.latitude, point.longitude
            )
            matches.append((distance, location.radius_km, location.id, location))

        matches.sort(key=lambda m: (m[0], m[1], m[2]))
        if len(matches) > 1:
            logger.debug(
                "Overlapping locations %s; picked #%d",
                [m[2] for m in matches], matches[0][2],
            )
        return [m[3] for m in matches]

    def _enabled_at(self, location_id: int, selector: Selector) -> bool:
        category_row = self._repo.get_category_location(selector.category_id, location_id)
        if category_row is None or not category_row.active:
            return False
        subcategory_row = self._repo.get_subcategory_location(selector.subcategory_id, location_id)
        if subcategory_row is None or not subcategory_row.active:
            return False
        if selector.task_id is None:
            return True
        task_row = self._repo.get_task_location(selector.task_id, location_id)
        return task_row is not None and task_row.active
