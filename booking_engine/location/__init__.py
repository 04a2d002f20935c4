from booking_engine.location.feasibility import (
    Everywhere,
    Feasible,
    FeasibilityResolver,
    FeasibilityResult,
    Infeasible,
    Selector,
)
from booking_engine.location.geo import GeoMatcher, haversine_km, is_within_radius

__all__ = [
    "Everywhere",
    "Feasible",
    "FeasibilityResolver",
    "FeasibilityResult",
    "GeoMatcher",
    "Infeasible",
    "Selector",
    "haversine_km",
    "is_within_radius",
]
