"""Heavy-vehicle compliance service exports."""

from .alternatives import generate_alternatives
from .staffing import select_best_staffing_plan
from .validator import get_compliance_summary, is_heavy_vehicle_trip_compliant, validate_heavy_vehicle_compliance

__all__ = [
    "generate_alternatives",
    "get_compliance_summary",
    "is_heavy_vehicle_trip_compliant",
    "select_best_staffing_plan",
    "validate_heavy_vehicle_compliance",
]
