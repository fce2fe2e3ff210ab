# ROI subpackage - revenue impact estimation from store metrics
from .calculator import (
    calculate_realistic_roi,
    calculate_total_roi,
    format_roi_for_display,
    get_industry_benchmark,
    validate_store_metrics,
)

__all__ = [
    "calculate_realistic_roi",
    "calculate_total_roi",
    "format_roi_for_display",
    "get_industry_benchmark",
    "validate_store_metrics",
]
