# Utils package - Utility modules organized by domain
# Import from subpackages for convenience

from .errors import (
    EmptyRecommendationSetError,
    InvalidMetricsError,
    LLMServiceError,
    MalformedResponseError,
    RecommendationPipelineError,
)
from .parsing.json import parse_recommendation_payload
from .parsing.normalizer import normalize_recommendation
from .roi.calculator import calculate_realistic_roi, calculate_total_roi

__all__ = [
    "EmptyRecommendationSetError",
    "InvalidMetricsError",
    "LLMServiceError",
    "MalformedResponseError",
    "RecommendationPipelineError",
    "parse_recommendation_payload",
    "normalize_recommendation",
    "calculate_realistic_roi",
    "calculate_total_roi",
]
