# Parsing subpackage - JSON extraction and recommendation normalization
from .json import (
    extract_json_text,
    parse_json_response,
    parse_recommendation_payload,
    repair_and_parse_json,
    salvage_fragments,
)
from .normalizer import normalize_recommendation, normalize_recommendations

__all__ = [
    "extract_json_text",
    "parse_json_response",
    "parse_recommendation_payload",
    "repair_and_parse_json",
    "salvage_fragments",
    "normalize_recommendation",
    "normalize_recommendations",
]
