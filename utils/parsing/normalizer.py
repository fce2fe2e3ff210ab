"""
Recommendation normalizer.

Turns a loosely-typed recommendation payload (from Claude, or a stored
record) into a fully-populated Recommendation. Every field is optional on
the way in and may have the wrong type.
"""

import math
import re
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError

from models import RawRecommendation, Recommendation, RecommendationStatus, ROICalculation

DEFAULT_TITLE = "Untitled Recommendation"
DEFAULT_CATEGORY = "general"
DEFAULT_SCORE = 3
DEFAULT_ESTIMATE = "TBD"

LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")

TIMESTAMP_ADAPTER = TypeAdapter(datetime)

RecommendationInput = Union[Mapping[str, Any], RawRecommendation, Recommendation]


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else default


def parse_score(value: Any) -> int:
    """
    Integer-prefix parse of a 1-5 score.

    "4", 4.7 and "4 (high)" all give 4. Missing, unparseable and zero
    values fall back to 3; the result is clamped to 1..5.
    """
    parsed = 0
    if isinstance(value, bool):
        parsed = 0
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        parsed = int(value) if math.isfinite(value) else 0
    elif isinstance(value, str):
        match = LEADING_INT_PATTERN.match(value)
        parsed = int(match.group(1)) if match else 0

    if parsed == 0:
        parsed = DEFAULT_SCORE

    return max(1, min(5, parsed))


def parse_implementation(value: Any) -> List[str]:
    """
    Canonical list of non-blank steps from an array or newline-joined string.

    Steps keep their own whitespace; step length feeds the validator's
    actionability check and step-detail bonus.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        steps = [str(step) for step in value if step is not None]
    else:
        steps = str(value).split("\n")
    return [step for step in steps if step.strip()]


def _quality(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(0, min(100, int(value)))


def _status(value: Any) -> RecommendationStatus:
    try:
        return RecommendationStatus(value)
    except ValueError:
        return RecommendationStatus.PENDING


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return TIMESTAMP_ADAPTER.validate_python(value)
    except ValidationError:
        return None


def _roi(value: Any) -> Optional[ROICalculation]:
    if isinstance(value, ROICalculation):
        return value
    if isinstance(value, Mapping):
        try:
            return ROICalculation.model_validate(value)
        except ValueError:
            return None
    return None


def normalize_recommendation(raw: RecommendationInput) -> Recommendation:
    """
    Map a raw recommendation into a typed Recommendation with defaults.

    Priority is never read from the input; it is derived from the
    normalized impact and effort scores. Normalizing the output again
    yields an identical record.
    """
    if isinstance(raw, Recommendation):
        payload = raw.model_dump(by_alias=True)
    elif isinstance(raw, RawRecommendation):
        payload = raw.payload
    else:
        payload = raw

    status = _status(payload.get("status"))
    implemented_at = _timestamp(_first(payload, "implementedAt", "implemented_at"))
    if status != RecommendationStatus.IMPLEMENTED:
        implemented_at = None

    dependencies = payload.get("dependencies")
    order = _first(payload, "implementationOrder", "implementation_order")
    confidence = payload.get("confidence")

    return Recommendation.model_validate(
        {
            "id": _text(payload.get("id")),
            "title": _text(payload.get("title"), DEFAULT_TITLE),
            "description": _text(payload.get("description")),
            "category": _text(payload.get("category"), DEFAULT_CATEGORY),
            "reasoning": _text(payload.get("reasoning")),
            "impact_score": parse_score(_first(payload, "impactScore", "impact_score", "impact")),
            "effort_score": parse_score(_first(payload, "effortScore", "effort_score", "effort")),
            "implementation": parse_implementation(payload.get("implementation")),
            "code_snippet": _text(_first(payload, "codeSnippet", "code_snippet")) or None,
            "estimated_uplift": _text(
                _first(payload, "estimatedUplift", "estimated_uplift"), DEFAULT_ESTIMATE
            ),
            "estimated_roi": _text(
                _first(payload, "estimatedROI", "estimated_roi"), DEFAULT_ESTIMATE
            ),
            "quality_score": _quality(_first(payload, "qualityScore", "quality_score")),
            "status": status,
            "implemented_at": implemented_at,
            "warning": _text(payload.get("warning")) or None,
            "roi": _roi(payload.get("roi")),
            "confidence": _quality(confidence),
            "dependencies": [str(d) for d in dependencies] if isinstance(dependencies, list) else [],
            "benchmark_comparison": _text(
                _first(payload, "benchmarkComparison", "benchmark_comparison")
            ) or None,
            "implementation_order": order if isinstance(order, int) and not isinstance(order, bool) else None,
        }
    )


def normalize_recommendations(items: Iterable[Any]) -> List[Recommendation]:
    """Normalize a list of raw payloads, dropping anything that is not an object"""
    return [
        normalize_recommendation(item)
        for item in items
        if isinstance(item, (Mapping, RawRecommendation, Recommendation))
    ]
