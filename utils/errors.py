"""
Error types for the recommendation pipeline.

MalformedResponseError and EmptyRecommendationSetError are deliberately
distinct: the first means the LLM response was unusable, the second means
it parsed fine but nothing worth showing survived (retry with new prompting).
"""

from typing import Any, List, Optional


class RecommendationPipelineError(Exception):
    """Base class for all pipeline errors"""

    pass


class MalformedResponseError(RecommendationPipelineError, ValueError):
    """Raised when no JSON object with a title can be recovered from LLM output"""

    def __init__(self, message: str, preview: str = ""):
        super().__init__(message)
        self.preview = preview


class EmptyRecommendationSetError(RecommendationPipelineError):
    """
    Raised when parsing or validation leaves zero recommendations.

    stage is one of "parse", "validation" or "roi". For the validation stage,
    candidates holds the normalized recommendations that were filtered out.
    """

    def __init__(
        self,
        message: str,
        stage: str = "parse",
        candidates: Optional[List[Any]] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.candidates = candidates or []


class InvalidMetricsError(RecommendationPipelineError, ValueError):
    """Raised when store metrics would produce NaN/Infinity or nonsense ROI"""

    pass


class LLMServiceError(RecommendationPipelineError, RuntimeError):
    """Raised when the Anthropic API call fails after retries"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
