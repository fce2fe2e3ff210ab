# Analyzer package - CRO analysis engine
from .prompts import build_analysis_prompt
from .pipeline import MultiStageAnalyzer, RecommendationPipeline, enrich_with_roi

__all__ = [
    "build_analysis_prompt",
    "MultiStageAnalyzer",
    "RecommendationPipeline",
    "enrich_with_roi",
]
