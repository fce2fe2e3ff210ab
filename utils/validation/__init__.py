"""
Validation Package for the Conversion Advisor

Post-parse quality control for Claude's recommendations.

Modules:
- recommendation_validator: specificity/actionability filter and quality scoring
- conflicts: conflict-group warnings for overlapping recommendations
"""

from .recommendation_validator import RecommendationValidator, get_validation_stats
from .conflicts import ConflictAnnotator, conflict_check

__all__ = [
    "RecommendationValidator",
    "get_validation_stats",
    "ConflictAnnotator",
    "conflict_check",
]
