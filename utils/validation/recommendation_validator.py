"""
Recommendation Validator Module for the Conversion Advisor

Filters out generic/weak recommendations from Claude and ranks the rest.

1. Reject vague, non-actionable recommendations
2. Require specific measurements (px, %, $, colors, CSS properties)
3. Repair effort scores that contradict the implementation size
4. Add a 0-100 quality score and sort by it
"""

import logging
import math
import re
from typing import List, Sequence

from models import Recommendation, ValidationStats

logger = logging.getLogger(__name__)


def implementation_steps(rec: Recommendation) -> List[str]:
    """Non-blank implementation steps"""
    return [step for step in rec.implementation if step.strip()]


class RecommendationValidator:
    """
    Rule-based quality gate for Claude's CRO recommendations.

    Never raises: a recommendation that fails a rule is dropped and logged.
    """

    # Phrases that indicate a low-quality recommendation
    GENERIC_PHRASES = [
        "improve user experience",
        "enhance ux",
        "optimize website",
        "better design",
        "improve layout",
        "make it better",
        "increase engagement",
        "boost conversions",  # without specifics
        "improve performance",  # without metrics
        "enhance ui",
        "optimize the",
        "consider adding",
        "might help",
        "could improve",
        "general optimization",
    ]

    # "Improve mobile", "Optimize checkout", "Add feature"
    VAGUE_TITLE_PATTERN = re.compile(
        r"^(improve|optimize|enhance|better|fix|add)\s+\w+\Z", re.IGNORECASE | re.ASCII
    )

    # Patterns that indicate a concrete, measurable recommendation
    SPECIFICITY_MARKERS = [
        re.compile(r"\d+px", re.IGNORECASE),  # pixel measurements
        re.compile(r"\d+%", re.IGNORECASE),  # percentages
        re.compile(r"#[0-9a-f]{3,6}", re.IGNORECASE),  # color codes
        re.compile(r"\$\d+", re.IGNORECASE),  # dollar amounts
        re.compile(r"\d+\s*(second|minute|hour|ms)", re.IGNORECASE),  # time
        re.compile(r"(above|below|left|right|top|bottom)\s+the\s+fold", re.IGNORECASE),
        re.compile(r"(increase|decrease|change|move|reposition)\s+\w+\s+(by|to)\s+\d+", re.IGNORECASE),
        re.compile(r"from\s+\d+.*to\s+\d+", re.IGNORECASE),  # range changes
        re.compile(r"currently\s+\d+", re.IGNORECASE),
        re.compile(r"rgb\(|rgba\(", re.IGNORECASE),
        re.compile(r"font-size|margin|padding|width|height", re.IGNORECASE),
    ]

    ACTION_VERBS = [
        "edit",
        "add",
        "change",
        "modify",
        "create",
        "update",
        "remove",
        "replace",
        "move",
        "set",
        "configure",
    ]

    CRITICAL_CATEGORIES = {"checkout", "cart", "hero"}

    # A title this long is detailed enough without a specificity marker
    DETAILED_TITLE_LENGTH = 60
    MIN_STEP_LENGTH = 15
    SUBSTANTIAL_CODE_LENGTH = 50

    def validate_recommendations(
        self, recommendations: Sequence[Recommendation]
    ) -> List[Recommendation]:
        """
        Filter, repair and score a list of recommendations.

        Args:
            recommendations: Normalized recommendations

        Returns:
            Recommendations that passed, with corrected effort and a
            quality_score, sorted by quality (stable, descending)
        """
        logger.info(f"🔍 Validating {len(recommendations)} recommendations...")

        passed = []
        for index, rec in enumerate(recommendations):
            if self.is_specific(rec) and self.is_actionable(rec):
                passed.append(self.add_quality_score(self.correct_effort_score(rec)))
            else:
                logger.info(f"❌ Filtered out recommendation {index + 1}: {rec.title[:50]}...")

        validated = sorted(passed, key=lambda rec: rec.quality_score, reverse=True)

        logger.info(
            f"📊 Validation complete: {len(validated)}/{len(recommendations)} passed"
        )
        return validated

    def has_specificity_marker(self, text: str) -> bool:
        return any(marker.search(text) for marker in self.SPECIFICITY_MARKERS)

    def is_specific(self, rec: Recommendation) -> bool:
        """Check that the recommendation is concrete, not generic advice"""
        title = rec.title or ""
        description = rec.description or ""
        combined = f"{title} {description}".lower()

        for phrase in self.GENERIC_PHRASES:
            if phrase in combined:
                logger.debug(f"Rejected generic phrase: '{phrase}' in '{title}'")
                return False

        if self.VAGUE_TITLE_PATTERN.match(title):
            logger.debug(f"Rejected vague title: '{title}'")
            return False

        if self.has_specificity_marker(title) or self.has_specificity_marker(description):
            return True

        if len(title) >= self.DETAILED_TITLE_LENGTH:
            return True

        logger.debug(f"Rejected non-specific: '{title}'")
        return False

    def is_actionable(self, rec: Recommendation) -> bool:
        """Check that the recommendation has at least one detailed action step"""
        steps = implementation_steps(rec)

        if not steps:
            logger.debug(f"Rejected no steps: '{rec.title}'")
            return False

        detailed_steps = [
            step
            for step in steps
            if len(step) > self.MIN_STEP_LENGTH
            and any(verb in step.lower() for verb in self.ACTION_VERBS)
        ]

        if not detailed_steps:
            logger.debug(f"Rejected vague steps: '{rec.title}' (0 detailed steps)")
            return False

        return True

    def correct_effort_score(self, rec: Recommendation) -> Recommendation:
        """
        Repair effort scores that contradict the implementation size.

        Rules are checked in order against the original effort; a later
        rule overrides an earlier correction.
        """
        step_count = len(implementation_steps(rec))
        code_length = len(rec.code_snippet or "")
        has_code = code_length > self.SUBSTANTIAL_CODE_LENGTH

        original = rec.effort_score
        corrected = original

        if original == 1 and step_count > 5:
            corrected = min(3, math.ceil(step_count / 2))
            logger.debug(f"Corrected effort for '{rec.title}': {original} → {corrected} ({step_count} steps)")

        if original == 1 and code_length > 500:
            corrected = 2
            logger.debug(f"Corrected effort for '{rec.title}': {original} → {corrected} (long code snippet)")

        if original == 5 and step_count < 3 and not has_code:
            corrected = 3
            logger.debug(f"Corrected effort for '{rec.title}': {original} → {corrected} (simple steps)")

        if corrected == original:
            return rec
        return rec.model_copy(update={"effort_score": corrected})

    def calculate_quality_score(self, rec: Recommendation) -> int:
        score = 50

        title = rec.title or ""
        description = rec.description or ""

        # Markers are counted per field, not deduplicated
        for marker in self.SPECIFICITY_MARKERS:
            if marker.search(title):
                score += 5
            if marker.search(description):
                score += 3

        steps = implementation_steps(rec)
        avg_step_length = sum(len(step) for step in steps) / len(steps) if steps else 0
        if avg_step_length > 50:
            score += 10
        if avg_step_length > 100:
            score += 10

        code_length = len(rec.code_snippet or "")
        if code_length > 100:
            score += 10
        if code_length > 300:
            score += 5
        if code_length > 500:
            score += 5

        # High impact, low effort (tiers are cumulative)
        ratio = rec.impact_score / rec.effort_score
        if ratio >= 2:
            score += 15
        if ratio >= 3:
            score += 10
        if ratio >= 4:
            score += 5

        if (rec.category or "").lower() in self.CRITICAL_CATEGORIES:
            score += 10

        return min(100, score)

    def add_quality_score(self, rec: Recommendation) -> Recommendation:
        return rec.model_copy(update={"quality_score": self.calculate_quality_score(rec)})


def get_validation_stats(
    original: Sequence[Recommendation], validated: Sequence[Recommendation]
) -> ValidationStats:
    """Summarize how many recommendations survived validation"""
    avg_quality = (
        sum(rec.quality_score or 0 for rec in validated) / len(validated) if validated else 0
    )
    filter_rate = (1 - len(validated) / len(original)) * 100 if original else 0

    return ValidationStats(
        original_count=len(original),
        validated_count=len(validated),
        filtered_count=len(original) - len(validated),
        filter_rate=f"{math.floor(filter_rate + 0.5)}%",
        avg_quality_score=math.floor(avg_quality + 0.5),
    )
