"""
Conflict annotation for validated recommendations.

Recommendation ids look like "rec-hero-cta"; the part after the first
hyphen is the recommendation type. Some types commonly overlap or
contradict each other (moving the hero CTA vs. redesigning the hero), so
recommendations whose type conflicts with another member of the list get
a warning telling the merchant to review them together.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from models import Recommendation

logger = logging.getLogger(__name__)

CONFLICT_WARNING = "May conflict with other recommendations - review together before implementing"

# Directional: hero-cta lists hero-redesign, but not the reverse
CONFLICT_GROUPS: Dict[str, List[str]] = {
    "hero-cta": ["hero-image", "hero-redesign", "hero-text"],
    "mobile-menu": ["navigation", "header"],
    "product-images": ["product-gallery", "product-layout"],
    "checkout-fields": ["checkout-redesign", "checkout-flow"],
}


def get_recommendation_type(rec_id: str) -> str:
    """'rec-hero-cta' -> 'hero-cta'"""
    parts = (rec_id or "").lower().split("-")
    return "-".join(parts[1:])


def symmetrize(groups: Mapping[str, Iterable[str]]) -> Dict[str, List[str]]:
    """Mirror every edge so that A→B also implies B→A"""
    mirrored: Dict[str, List[str]] = {key: list(values) for key, values in groups.items()}
    for key, values in groups.items():
        for value in values:
            targets = mirrored.setdefault(value, [])
            if key not in targets:
                targets.append(key)
    return mirrored


class ConflictAnnotator:
    """Attach conflict warnings based on a conflict-group table"""

    def __init__(
        self,
        conflict_groups: Optional[Mapping[str, Iterable[str]]] = None,
        symmetric: bool = False,
    ):
        groups = CONFLICT_GROUPS if conflict_groups is None else conflict_groups
        self.conflict_groups = (
            symmetrize(groups) if symmetric else {k: list(v) for k, v in groups.items()}
        )
        self.symmetric = symmetric

    def annotate(self, recommendations: Sequence[Recommendation]) -> List[Recommendation]:
        types = [get_recommendation_type(rec.id) for rec in recommendations]
        annotated = []

        for index, rec in enumerate(recommendations):
            potential = self.conflict_groups.get(types[index], [])
            has_conflict = any(
                other_type in potential
                for other_index, other_type in enumerate(types)
                if other_index != index
            )

            if has_conflict:
                logger.info(f"⚠️  Possible conflict for '{rec.id}' ({types[index]})")
                annotated.append(rec.model_copy(update={"warning": CONFLICT_WARNING}))
            else:
                annotated.append(rec)

        return annotated


def conflict_check(
    recommendations: Sequence[Recommendation], symmetric: bool = False
) -> List[Recommendation]:
    """Annotate with the default conflict table"""
    return ConflictAnnotator(symmetric=symmetric).annotate(recommendations)
