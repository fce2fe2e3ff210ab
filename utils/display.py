"""
Helpers for presenting recommendations in the admin UI.
"""

import json
import re
from typing import Dict, List, Optional

from models import Recommendation, RecommendationDisplay

LANGUAGE_NAMES = {
    "javascript": "JavaScript",
    "typescript": "TypeScript",
    "html": "HTML",
    "css": "CSS",
    "liquid": "Liquid",
    "json": "JSON",
    "jsx": "React JSX",
    "tsx": "React TSX",
}

CATEGORIES = {
    "hero_section": {"label": "Hero Section", "color": "info"},
    "product_page": {"label": "Product Page", "color": "success"},
    "cart_page": {"label": "Cart Page", "color": "warning"},
    "checkout": {"label": "Checkout", "color": "critical"},
    "mobile": {"label": "Mobile", "color": "info"},
    "trust_building": {"label": "Trust Building", "color": "success"},
    "social_proof": {"label": "Social Proof", "color": "success"},
    "urgency": {"label": "Urgency", "color": "warning"},
    "pricing": {"label": "Pricing", "color": "info"},
    "navigation": {"label": "Navigation", "color": "info"},
    "general": {"label": "General", "color": "info"},
    "cta": {"label": "Call to Action", "color": "warning"},
    "copy": {"label": "Copy & Messaging", "color": "info"},
}

NUMBERED_STEP_PATTERN = re.compile(r"^\d+[\.\)]")
STEP_NUMBER_PREFIX = re.compile(r"^\d+[\.\)]\s*")


def _is_json(code: str) -> bool:
    try:
        json.loads(code)
        return True
    except ValueError:
        return False


def detect_language(code: str) -> str:
    """Guess the language of a code snippet for syntax highlighting"""
    if not code:
        return "javascript"

    lower = code.lower()
    stripped = code.strip()

    # Shopify Liquid templates
    if "{% " in lower or "{{ " in lower or "{%- " in lower:
        return "liquid"

    if "<!doctype" in lower or ("<div" in lower and "</div>" in lower):
        return "html"

    if "{" in lower and ("px" in lower or "color:" in lower or "font-" in lower):
        if "function" not in lower and "const " not in lower and "let " not in lower:
            return "css"

    if (stripped.startswith("{") and stripped.endswith("}")) or (
        stripped.startswith("[") and stripped.endswith("]")
    ):
        if _is_json(stripped):
            return "json"

    typed_markers = (": string", ": number", "interface ", ": boolean", "<t>", "type ")
    if any(marker in lower for marker in typed_markers):
        if "react" in lower or "jsx" in lower or "</>" in lower:
            return "tsx"
        return "typescript"

    if "react" in lower or "jsx" in lower or "return (" in lower or "classname=" in lower:
        return "jsx"

    return "javascript"


def get_language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, language)


def get_effort_level(score: int) -> Dict[str, str]:
    if score <= 2:
        return {"text": "Easy", "time": "~10-15 minutes", "color": "success"}
    if score <= 3:
        return {"text": "Medium", "time": "~20-30 minutes", "color": "warning"}
    return {"text": "Complex", "time": "~45-60 minutes", "color": "critical"}


def get_impact_stars(score: int) -> str:
    return "".join("★" if i < score else "☆" for i in range(5))


def get_category_info(category: str) -> Dict[str, str]:
    key = re.sub(r"\s+", "_", category.lower())
    return CATEGORIES.get(key, {"label": category.replace("_", " "), "color": "info"})


def parse_implementation_steps(implementation: str) -> List[str]:
    """
    Split stored implementation text into display steps.

    Blank lines are dropped; "1." / "2)" numbering is stripped when any
    line is numbered.
    """
    if not implementation:
        return []

    lines = [line for line in implementation.split("\n") if line.strip()]

    if any(NUMBERED_STEP_PATTERN.match(line.strip()) for line in lines):
        return [STEP_NUMBER_PREFIX.sub("", line.strip()).strip() for line in lines]

    return lines


def extract_confidence(reasoning: str) -> Optional[int]:
    match = re.search(r"Confidence:\s*(\d+)%", reasoning, re.IGNORECASE)
    return int(match.group(1)) if match else None


def extract_benchmark(reasoning: str) -> Optional[str]:
    match = re.search(r"Benchmark:\s*([^\n]+)", reasoning, re.IGNORECASE)
    return match.group(1).strip() if match else None


def clean_reasoning(reasoning: str) -> str:
    """Remove the confidence/benchmark lines once they have been extracted"""
    cleaned = re.sub(r"\n\nConfidence:\s*\d+%", "", reasoning, count=1, flags=re.IGNORECASE)
    cleaned = re.sub(r"\nBenchmark:\s*[^\n]+", "", cleaned, count=1, flags=re.IGNORECASE)
    return cleaned.strip()


def describe_recommendation(rec: Recommendation) -> RecommendationDisplay:
    """
    Build the admin UI labels for a recommendation.

    Confidence and benchmark come from the ROI enrichment when present,
    otherwise from the "Confidence:" / "Benchmark:" lines in the reasoning.
    """
    language = detect_language(rec.code_snippet) if rec.code_snippet else None

    return RecommendationDisplay(
        id=rec.id,
        effort=get_effort_level(rec.effort_score),
        impact_stars=get_impact_stars(rec.impact_score),
        category=get_category_info(rec.category),
        steps=parse_implementation_steps(rec.implementation_text),
        code_language=get_language_name(language) if language else None,
        confidence=rec.confidence if rec.confidence is not None else extract_confidence(rec.reasoning),
        benchmark=rec.benchmark_comparison or extract_benchmark(rec.reasoning),
        reasoning=clean_reasoning(rec.reasoning),
    )
