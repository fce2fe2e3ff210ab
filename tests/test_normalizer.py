import pytest

from models import RawRecommendation, Recommendation, RecommendationStatus
from utils.parsing.normalizer import (
    normalize_recommendation,
    normalize_recommendations,
    parse_implementation,
    parse_score,
)


class TestParseScore:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (4, 4),
            ("4", 4),
            ("4 (high)", 4),
            (4.7, 4),
            ("5/5", 5),
            (None, 3),
            ("high", 3),
            (0, 3),
            ("0", 3),
            (True, 3),
            (9, 5),
            (-2, 1),
            (float("nan"), 3),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_score(value) == expected


class TestParseImplementation:
    def test_list(self):
        assert parse_implementation(["Edit hero.liquid", "", "   ", None, "Add badge"]) == [
            "Edit hero.liquid",
            "Add badge",
        ]

    def test_newline_joined_string(self):
        assert parse_implementation("Edit hero.liquid\n\n  Add badge\n") == [
            "Edit hero.liquid",
            "  Add badge",
        ]

    def test_step_whitespace_is_kept(self):
        # Indentation counts toward step length
        assert parse_implementation(["    Add badge row"]) == ["    Add badge row"]

    def test_missing(self):
        assert parse_implementation(None) == []


class TestNormalizeRecommendation:
    def test_defaults_for_empty_payload(self):
        rec = normalize_recommendation({})
        assert rec.title == "Untitled Recommendation"
        assert rec.category == "general"
        assert rec.impact_score == 3
        assert rec.effort_score == 3
        assert rec.estimated_uplift == "TBD"
        assert rec.estimated_roi == "TBD"
        assert rec.implementation == []
        assert rec.code_snippet is None
        assert rec.status == RecommendationStatus.PENDING

    def test_blank_title_gets_default(self):
        assert normalize_recommendation({"title": "   "}).title == "Untitled Recommendation"

    def test_camel_case_payload(self, specific_payload):
        rec = normalize_recommendation({**specific_payload, "codeSnippet": ".cta { margin: 0 }"})
        assert rec.id == "rec-hero-cta"
        assert rec.impact_score == 4
        assert rec.effort_score == 2
        assert rec.code_snippet == ".cta { margin: 0 }"
        assert len(rec.implementation) == 2

    def test_short_score_keys(self):
        rec = normalize_recommendation({"title": "A", "impact": "5", "effort": 1})
        assert (rec.impact_score, rec.effort_score) == (5, 1)

    def test_priority_is_derived_not_read(self):
        rec = normalize_recommendation({"title": "A", "impactScore": 5, "effortScore": 2, "priority": 99})
        assert rec.priority == 8

    def test_wrong_types_are_coerced(self):
        rec = normalize_recommendation(
            {"title": 42, "description": None, "implementation": "Edit a\nAdd b", "qualityScore": 250}
        )
        assert rec.title == "42"
        assert rec.description == ""
        assert rec.implementation == ["Edit a", "Add b"]
        assert rec.quality_score == 100

    def test_implemented_at_dropped_unless_implemented(self):
        rec = normalize_recommendation(
            {"title": "A", "status": "skipped", "implementedAt": "2024-05-01T10:00:00Z"}
        )
        assert rec.status == RecommendationStatus.SKIPPED
        assert rec.implemented_at is None

    @pytest.mark.parametrize("value", ["soon", "n/a", "", {"date": "today"}, ["2024"]])
    def test_garbage_implemented_at_is_dropped(self, value):
        rec = normalize_recommendation({"title": "A", "status": "implemented", "implementedAt": value})
        assert rec.status == RecommendationStatus.IMPLEMENTED
        assert rec.implemented_at is None

    def test_implemented_at_is_parsed(self):
        rec = normalize_recommendation(
            {"title": "A", "status": "implemented", "implemented_at": "2024-05-01T10:00:00Z"}
        )
        assert rec.implemented_at.year == 2024

    def test_unknown_status_is_pending(self):
        assert normalize_recommendation({"title": "A", "status": "done"}).status == RecommendationStatus.PENDING

    def test_raw_recommendation_wrapper(self, specific_payload):
        rec = normalize_recommendation(RawRecommendation(payload=specific_payload))
        assert rec.title == specific_payload["title"]

    def test_idempotent(self, specific_payload):
        once = normalize_recommendation({**specific_payload, "impactScore": "9", "status": "implemented",
                                         "implementedAt": "2024-05-01T10:00:00Z", "dependencies": ["rec-001"]})
        twice = normalize_recommendation(once)
        assert twice == once
        assert isinstance(twice, Recommendation)


def test_normalize_recommendations_drops_non_objects():
    recs = normalize_recommendations([{"title": "A"}, "stray", None, 3, {"title": "B"}])
    assert [r.title for r in recs] == ["A", "B"]
