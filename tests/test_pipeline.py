"""
Tests for the recommendation pipeline and the multi-stage analyzer.

Claude is replaced by FakeClaude (see conftest.py); no network access.
"""

import asyncio
import json

import pytest

from analyzer.pipeline import (
    LOW_QUALITY_WARNING,
    MultiStageAnalyzer,
    RecommendationPipeline,
    assign_ids,
    enrich_with_roi,
    generate_fallback_problems,
)
from models import Recommendation
from utils.errors import (
    EmptyRecommendationSetError,
    InvalidMetricsError,
    LLMServiceError,
    MalformedResponseError,
)
from utils.validation.conflicts import CONFLICT_WARNING

STAGE1_PROBLEMS = [
    {"id": "prob-hero-cta", "title": "Hero CTA is 32px tall", "severity": 9, "category": "hero"},
    {"id": "prob-shipping", "title": "Shipping cost hidden until checkout", "severity": 8, "category": "cart"},
    {"id": "prob-reviews", "title": "No reviews above the fold", "severity": 6, "category": "trust"},
    {"id": "prob-menu", "title": "Mobile menu has 14 items", "severity": 4, "category": "mobile"},
]


def stage2_answer(user_prompt):
    problem_id = user_prompt.split("- ID: ")[1].split("\n")[0]
    return {
        "problemId": problem_id,
        "whyItMatters": "Shoppers hesitate.",
        "dataEvidence": "68% abandonment",
        "psychologyPrinciple": "Hick's Law",
        "recommendations": [
            {"title": f"Fix {problem_id}", "specificChange": "Set height to 48px", "expectedOutcome": "+0.5% CR"}
        ],
    }


def stage3_answer(payloads):
    return "Here is the prioritized list:\n```json\n" + json.dumps(payloads) + "\n```"


class TestRecommendationPipeline:
    def test_process(self, specific_payload):
        text = json.dumps({"recommendations": [specific_payload, {"title": "Improve mobile"}]})
        recs = RecommendationPipeline().process(text)
        assert [r.id for r in recs] == ["rec-hero-cta"]
        assert recs[0].quality_score is not None

    def test_assigns_positional_ids(self, specific_payload):
        payload = dict(specific_payload, id="")
        recs = RecommendationPipeline().process(json.dumps([payload, payload]))
        assert sorted(r.id for r in recs) == ["rec-001", "rec-002"]

    def test_roi_enrichment_with_metrics(self, specific_payload, metrics):
        payload = dict(specific_payload, category="checkout", impactScore=5, effortScore=2)
        [rec] = RecommendationPipeline().process(json.dumps([payload]), metrics)
        assert rec.estimated_uplift == "+1.12% CR"
        assert rec.estimated_roi == "+$11,424/mo"
        assert rec.confidence == 95
        assert rec.roi.annual_revenue == "+$137,088/yr"

    def test_conflicts_are_annotated(self, specific_payload):
        other = dict(specific_payload, id="rec-hero-text")
        recs = RecommendationPipeline().process(json.dumps([specific_payload, other]))
        warnings = {r.id: r.warning for r in recs}
        assert warnings == {"rec-hero-cta": CONFLICT_WARNING, "rec-hero-text": None}

    def test_empty_response(self):
        with pytest.raises(EmptyRecommendationSetError) as exc_info:
            RecommendationPipeline().process("[]")
        assert exc_info.value.stage == "parse"

    def test_everything_filtered(self):
        with pytest.raises(EmptyRecommendationSetError) as exc_info:
            RecommendationPipeline().process('[{"title": "Improve mobile"}]')
        assert exc_info.value.stage == "validation"
        assert [c.title for c in exc_info.value.candidates] == ["Improve mobile"]

    def test_malformed_response(self):
        with pytest.raises(MalformedResponseError):
            RecommendationPipeline().process("Sorry, I can't help with that.")


def test_assign_ids_keeps_existing(make_rec):
    recs = assign_ids([make_rec(id="rec-hero-cta"), make_rec()])
    assert [r.id for r in recs] == ["rec-hero-cta", "rec-002"]


def test_enrich_with_roi_replaces_estimates(make_rec, metrics):
    [rec] = enrich_with_roi([make_rec(estimated_uplift="+8-12%")], metrics)
    assert rec.estimated_uplift == "+0.30% CR"
    assert rec.roi is not None


class TestFallbackProblems:
    def test_all_metric_problems(self, metrics):
        ids = [p.id for p in generate_fallback_problems(metrics)]
        assert ids == ["prob-low-cr", "prob-cart-abandon", "prob-low-aov", "prob-mobile-opt"]

    def test_healthy_store_gets_general_audit(self, metrics):
        healthy = metrics.model_copy(
            update={
                "conversion_rate": 3,
                "cart_abandonment_rate": 50,
                "avg_order_value": 150,
                "mobile_percentage": 40,
            }
        )
        assert [p.id for p in generate_fallback_problems(healthy)] == ["prob-general"]


class TestMultiStageAnalyzer:
    def test_full_run(self, fake_claude, shop_data, metrics, specific_payload):
        other = dict(specific_payload, id="rec-hero-redesign", impactScore=5, effortScore=1, category="cart")
        claude = fake_claude(
            stage1=STAGE1_PROBLEMS,
            stage2=stage2_answer,
            stage3=stage3_answer([specific_payload, other]),
        )
        analyzer = MultiStageAnalyzer(llm=claude)

        recs = asyncio.run(analyzer.analyze(shop_data, metrics))

        stage2_calls = [prompt for stage, prompt in claude.calls if stage == "stage2"]
        assert len(stage2_calls) == 3
        assert not any("prob-menu" in prompt for prompt in stage2_calls)

        assert {r.id for r in recs} == {"rec-hero-cta", "rec-hero-redesign"}
        assert all(r.roi is not None for r in recs)
        assert all(r.quality_score is not None for r in recs)

        by_id = {r.id: r for r in recs}
        # impact 5 / effort 1 outranks impact 4 / effort 2
        assert by_id["rec-hero-redesign"].implementation_order == 1
        assert by_id["rec-hero-cta"].implementation_order == 2
        assert by_id["rec-hero-cta"].warning == CONFLICT_WARNING

        assert analyzer.usage.session_spend(shop_data.domain)["call_count"] == 5

    def test_stage3_prompt_contains_deep_dive_solutions(self, fake_claude, shop_data, metrics, specific_payload):
        claude = fake_claude(stage1=STAGE1_PROBLEMS, stage2=stage2_answer, stage3=stage3_answer([specific_payload]))
        asyncio.run(MultiStageAnalyzer(llm=claude).analyze(shop_data, metrics))

        [stage3_prompt] = [prompt for stage, prompt in claude.calls if stage == "stage3"]
        assert "Fix prob-hero-cta" in stage3_prompt
        assert "You have 3 CRO recommendations" in stage3_prompt

    def test_llm_outage_degrades_to_fallbacks(self, fake_claude, shop_data, metrics):
        claude = fake_claude(error=LLMServiceError("Rate limit exceeded", status_code=429))
        analyzer = MultiStageAnalyzer(llm=claude)

        recs = asyncio.run(analyzer.analyze(shop_data, metrics))

        assert [r.id for r in recs] == ["rec-001", "rec-002", "rec-003"]
        assert recs[0].title == "Fix: High cart abandonment rate suggests checkout friction"
        assert all(r.warning == LOW_QUALITY_WARNING for r in recs)
        assert all(r.quality_score == 40 for r in recs)
        assert analyzer.usage.session_spend()["call_count"] == 0

    def test_unusable_stage_answers(self, fake_claude, shop_data, metrics):
        claude = fake_claude(stage1="I could not find problems", stage2="{}", stage3="[]")
        recs = asyncio.run(MultiStageAnalyzer(llm=claude).analyze(shop_data, metrics))

        assert len(recs) == 3
        assert all(r.estimated_uplift == "+0.3% CR" for r in recs)
        assert all(r.estimated_roi == "+$3,060/mo" for r in recs)

    def test_zero_top_problems_skips_deep_dives(self, fake_claude, shop_data, metrics, specific_payload):
        claude = fake_claude(stage1=STAGE1_PROBLEMS, stage3=stage3_answer([specific_payload]))
        analyzer = MultiStageAnalyzer(llm=claude, top_problems=0)

        recs = asyncio.run(analyzer.analyze(shop_data, metrics))

        assert analyzer.top_problems == 0
        assert [stage for stage, _ in claude.calls] == ["stage1", "stage3"]
        assert [r.id for r in recs] == ["rec-hero-cta"]

    def test_invalid_metrics(self, fake_claude, shop_data, metrics):
        bad = metrics.model_copy(update={"avg_order_value": 0})
        with pytest.raises(InvalidMetricsError):
            asyncio.run(MultiStageAnalyzer(llm=fake_claude()).analyze(shop_data, bad))

    def test_emergency_fallback(self, metrics):
        [rec] = MultiStageAnalyzer(llm=lambda *args: None).finalize([], metrics)
        assert rec.id == "rec-emergency-001"
        assert rec.category == "checkout"
        assert rec.estimated_roi == "+$5,100/mo"

    def test_validated_results_are_not_downgraded(self, make_rec, metrics):
        recs = MultiStageAnalyzer(llm=lambda *args: None).finalize([make_rec(id="rec-001")], metrics)
        assert recs[0].warning is None
        assert recs[0].quality_score == 61
