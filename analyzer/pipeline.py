"""
Recommendation pipeline and multi-stage CRO analysis.

RecommendationPipeline turns one raw Claude response into the final list:
parse → normalize → validate → conflict annotation → ROI enrichment.

MultiStageAnalyzer drives the 3-stage conversation with Claude:
Stage 1: Quick problem identification (3-5 critical issues)
Stage 2: Deep dive on the top problems (psychology + data), concurrently
Stage 3: Generate & prioritize all recommendations
...then validates the result, falling back to something usable at every
stage so a merchant never ends up with an empty report.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from analyzer.prompts import build_stage1_prompt, build_stage2_prompt, build_stage3_prompt
from config import settings
from models import (
    DeepDive,
    DeepDiveRecommendation,
    Recommendation,
    ShopData,
    Stage1Problem,
    StoreMetrics,
)
from utils.clients.anthropic import ClaudeResponse, call_claude
from utils.errors import EmptyRecommendationSetError, LLMServiceError, MalformedResponseError
from utils.parsing.json import parse_json_response, parse_recommendation_payload
from utils.parsing.normalizer import normalize_recommendations
from utils.roi.calculator import calculate_realistic_roi, validate_store_metrics
from utils.usage import UsageTracker
from utils.validation.conflicts import ConflictAnnotator
from utils.validation.recommendation_validator import RecommendationValidator, get_validation_stats

logger = logging.getLogger(__name__)

LOW_QUALITY_WARNING = "This recommendation may be too generic - review before implementing"

LLMCallable = Callable[[str, str, List[str]], ClaudeResponse]


def assign_ids(recommendations: Sequence[Recommendation]) -> List[Recommendation]:
    """Give recommendations without an id a positional one: rec-001, rec-002, ..."""
    return [
        rec if rec.id else rec.model_copy(update={"id": f"rec-{index + 1:03d}"})
        for index, rec in enumerate(recommendations)
    ]


def enrich_with_roi(
    recommendations: Sequence[Recommendation], metrics: StoreMetrics
) -> List[Recommendation]:
    """Replace Claude's uplift/ROI guesses with calculated values"""
    enriched = []
    for rec in recommendations:
        roi = calculate_realistic_roi(rec.impact_score, rec.effort_score, rec.category, metrics)
        enriched.append(
            rec.model_copy(
                update={
                    "estimated_uplift": roi.estimated_lift,
                    "estimated_roi": roi.monthly_revenue,
                    "roi": roi,
                    "confidence": roi.confidence,
                }
            )
        )
    return enriched


class RecommendationPipeline:
    """Single-response quality pipeline"""

    def __init__(
        self,
        validator: Optional[RecommendationValidator] = None,
        annotator: Optional[ConflictAnnotator] = None,
    ):
        self.validator = validator or RecommendationValidator()
        self.annotator = annotator or ConflictAnnotator(symmetric=settings.SYMMETRIC_CONFLICTS)

    def parse(self, response_text: str) -> List[Recommendation]:
        """
        Raises:
            MalformedResponseError: If the response is unusable
        """
        return assign_ids(normalize_recommendations(parse_recommendation_payload(response_text)))

    def refine(
        self,
        candidates: Sequence[Recommendation],
        metrics: Optional[StoreMetrics] = None,
    ) -> List[Recommendation]:
        """
        Validate, annotate and (with metrics) ROI-enrich parsed recommendations.

        Raises:
            EmptyRecommendationSetError: If there is nothing to refine or
                validation removed everything
            InvalidMetricsError: If metrics are not usable
        """
        if not candidates:
            raise EmptyRecommendationSetError("Claude returned no recommendations", stage="parse")

        validated = self.validator.validate_recommendations(candidates)
        if not validated:
            raise EmptyRecommendationSetError(
                f"All {len(candidates)} recommendations were filtered out by validation",
                stage="validation",
                candidates=list(candidates),
            )

        annotated = self.annotator.annotate(validated)
        if metrics is not None:
            annotated = enrich_with_roi(annotated, metrics)
        return annotated

    def process(
        self, response_text: str, metrics: Optional[StoreMetrics] = None
    ) -> List[Recommendation]:
        return self.refine(self.parse(response_text), metrics)


def generate_fallback_problems(metrics: StoreMetrics) -> List[Stage1Problem]:
    """Metric-driven problems used when Claude's stage 1 answer is unusable"""
    problems = []

    if metrics.conversion_rate < 2:
        problems.append(Stage1Problem(
            id="prob-low-cr",
            title="Below-average conversion rate indicates UX friction",
            severity=8,
            affected_users="All visitors",
            category="general",
            quick_evidence=f"CR {metrics.conversion_rate}% vs industry avg 2.4%",
        ))

    if metrics.cart_abandonment_rate >= 65:
        problems.append(Stage1Problem(
            id="prob-cart-abandon",
            title="High cart abandonment rate suggests checkout friction",
            severity=9,
            affected_users=f"{metrics.cart_abandonment_rate}% of cart initiators",
            category="cart",
            quick_evidence=f"{metrics.cart_abandonment_rate}% abandon rate vs 69% industry avg",
        ))

    if metrics.avg_order_value < 100:
        problems.append(Stage1Problem(
            id="prob-low-aov",
            title="Average order value below $100 indicates upsell opportunity",
            severity=7,
            affected_users="All customers",
            category="pricing",
            quick_evidence=f"AOV ${metrics.avg_order_value} - room for bundle/upsell strategies",
        ))

    if metrics.mobile_percentage > 50:
        problems.append(Stage1Problem(
            id="prob-mobile-opt",
            title="Mobile-majority traffic requires mobile-first optimization",
            severity=7,
            affected_users=f"{metrics.mobile_percentage}% of traffic",
            category="mobile",
            quick_evidence="Mobile visitors typically convert 50% lower than desktop",
        ))

    if problems:
        return problems

    return [Stage1Problem(
        id="prob-general",
        title="General CRO audit needed",
        severity=5,
        affected_users="All visitors",
        category="general",
        quick_evidence="Baseline analysis required",
    )]


def emergency_recommendation(metrics: StoreMetrics) -> Recommendation:
    """Last-resort checkout recommendation built from metrics alone"""
    return Recommendation(
        id="rec-emergency-001",
        title=f"Optimize checkout flow to reduce {metrics.cart_abandonment_rate}% cart abandonment",
        description=(
            f"Your cart abandonment rate of {metrics.cart_abandonment_rate}% is above industry "
            "average. Simplifying checkout can improve conversions."
        ),
        impact_score=4,
        effort_score=3,
        category="checkout",
        implementation_order=1,
        estimated_uplift="+0.5% CR",
        estimated_roi=f"+${round(metrics.monthly_visitors * 0.005 * metrics.avg_order_value):,}/mo",
        implementation=[
            "Add guest checkout option to reduce friction",
            "Reduce form fields to essential information only",
            "Add progress indicator to show checkout steps",
            "Implement address autocomplete for faster entry",
        ],
        confidence=70,
        benchmark_comparison=f"{metrics.cart_abandonment_rate}% vs 69% industry average",
        reasoning="Reducing checkout friction is proven to decrease cart abandonment and increase conversions.",
    )


class MultiStageAnalyzer:
    """
    3-stage Claude analysis with per-stage fallbacks.

    The LLM callable is injected (defaults to call_claude) and each
    analyzer owns the UsageTracker for its run.
    """

    def __init__(
        self,
        llm: Optional[LLMCallable] = None,
        usage: Optional[UsageTracker] = None,
        pipeline: Optional[RecommendationPipeline] = None,
        top_problems: Optional[int] = None,
        fallback_quality_score: Optional[int] = None,
    ):
        self.llm = llm or call_claude
        self.usage = usage or UsageTracker(budget_limit=settings.MONTHLY_BUDGET)
        self.pipeline = pipeline or RecommendationPipeline()
        self.top_problems = settings.STAGE2_TOP_PROBLEMS if top_problems is None else top_problems
        self.fallback_quality_score = (
            settings.FALLBACK_QUALITY_SCORE if fallback_quality_score is None else fallback_quality_score
        )

    async def _ask(
        self,
        system_prompt: str,
        user_prompt: str,
        screenshots: List[str],
        shop: str,
        stage: str,
    ) -> str:
        # The Anthropic SDK call is blocking; keep the event loop free
        response = await asyncio.to_thread(self.llm, system_prompt, user_prompt, screenshots)
        self.usage.log_usage(response.model, response.input_tokens, response.output_tokens, shop, stage)
        return response.text

    async def analyze(
        self,
        shop_data: ShopData,
        metrics: StoreMetrics,
        screenshots: Optional[List[str]] = None,
    ) -> List[Recommendation]:
        """
        Run the full analysis for one store.

        Raises:
            InvalidMetricsError: If metrics are not usable
        """
        metrics = validate_store_metrics(metrics)
        screenshots = screenshots or []

        logger.info("🔍 Stage 1: Identifying critical problems...")
        problems = await self.identify_problems(shop_data, metrics, screenshots)
        logger.info(f"✅ Stage 1 complete: Found {len(problems)} problems")

        top = sorted(problems, key=lambda p: p.severity, reverse=True)[: self.top_problems]
        logger.info(f"🔍 Stage 2: Deep diving into top {len(top)} problems...")
        deep_dives = await asyncio.gather(
            *(self.deep_dive(problem, shop_data, metrics, screenshots) for problem in top)
        )
        logger.info(f"✅ Stage 2 complete: {len(deep_dives)} deep dives done")

        candidates = [
            {
                "problemId": dive.problem_id,
                "whyItMatters": dive.why_it_matters,
                "psychologyPrinciple": dive.psychology_principle,
                **rec.model_dump(by_alias=True),
            }
            for dive in deep_dives
            for rec in dive.recommendations
        ]

        logger.info("🔍 Stage 3: Generating and prioritizing recommendations...")
        prioritized = await self.prioritize_and_enrich(candidates, shop_data, metrics, screenshots)
        logger.info(f"✅ Stage 3 complete: {len(prioritized)} recommendations generated")

        return self.finalize(prioritized, metrics)

    async def identify_problems(
        self, shop_data: ShopData, metrics: StoreMetrics, screenshots: List[str]
    ) -> List[Stage1Problem]:
        system_prompt, user_prompt = build_stage1_prompt(shop_data, metrics)

        try:
            text = await self._ask(system_prompt, user_prompt, screenshots, shop_data.domain, "stage1")
        except LLMServiceError as e:
            logger.error(f"❌ Stage 1 failed: {str(e)}")
            return generate_fallback_problems(metrics)

        parsed = parse_json_response(text, [])
        if isinstance(parsed, dict):
            parsed = parsed.get("problems", [])

        problems = []
        for item in parsed if isinstance(parsed, list) else []:
            try:
                problems.append(Stage1Problem.model_validate(item))
            except ValidationError:
                logger.debug(f"Skipping malformed stage 1 problem: {str(item)[:100]}")

        if not problems:
            logger.warning("⚠️  Stage 1: Claude returned empty/invalid JSON, using fallback problems")
            return generate_fallback_problems(metrics)

        return problems

    async def deep_dive(
        self,
        problem: Stage1Problem,
        shop_data: ShopData,
        metrics: StoreMetrics,
        screenshots: List[str],
    ) -> DeepDive:
        system_prompt, user_prompt = build_stage2_prompt(problem, metrics)

        try:
            text = await self._ask(system_prompt, user_prompt, screenshots, shop_data.domain, "stage2")
            parsed = parse_json_response(text, None)
            if isinstance(parsed, dict):
                parsed.setdefault("problemId", problem.id)
                dive = DeepDive.model_validate(parsed)
                if dive.recommendations:
                    return dive
            logger.warning(f"⚠️  Stage 2 returned no solutions for {problem.id}, using fallback")
        except LLMServiceError as e:
            logger.error(f"❌ Stage 2 failed for {problem.id}: {str(e)}")
        except ValidationError as e:
            logger.warning(f"⚠️  Stage 2 returned an invalid deep dive for {problem.id}: {str(e)}")

        return DeepDive(
            problem_id=problem.id,
            why_it_matters=f"{problem.title} affects {problem.affected_users}, directly impacting conversions.",
            data_evidence=problem.quick_evidence,
            psychology_principle="Usability Heuristics",
            recommendations=[
                DeepDiveRecommendation(
                    title=f"Fix: {problem.title}",
                    specific_change="Requires manual investigation",
                    expected_outcome="Estimated +0.3% CR improvement",
                )
            ],
        )

    async def prioritize_and_enrich(
        self,
        candidates: List[Dict[str, Any]],
        shop_data: ShopData,
        metrics: StoreMetrics,
        screenshots: List[str],
    ) -> List[Recommendation]:
        system_prompt, user_prompt = build_stage3_prompt(candidates, metrics)

        try:
            text = await self._ask(system_prompt, user_prompt, screenshots, shop_data.domain, "stage3")
            recommendations = self.pipeline.parse(text)
            if not recommendations:
                raise EmptyRecommendationSetError("Empty stage 3 response", stage="parse")
        except (LLMServiceError, MalformedResponseError, EmptyRecommendationSetError) as e:
            logger.error(f"❌ Stage 3 failed: {str(e)}")
            return self.fallback_recommendations(candidates, metrics)

        logger.info("💵 Calculating realistic ROI for each recommendation...")
        with_roi = enrich_with_roi(recommendations, metrics)

        ordered = sorted(
            with_roi, key=lambda rec: rec.impact_score * 10 / rec.effort_score, reverse=True
        )
        return [
            rec.model_copy(update={"implementation_order": index + 1})
            for index, rec in enumerate(ordered)
        ]

    def fallback_recommendations(
        self, candidates: List[Dict[str, Any]], metrics: StoreMetrics
    ) -> List[Recommendation]:
        """Stage 3 fallback: minimally enriched versions of the deep-dive solutions"""
        estimated_roi = f"+${round(metrics.monthly_visitors * 0.003 * metrics.avg_order_value):,}/mo"

        fallback = []
        for index, candidate in enumerate(candidates):
            change = candidate.get("specificChange") or ""
            fallback.append(Recommendation(
                id=f"rec-{index + 1:03d}",
                title=candidate.get("title") or "Untitled Recommendation",
                description=change or candidate.get("expectedOutcome") or "",
                category="general",
                implementation_order=index + 1,
                estimated_uplift="+0.3% CR",
                estimated_roi=estimated_roi,
                implementation=[change or "Manual implementation required"],
                confidence=60,
                benchmark_comparison="Industry comparison pending",
                reasoning=candidate.get("whyItMatters") or "Improves user experience",
            ))
        return fallback

    def finalize(
        self, prioritized: List[Recommendation], metrics: StoreMetrics
    ) -> List[Recommendation]:
        """Stage 4: validation and quality control"""
        logger.info("🔍 Stage 4: Validating and filtering recommendations...")
        validated = self.pipeline.validator.validate_recommendations(prioritized)

        stats = get_validation_stats(prioritized, validated)
        logger.info(
            f"📊 Validation stats: {stats.validated_count}/{stats.original_count} passed "
            f"(filtered {stats.filter_rate})"
        )
        logger.info(f"📊 Average quality score: {stats.avg_quality_score}/100")

        if not validated and prioritized:
            logger.warning(
                f"⚠️  Validation filtered ALL {len(prioritized)} recommendations - "
                "using unvalidated results with quality warnings"
            )
            fallback = [
                rec.model_copy(
                    update={
                        "quality_score": self.fallback_quality_score,
                        "warning": LOW_QUALITY_WARNING,
                        "implementation_order": index + 1,
                    }
                )
                for index, rec in enumerate(prioritized)
            ]
            return self.pipeline.annotator.annotate(fallback)

        annotated = self.pipeline.annotator.annotate(validated)
        if not annotated:
            logger.warning("⚠️  0 recommendations after all stages, generating emergency fallback")
            return [emergency_recommendation(metrics)]

        return annotated
