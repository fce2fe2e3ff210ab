from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field


# Core models
class RecommendationStatus(str, Enum):
    PENDING = "pending"
    IMPLEMENTED = "implemented"
    SKIPPED = "skipped"


class StoreMetrics(BaseModel):
    """Store-level numbers for one analysis run (percentages are 0-100)"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    conversion_rate: float = Field(alias="conversionRate")
    avg_order_value: float = Field(alias="avgOrderValue")
    monthly_visitors: float = Field(alias="monthlyVisitors")
    mobile_percentage: float = Field(alias="mobilePercentage")
    cart_abandonment_rate: float = Field(alias="cartAbandonmentRate")


class ROIBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: str
    projected: str
    difference: str


class ROICalculation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    estimated_lift: str = Field(alias="estimatedLift")
    monthly_revenue: str = Field(alias="monthlyRevenue")
    annual_revenue: str = Field(alias="annualRevenue")
    confidence: int
    calculation: ROIBreakdown
    assumptions: List[str]
    # Raw values, kept unrounded for aggregation
    lift: float
    additional_orders: float = Field(alias="additionalOrders")
    monthly_revenue_value: float = Field(alias="monthlyRevenueValue")
    annual_revenue_value: float = Field(alias="annualRevenueValue")


class TotalROI(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_monthly: str = Field(alias="totalMonthly")
    total_annual: str = Field(alias="totalAnnual")
    avg_confidence: int = Field(alias="avgConfidence")
    recommendation_count: int = Field(alias="recommendationCount")
    total_monthly_value: float = Field(alias="totalMonthlyValue")


class IndustryBenchmark(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    cr_comparison: str = Field(alias="crComparison")
    aov_comparison: str = Field(alias="aovComparison")
    cart_abandonment_comparison: str = Field(alias="cartAbandonmentComparison")


class RawRecommendation(BaseModel):
    """
    Untrusted recommendation exactly as the LLM produced it.

    Nothing in payload is type-checked. normalize_recommendation() is the
    only way to turn this into a Recommendation.
    """

    model_config = ConfigDict(frozen=True)

    source: str = "llm"
    payload: Dict[str, Any] = Field(default_factory=dict)


class Recommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = ""
    title: str
    description: str = ""
    category: str = "general"
    reasoning: str = ""
    impact_score: int = Field(default=3, ge=1, le=5, alias="impactScore")
    effort_score: int = Field(default=3, ge=1, le=5, alias="effortScore")
    implementation: List[str] = Field(default_factory=list)
    code_snippet: Optional[str] = Field(default=None, alias="codeSnippet")
    estimated_uplift: str = Field(default="TBD", alias="estimatedUplift")
    estimated_roi: str = Field(default="TBD", alias="estimatedROI")
    quality_score: Optional[int] = Field(default=None, ge=0, le=100, alias="qualityScore")
    status: RecommendationStatus = RecommendationStatus.PENDING
    implemented_at: Optional[datetime] = Field(default=None, alias="implementedAt")
    warning: Optional[str] = None

    # Enrichment added by the analysis pipeline
    roi: Optional[ROICalculation] = None
    confidence: Optional[int] = None
    dependencies: List[str] = Field(default_factory=list)
    benchmark_comparison: Optional[str] = Field(default=None, alias="benchmarkComparison")
    implementation_order: Optional[int] = Field(default=None, alias="implementationOrder")

    @computed_field
    @property
    def priority(self) -> int:
        """Higher = do first. Always derived, never stored."""
        return self.impact_score * 2 - self.effort_score

    @property
    def implementation_text(self) -> str:
        """Newline-joined steps, the shape the persistence layer stores"""
        return "\n".join(self.implementation)

    def mark_implemented(self, at: Optional[datetime] = None) -> "Recommendation":
        return self.model_copy(
            update={
                "status": RecommendationStatus.IMPLEMENTED,
                "implemented_at": at or datetime.now(timezone.utc),
            }
        )

    def mark_skipped(self) -> "Recommendation":
        return self.model_copy(
            update={"status": RecommendationStatus.SKIPPED, "implemented_at": None}
        )

    def reset_status(self) -> "Recommendation":
        return self.model_copy(
            update={"status": RecommendationStatus.PENDING, "implemented_at": None}
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialize for storage: camelCase keys, implementation as joined text"""
        record = self.model_dump(by_alias=True, mode="json")
        record["implementation"] = self.implementation_text
        return record


class ValidationStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    original_count: int = Field(alias="originalCount")
    validated_count: int = Field(alias="validatedCount")
    filtered_count: int = Field(alias="filteredCount")
    filter_rate: str = Field(alias="filterRate")
    avg_quality_score: int = Field(alias="avgQualityScore")


class RecommendationDisplay(BaseModel):
    """Admin UI labels for one recommendation, keyed by its id"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    effort: Dict[str, str]
    impact_stars: str = Field(alias="impactStars")
    category: Dict[str, str]
    steps: List[str] = Field(default_factory=list)
    code_language: Optional[str] = Field(default=None, alias="codeLanguage")
    confidence: Optional[int] = None
    benchmark: Optional[str] = None
    reasoning: str = ""


# Multi-stage analysis models
class ShopProduct(BaseModel):
    title: str
    handle: str = ""


class ShopData(BaseModel):
    domain: str
    primary_goal: str = "Increase conversion rate"
    theme_name: str = "Unknown"
    top_products: List[ShopProduct] = Field(default_factory=list)
    industry: Optional[str] = None


class Stage1Problem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    severity: int = 5
    affected_users: str = Field(default="", alias="affectedUsers")
    category: str = "general"
    quick_evidence: str = Field(default="", alias="quickEvidence")


class DeepDiveRecommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    specific_change: str = Field(default="", alias="specificChange")
    expected_outcome: str = Field(default="", alias="expectedOutcome")


class DeepDive(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    problem_id: str = Field(alias="problemId")
    why_it_matters: str = Field(default="", alias="whyItMatters")
    data_evidence: str = Field(default="", alias="dataEvidence")
    psychology_principle: str = Field(default="", alias="psychologyPrinciple")
    recommendations: List[DeepDiveRecommendation] = Field(default_factory=list)


# API models
class ParseRequest(BaseModel):
    response_text: str
    metrics: Optional[StoreMetrics] = None


class ParseResponse(BaseModel):
    recommendations: List[Recommendation]
    stats: Optional[ValidationStats] = None
    display: List[RecommendationDisplay] = Field(default_factory=list)
    empty: bool = False
    retry_suggested: bool = False


class ROIRequest(BaseModel):
    impact_score: float
    effort_score: float
    category: str = "general"
    metrics: StoreMetrics


class ROIResponse(BaseModel):
    roi: ROICalculation
    formatted: str


class ROIInput(BaseModel):
    impact: float
    effort: float
    category: str = "general"


class TotalROIRequest(BaseModel):
    recommendations: List[ROIInput]
    metrics: StoreMetrics


class AnalyzeRequest(BaseModel):
    shop_data: ShopData
    metrics: StoreMetrics
    screenshots: List[str] = Field(default_factory=list)


class AnalyzeResponse(BaseModel):
    shop: str
    analyzed_at: str
    recommendations: List[Recommendation]
    usage: Dict[str, Any] = Field(default_factory=dict)
