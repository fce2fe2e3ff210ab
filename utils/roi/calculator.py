"""
ROI Calculator Module

Calculates realistic revenue impact from actual store metrics instead of
generic "+8-12%" estimates. All functions are pure.
"""

import logging
import math
from typing import Any, Iterable, Mapping, Tuple, Union

from pydantic import ValidationError

from models import (
    IndustryBenchmark,
    Recommendation,
    ROIBreakdown,
    ROICalculation,
    StoreMetrics,
    TotalROI,
)
from utils.errors import EmptyRecommendationSetError, InvalidMetricsError

logger = logging.getLogger(__name__)

# Impact score → realistic CR lift in percentage points (as a fraction)
IMPACT_TO_CR_LIFT = {
    5: 0.008,  # +0.8% CR (critical fix)
    4: 0.005,  # +0.5% CR (high impact)
    3: 0.003,  # +0.3% CR (medium)
    2: 0.0015,  # +0.15% CR (low)
    1: 0.0005,  # +0.05% CR (minimal)
}
DEFAULT_CR_LIFT = 0.003

# Some categories touch more of the funnel than others
CATEGORY_MULTIPLIERS = {
    "hero": 1.2,  # Hero section affects all users
    "product": 1.0,
    "cart": 1.3,
    "checkout": 1.4,  # Critical path
    "mobile": 0.8,  # Also scoped to mobile traffic below
    "trust": 1.1,
    "navigation": 0.9,
    "speed": 1.15,  # Speed affects everyone
}

# Easier changes are more predictable
EFFORT_TO_CONFIDENCE = {
    1: 95,
    2: 85,
    3: 75,
    4: 65,
    5: 55,
}
DEFAULT_CONFIDENCE = 70
MAX_CONFIDENCE = 95

# Industry averages used for benchmarking
INDUSTRY_AVG_CR = 2.4
INDUSTRY_AVG_AOV = 120
INDUSTRY_AVG_CART_ABANDONMENT = 69.8

MetricsInput = Union[StoreMetrics, Mapping[str, Any]]


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_number(value: float) -> str:
    """Thousands separators, up to 3 decimals: 12000 -> '12,000', 7800.5 -> '7,800.5'"""
    rounded = round(value, 3)
    if float(rounded).is_integer():
        return f"{int(rounded):,}"
    return f"{rounded:,.3f}".rstrip("0").rstrip(".")


def format_plain(value: float) -> str:
    """Number as typed by the merchant: 85 -> '85', 1.8 -> '1.8'"""
    return str(int(value)) if float(value).is_integer() else str(value)


def format_currency(value: float, suffix: str) -> str:
    return f"+${round_half_up(value):,}{suffix}"


def _clamp_score(value: float, name: str) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidMetricsError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number):
        raise InvalidMetricsError(f"{name} must be finite, got {value!r}")
    return max(1, min(5, round_half_up(number)))


def validate_store_metrics(metrics: MetricsInput) -> StoreMetrics:
    """
    Reject metrics that would put NaN, Infinity or nonsense into ROI strings.

    Raises:
        InvalidMetricsError: on missing, non-finite or out-of-range values
    """
    if not isinstance(metrics, StoreMetrics):
        try:
            metrics = StoreMetrics.model_validate(metrics)
        except ValidationError as e:
            raise InvalidMetricsError(f"Invalid store metrics: {e}")

    for name, value in metrics.model_dump().items():
        if not math.isfinite(value):
            raise InvalidMetricsError(f"{name} must be finite, got {value}")

    if metrics.avg_order_value <= 0:
        raise InvalidMetricsError(
            f"avg_order_value must be positive, got {metrics.avg_order_value}"
        )
    if metrics.monthly_visitors < 0:
        raise InvalidMetricsError(
            f"monthly_visitors cannot be negative, got {metrics.monthly_visitors}"
        )
    for name in ("conversion_rate", "mobile_percentage", "cart_abandonment_rate"):
        value = getattr(metrics, name)
        if not 0 <= value <= 100:
            raise InvalidMetricsError(f"{name} must be a percentage between 0 and 100, got {value}")

    return metrics


def calculate_realistic_roi(
    impact: float,
    effort: float,
    category: str,
    metrics: MetricsInput,
) -> ROICalculation:
    """
    Calculate realistic ROI for a recommendation.

    Args:
        impact: Impact score 1-5 (clamped)
        effort: Effort score 1-5 (clamped)
        category: Recommendation category (case-insensitive)
        metrics: Store metrics for this analysis run

    Returns:
        ROICalculation with display strings and the raw numbers behind them

    Raises:
        InvalidMetricsError: If metrics or scores are not usable numbers
    """
    metrics = validate_store_metrics(metrics)
    valid_impact = _clamp_score(impact, "impact")
    valid_effort = _clamp_score(effort, "effort")
    category_key = (category or "").lower()

    base_lift = IMPACT_TO_CR_LIFT.get(valid_impact, DEFAULT_CR_LIFT)
    multiplier = CATEGORY_MULTIPLIERS.get(category_key, 1.0)
    adjusted_lift = base_lift * multiplier

    # Mobile-only changes reach only mobile visitors
    is_mobile = category_key == "mobile"
    effective_traffic = metrics.monthly_visitors
    if is_mobile:
        effective_traffic = metrics.monthly_visitors * (metrics.mobile_percentage / 100)

    current_cr = metrics.conversion_rate / 100
    projected_cr = current_cr + adjusted_lift

    current_orders = effective_traffic * current_cr
    projected_orders = effective_traffic * projected_cr
    additional_orders = projected_orders - current_orders

    monthly_revenue_lift = additional_orders * metrics.avg_order_value
    annual_revenue_lift = monthly_revenue_lift * 12

    base_confidence = EFFORT_TO_CONFIDENCE.get(valid_effort, DEFAULT_CONFIDENCE)
    if valid_impact >= 4:
        impact_bonus = 10
    elif valid_impact == 3:
        impact_bonus = 5
    else:
        impact_bonus = 0
    confidence = min(MAX_CONFIDENCE, base_confidence + impact_bonus)

    traffic = format_number(effective_traffic)
    aov = format_plain(metrics.avg_order_value)
    lift_display = f"{adjusted_lift * 100:.2f}%"

    calculation = ROIBreakdown(
        current=f"{current_cr * 100:.2f}% CR × {traffic} visits = {format_number(round_half_up(current_orders))} orders/mo",
        projected=f"{projected_cr * 100:.2f}% CR × {traffic} visits = {format_number(round_half_up(projected_orders))} orders/mo",
        difference=(
            f"+{format_number(round_half_up(additional_orders))} orders × ${aov} AOV"
            f" = {format_currency(monthly_revenue_lift, '/mo')}"
        ),
    )

    assumptions = [
        f"Impact score {valid_impact}/5 translates to +{lift_display} CR lift",
        (
            f"Mobile-only impact ({format_plain(metrics.mobile_percentage)}% of traffic = {traffic} visitors)"
            if is_mobile
            else "Affects all traffic"
        ),
        f"AOV remains constant at ${aov}",
        "No seasonal variations considered",
        f"Confidence {confidence}% based on effort level {valid_effort}/5",
    ]

    # Annual display derives from the rounded monthly figure so both strings agree
    monthly_display = round_half_up(monthly_revenue_lift)

    return ROICalculation(
        estimated_lift=f"+{lift_display} CR",
        monthly_revenue=format_currency(monthly_revenue_lift, "/mo"),
        annual_revenue=f"+${monthly_display * 12:,}/yr",
        confidence=confidence,
        calculation=calculation,
        assumptions=assumptions,
        lift=adjusted_lift,
        additional_orders=additional_orders,
        monthly_revenue_value=monthly_revenue_lift,
        annual_revenue_value=annual_revenue_lift,
    )


def format_roi_for_display(roi: ROICalculation) -> str:
    """Format an ROI calculation as a markdown block for the merchant"""
    assumptions = "\n".join(f"- {a}" for a in roi.assumptions)
    return f"""**Expected Impact:**
{roi.estimated_lift} ({roi.confidence}% confidence)

**Revenue Impact:**
- Monthly: {roi.monthly_revenue}
- Annual: {roi.annual_revenue}

**Calculation:**
{roi.calculation.current}
{roi.calculation.projected}
= {roi.calculation.difference}

**Assumptions:**
{assumptions}"""


def _roi_inputs(item: Any) -> Tuple[Any, Any, str]:
    if isinstance(item, Recommendation):
        return item.impact_score, item.effort_score, item.category
    if isinstance(item, Mapping):
        impact = item.get("impact", item.get("impactScore"))
        effort = item.get("effort", item.get("effortScore"))
        return (
            3 if impact is None else impact,
            3 if effort is None else effort,
            item.get("category") or "general",
        )
    return item.impact, item.effort, item.category


def calculate_total_roi(items: Iterable[Any], metrics: MetricsInput) -> TotalROI:
    """
    Sum ROI across recommendations.

    Raw monthly values are summed and rounded once at the end.

    Raises:
        EmptyRecommendationSetError: If there is nothing to aggregate
        InvalidMetricsError: If metrics are not usable
    """
    items = list(items)
    if not items:
        raise EmptyRecommendationSetError(
            "Cannot calculate total ROI for an empty recommendation list", stage="roi"
        )

    metrics = validate_store_metrics(metrics)

    total_monthly = 0.0
    total_confidence = 0
    for item in items:
        impact, effort, category = _roi_inputs(item)
        roi = calculate_realistic_roi(impact, effort, category, metrics)
        total_monthly += roi.monthly_revenue_value
        total_confidence += roi.confidence

    monthly_display = round_half_up(total_monthly)

    return TotalROI(
        total_monthly=f"+${monthly_display:,}/mo",
        total_annual=f"+${monthly_display * 12:,}/yr",
        avg_confidence=round_half_up(total_confidence / len(items)),
        recommendation_count=len(items),
        total_monthly_value=total_monthly,
    )


def get_industry_benchmark(metrics: MetricsInput) -> IndustryBenchmark:
    """Compare store metrics against e-commerce industry averages"""
    metrics = validate_store_metrics(metrics)

    cr = format_plain(metrics.conversion_rate)
    aov = format_plain(metrics.avg_order_value)
    abandonment = format_plain(metrics.cart_abandonment_rate)

    cr_gap = metrics.conversion_rate - INDUSTRY_AVG_CR
    aov_gap = metrics.avg_order_value - INDUSTRY_AVG_AOV
    cart_gap = metrics.cart_abandonment_rate - INDUSTRY_AVG_CART_ABANDONMENT

    if cr_gap >= 0:
        cr_comparison = f"Your CR {cr}% is +{cr_gap:.1f}% above industry avg {INDUSTRY_AVG_CR}%"
    else:
        cr_comparison = f"Your CR {cr}% is {cr_gap:.1f}% below industry avg {INDUSTRY_AVG_CR}%"

    if aov_gap >= 0:
        aov_comparison = f"Your AOV ${aov} is +${abs(aov_gap):.0f} above industry avg ${INDUSTRY_AVG_AOV}"
    else:
        aov_comparison = f"Your AOV ${aov} is -${abs(aov_gap):.0f} below industry avg ${INDUSTRY_AVG_AOV}"

    if cart_gap <= 0:
        cart_comparison = (
            f"Your cart abandonment {abandonment}% is {abs(cart_gap):.1f}% better than "
            f"avg {INDUSTRY_AVG_CART_ABANDONMENT}%"
        )
    else:
        cart_comparison = (
            f"Your cart abandonment {abandonment}% is +{cart_gap:.1f}% worse than "
            f"avg {INDUSTRY_AVG_CART_ABANDONMENT}%"
        )

    return IndustryBenchmark(
        cr_comparison=cr_comparison,
        aov_comparison=aov_comparison,
        cart_abandonment_comparison=cart_comparison,
    )
