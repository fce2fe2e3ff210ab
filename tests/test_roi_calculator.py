import math

import pytest

from models import Recommendation
from utils.errors import EmptyRecommendationSetError, InvalidMetricsError
from utils.roi.calculator import (
    calculate_realistic_roi,
    calculate_total_roi,
    format_number,
    format_roi_for_display,
    get_industry_benchmark,
    round_half_up,
    validate_store_metrics,
)


class TestCalculateRealisticROI:
    def test_checkout_scenario(self, metrics):
        roi = calculate_realistic_roi(5, 2, "checkout", metrics)
        assert "1.12%" in roi.estimated_lift
        assert roi.estimated_lift == "+1.12% CR"
        assert roi.confidence == 95
        assert roi.monthly_revenue == "+$11,424/mo"
        assert roi.annual_revenue == "+$137,088/yr"
        assert math.isclose(roi.annual_revenue_value, roi.monthly_revenue_value * 12)

    def test_annual_matches_monthly_display(self, metrics):
        for impact in range(1, 6):
            roi = calculate_realistic_roi(impact, 3, "hero", metrics)
            monthly = int(roi.monthly_revenue.strip("+$/mo").replace(",", ""))
            annual = int(roi.annual_revenue.strip("+$/yr").replace(",", ""))
            assert annual == monthly * 12

    def test_breakdown(self, metrics):
        roi = calculate_realistic_roi(5, 2, "checkout", metrics)
        assert roi.calculation.current == "1.80% CR × 12,000 visits = 216 orders/mo"
        assert roi.calculation.projected == "2.92% CR × 12,000 visits = 350 orders/mo"
        assert roi.calculation.difference == "+134 orders × $85 AOV = +$11,424/mo"
        assert roi.assumptions[1] == "Affects all traffic"
        assert roi.assumptions[-1] == "Confidence 95% based on effort level 2/5"

    def test_mobile_scopes_traffic(self, metrics):
        mobile = calculate_realistic_roi(4, 2, "mobile", metrics)
        hero = calculate_realistic_roi(4, 2, "hero", metrics)
        assert "7,800 visits" in mobile.calculation.current
        assert mobile.assumptions[1] == "Mobile-only impact (65% of traffic = 7,800 visitors)"
        assert mobile.monthly_revenue_value < hero.monthly_revenue_value

    def test_category_is_case_insensitive(self, metrics):
        assert calculate_realistic_roi(3, 3, "CART", metrics) == calculate_realistic_roi(3, 3, "cart", metrics)

    def test_unknown_category_uses_neutral_multiplier(self, metrics):
        roi = calculate_realistic_roi(3, 3, "pricing", metrics)
        assert roi.estimated_lift == "+0.30% CR"

    def test_scores_are_clamped(self, metrics):
        assert calculate_realistic_roi(9, 0, "hero", metrics) == calculate_realistic_roi(5, 1, "hero", metrics)

    def test_confidence_table(self, metrics):
        assert calculate_realistic_roi(2, 5, "hero", metrics).confidence == 55
        assert calculate_realistic_roi(3, 3, "hero", metrics).confidence == 80
        assert calculate_realistic_roi(4, 1, "hero", metrics).confidence == 95

    def test_higher_impact_never_lowers_revenue(self, metrics):
        values = [calculate_realistic_roi(i, 3, "trust", metrics).monthly_revenue_value for i in range(1, 6)]
        assert values == sorted(values)

    def test_accepts_camel_case_mapping(self, metrics, metrics_payload):
        assert calculate_realistic_roi(3, 3, "hero", metrics_payload) == calculate_realistic_roi(3, 3, "hero", metrics)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"avg_order_value": 0},
            {"avg_order_value": float("nan")},
            {"monthly_visitors": float("inf")},
            {"monthly_visitors": -10},
            {"conversion_rate": 120},
            {"mobile_percentage": -1},
        ],
    )
    def test_invalid_metrics(self, metrics, overrides):
        bad = metrics.model_copy(update=overrides)
        with pytest.raises(InvalidMetricsError):
            calculate_realistic_roi(3, 3, "hero", bad)

    def test_missing_metric_field(self):
        with pytest.raises(InvalidMetricsError):
            validate_store_metrics({"conversionRate": 2})

    def test_non_numeric_score(self, metrics):
        with pytest.raises(InvalidMetricsError):
            calculate_realistic_roi("lots", 3, "hero", metrics)


class TestTotalROI:
    def test_sums_raw_values(self, metrics):
        total = calculate_total_roi(
            [
                {"impact": 5, "effort": 2, "category": "checkout"},
                {"impact": 3, "effort": 3, "category": "product"},
            ],
            metrics,
        )
        assert total.total_monthly == "+$14,484/mo"
        assert total.total_annual == "+$173,808/yr"
        assert total.avg_confidence == 88
        assert total.recommendation_count == 2

    def test_accepts_recommendations(self, metrics):
        rec = Recommendation(title="A", impact_score=5, effort_score=2, category="checkout")
        assert calculate_total_roi([rec], metrics).total_monthly == "+$11,424/mo"

    def test_empty_list(self, metrics):
        with pytest.raises(EmptyRecommendationSetError) as exc_info:
            calculate_total_roi([], metrics)
        assert exc_info.value.stage == "roi"


class TestBenchmark:
    def test_below_average_store(self, metrics):
        benchmark = get_industry_benchmark(metrics)
        assert benchmark.cr_comparison == "Your CR 1.8% is -0.6% below industry avg 2.4%"
        assert benchmark.aov_comparison == "Your AOV $85 is -$35 below industry avg $120"
        assert benchmark.cart_abandonment_comparison == (
            "Your cart abandonment 68% is 1.8% better than avg 69.8%"
        )

    def test_above_average_store(self, metrics):
        strong = metrics.model_copy(
            update={"conversion_rate": 3.5, "avg_order_value": 150, "cart_abandonment_rate": 75}
        )
        benchmark = get_industry_benchmark(strong)
        assert benchmark.cr_comparison == "Your CR 3.5% is +1.1% above industry avg 2.4%"
        assert benchmark.aov_comparison == "Your AOV $150 is +$30 above industry avg $120"
        assert benchmark.cart_abandonment_comparison == (
            "Your cart abandonment 75% is +5.2% worse than avg 69.8%"
        )


def test_format_roi_for_display(metrics):
    roi = calculate_realistic_roi(5, 2, "checkout", metrics)
    text = format_roi_for_display(roi)
    assert text.startswith("**Expected Impact:**\n+1.12% CR (95% confidence)")
    assert "- Monthly: +$11,424/mo" in text
    assert "- Annual: +$137,088/yr" in text
    assert "**Calculation:**" in text
    assert "- AOV remains constant at $85" in text


def test_formatting_helpers():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert format_number(12000) == "12,000"
    assert format_number(7800.5) == "7,800.5"
