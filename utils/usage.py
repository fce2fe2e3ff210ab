"""
Claude API usage and cost tracking.

Each analysis run owns a UsageTracker; callers merge trackers when they
want a wider view (per shop, per process). There is no module-level log.

Pricing (per 1K tokens):
- Claude Sonnet 4.5: $0.003 input, $0.015 output
- Claude 3 Haiku: $0.00025 input, $0.00125 output
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "claude-sonnet-4-5-20250929": {"input": 0.003, "output": 0.015},
    "claude-3-haiku-20240307": {"input": 0.00025, "output": 0.00125},
    "default": {"input": 0.003, "output": 0.015},
}

# Typical token usage of a 3-stage analysis
STAGE_ESTIMATES = [
    {"stage": "Stage 1: Problem ID", "input_tokens": 2000, "output_tokens": 1000},
    {"stage": "Stage 2: Deep Dives (x3)", "input_tokens": 6000, "output_tokens": 3000},
    {"stage": "Stage 3: Enrichment", "input_tokens": 4000, "output_tokens": 4000},
]
ESTIMATE_MODEL = "claude-sonnet-4-5-20250929"

DEFAULT_BUDGET = 50.0


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Dollar cost of one API call"""
    pricing = MODEL_PRICING.get(model, MODEL_PRICING["default"])
    return (input_tokens / 1000) * pricing["input"] + (output_tokens / 1000) * pricing["output"]


def estimate_analysis_cost() -> Dict[str, object]:
    """Estimated cost of a full multi-stage analysis"""
    breakdown = [
        {**estimate, "cost": calculate_cost(ESTIMATE_MODEL, estimate["input_tokens"], estimate["output_tokens"])}
        for estimate in STAGE_ESTIMATES
    ]
    total = sum(item["cost"] for item in breakdown)
    return {"estimated": f"${total:.2f}/analysis", "breakdown": breakdown}


def check_budget(spent: float, budget_limit: float = DEFAULT_BUDGET) -> Dict[str, object]:
    """Compare spend with a monthly budget; warn from 75% and 90% usage"""
    percent_used = (spent / budget_limit) * 100 if budget_limit > 0 else 100.0

    warning = None
    if percent_used >= 90:
        warning = "CRITICAL: Near budget limit!"
    elif percent_used >= 75:
        warning = "Warning: Approaching budget limit"

    return {
        "within_budget": spent <= budget_limit,
        "percent_used": int(percent_used + 0.5),
        "remaining": f"${budget_limit - spent:.2f}",
        "warning": warning,
    }


class APIUsage(BaseModel):
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    shop: str
    stage: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UsageTracker:
    """Accumulates API usage records for one analysis run"""

    def __init__(self, budget_limit: float = DEFAULT_BUDGET):
        self.budget_limit = budget_limit
        self.records: List[APIUsage] = []

    def log_usage(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        shop: str,
        stage: Optional[str] = None,
    ) -> float:
        """Record one API call and return its cost"""
        cost = calculate_cost(model, input_tokens, output_tokens)
        self.records.append(
            APIUsage(
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cost=cost,
                shop=shop,
                stage=stage,
            )
        )

        logger.info(f"💰 API Usage: {model} | {shop}{f' | {stage}' if stage else ''}")
        logger.info(f"   Tokens: {input_tokens:,} in / {output_tokens:,} out")
        logger.info(f"   Cost: ${cost:.4f}")
        return cost

    def session_spend(self, shop: Optional[str] = None) -> Dict[str, float]:
        records = [r for r in self.records if shop is None or r.shop == shop]
        return {
            "total_cost": sum(r.cost for r in records),
            "total_input_tokens": sum(r.input_tokens for r in records),
            "total_output_tokens": sum(r.output_tokens for r in records),
            "call_count": len(records),
        }

    def merge(self, other: "UsageTracker") -> "UsageTracker":
        """Fold another run's records into this tracker"""
        self.records.extend(other.records)
        return self

    def clear(self) -> None:
        self.records.clear()

    def format_usage_report(self, shop: Optional[str] = None) -> str:
        spend = self.session_spend(shop)
        estimate = estimate_analysis_cost()
        budget = check_budget(spend["total_cost"], self.budget_limit)
        status = f"⚠️ {budget['warning']}" if budget["warning"] else "✅ Within budget"

        return f"""📊 API Usage Report{f' for {shop}' if shop else ''}
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

💰 Session Spend: ${spend['total_cost']:.4f}
📞 API Calls: {spend['call_count']}
📥 Input Tokens: {spend['total_input_tokens']:,}
📤 Output Tokens: {spend['total_output_tokens']:,}

📈 Budget Status:
   Used: {budget['percent_used']}% of ${self.budget_limit:g} monthly limit
   Remaining: {budget['remaining']}
   {status}

📋 Per-Analysis Estimate: {estimate['estimated']}"""
