"""
CRO Analysis Prompts for Claude API

Builds the single-shot analysis prompt and the three multi-stage prompts.
Each builder returns a (system_prompt, user_prompt) pair.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from models import ShopData, Stage1Problem, StoreMetrics

INDUSTRY_AVG_CR = 2.4


def _products(shop_data: ShopData, limit: Optional[int] = None) -> List[str]:
    products = shop_data.top_products[:limit] if limit else shop_data.top_products
    return [p.title for p in products]


def build_analysis_prompt(
    shop_data: ShopData,
    metrics: StoreMetrics,
    competitors: Optional[List[Dict[str, str]]] = None,
) -> Tuple[str, str]:
    """
    Generate the single-shot recommendation prompt.

    Args:
        shop_data: Store identity, goal, theme and top products
        metrics: Store metrics for this analysis run
        competitors: Optional competitor summaries ({"name", "heroCTA", "trustBadges"})

    Returns:
        (system_prompt, user_prompt)
    """
    system_prompt = (
        "You are an expert CRO (Conversion Rate Optimization) consultant analyzing a Shopify store.\n"
        "Return ONLY valid JSON. No markdown, no explanation."
    )

    product_lines = "\n".join(
        f"{i + 1}. {p.title} ({p.handle})" for i, p in enumerate(shop_data.top_products)
    )

    competitor_block = ""
    if competitors:
        competitor_lines = "\n".join(
            f"- {c.get('name', 'Unknown')}: {c.get('heroCTA', '')}, {c.get('trustBadges', '')}"
            for c in competitors
        )
        competitor_block = f"\nCOMPETITOR COMPARISON:\nTop competitors in this niche:\n{competitor_lines}\n"

    user_prompt = f"""STORE INFORMATION:
- Domain: {shop_data.domain}
- Primary Goal: {shop_data.primary_goal}
- Current Conversion Rate: {metrics.conversion_rate}%
- Average Order Value: ${metrics.avg_order_value}
- Cart Abandonment Rate: {metrics.cart_abandonment_rate}%
- Mobile Traffic: {metrics.mobile_percentage}%
- Monthly Visitors: {int(metrics.monthly_visitors):,}

THEME:
- Theme Name: {shop_data.theme_name}

TOP PRODUCTS:
{product_lines or "- (none provided)"}

VISUAL ANALYSIS:
Screenshots of the homepage hero, top product page and cart page are attached.
{competitor_block}
TASK:
Generate 10-15 prioritized, actionable recommendations to achieve the goal: "{shop_data.primary_goal}".

For EACH recommendation, provide:

1. **title**: Clear, action-oriented (e.g., "Change hero CTA from X to Y")
2. **category**: One of [hero, product, cart, checkout, mobile, trust, social_proof, urgency, pricing, navigation]
3. **description**: 2-3 sentences explaining the problem and solution
4. **impactScore**: 1-5 (how much this will move the needle)
5. **effortScore**: 1-5 (how hard to implement, 1=easy, 5=complex)
6. **estimatedUplift**: Range like "+0.3-0.5% conversion rate"
7. **estimatedROI**: Monthly revenue impact like "+$2,100-3,500/mo"
8. **reasoning**: Why this matters (data-driven, reference competitors or benchmarks)
9. **implementation**: Array of 3-5 steps, each starting with an action verb
10. **codeSnippet**: Exact Liquid/HTML/CSS code to copy-paste (if applicable)

PRIORITIZATION LOGIC:
- Quick wins first (high impact, low effort)
- Address the PRIMARY GOAL directly
- Be specific (not "improve CTA" but "change CTA from 'Buy Now' to 'Shop Best Sellers'")

OUTPUT FORMAT: JSON object with key "recommendations".

CRITICAL: No generic advice. Every recommendation must be specific to THIS store,
backed by data, implementable in <30 minutes and measurable."""

    return system_prompt, user_prompt


def build_stage1_prompt(shop_data: ShopData, metrics: StoreMetrics) -> Tuple[str, str]:
    """Stage 1: identify the 3-5 most critical conversion problems"""
    system_prompt = (
        "You are a CRO expert identifying critical conversion blockers.\n"
        "Return ONLY valid JSON array. No markdown, no explanation."
    )

    affected_mobile = round(metrics.monthly_visitors * metrics.mobile_percentage / 100 * 0.78)

    user_prompt = f"""Analyze this Shopify store and identify the 3-5 most critical conversion problems.

Store metrics:
- Conversion Rate: {metrics.conversion_rate}%
- AOV: ${metrics.avg_order_value}
- Traffic: {int(metrics.monthly_visitors)}/mo
- Mobile %: {metrics.mobile_percentage}%
- Cart Abandonment: {metrics.cart_abandonment_rate}%

Store: {shop_data.domain}
Theme: {shop_data.theme_name}
Top Products: {", ".join(_products(shop_data, 3))}

For each problem, provide:
- id: Unique identifier (e.g., "prob-hero-cta")
- title: MUST include specific measurements (px, %, $)
- severity: 1-10 (10 = critical blocker)
- affectedUsers: Percentage and count (e.g., "78% of mobile users = {affected_mobile}/mo")
- category: hero|product|cart|mobile|trust|checkout|navigation|speed
- quickEvidence: One-sentence proof with numbers

Return JSON array of 3-5 problems, sorted by severity DESC:
[{{"id": "...", "title": "...", "severity": 10, "affectedUsers": "...", "category": "...", "quickEvidence": "..."}}]"""

    return system_prompt, user_prompt


def build_stage2_prompt(problem: Stage1Problem, metrics: StoreMetrics) -> Tuple[str, str]:
    """Stage 2: deep dive on one problem, producing 3-4 concrete solutions"""
    system_prompt = (
        "You are a CRO expert doing deep-dive analysis.\n"
        "Return ONLY valid JSON object. No markdown, no explanation."
    )

    extra_orders = round(metrics.monthly_visitors * 0.005)

    user_prompt = f"""Deep dive analysis for problem: {problem.title}

Problem context:
- ID: {problem.id}
- Severity: {problem.severity}/10
- Affected Users: {problem.affected_users}
- Category: {problem.category}
- Evidence: {problem.quick_evidence}

Store context:
- Current CR: {metrics.conversion_rate}%
- Industry avg CR: {INDUSTRY_AVG_CR}%
- CR Gap: {INDUSTRY_AVG_CR - metrics.conversion_rate:.2f}%
- Monthly traffic: {int(metrics.monthly_visitors)}
- AOV: ${metrics.avg_order_value}

Provide:
1. whyItMatters: Psychology and business impact (2-3 sentences)
2. dataEvidence: Specific metrics proving this is a problem
3. psychologyPrinciple: The principle that is violated (e.g., "Hick's Law", "Social Proof")
4. recommendations: Array of 3-4 specific solutions

Each recommendation MUST have:
- title: Specific action WITH MEASUREMENTS (px, %, $)
- specificChange: Exact change with CSS values
- expectedOutcome: Realistic impact with exact numbers (e.g., "+0.5% CR = +{extra_orders} orders/mo")

Return JSON object:
{{
  "problemId": "{problem.id}",
  "whyItMatters": "...",
  "dataEvidence": "...",
  "psychologyPrinciple": "...",
  "recommendations": [
    {{"title": "...", "specificChange": "...", "expectedOutcome": "..."}}
  ]
}}"""

    return system_prompt, user_prompt


def build_stage3_prompt(
    recommendations: List[Dict[str, Any]], metrics: StoreMetrics
) -> Tuple[str, str]:
    """Stage 3: enrich and prioritize the deep-dive solutions for a busy merchant"""
    system_prompt = (
        "You are a senior eCommerce advisor presenting to a CEO.\n"
        "Translate technical CRO findings into clear business opportunities.\n"
        "Lead with money and impact, save technical details for implementation steps.\n"
        "Return ONLY valid JSON array. No markdown, no explanation."
    )

    user_prompt = f"""You have {len(recommendations)} CRO recommendations to enrich and prioritize.

Store metrics:
- Current CR: {metrics.conversion_rate}%
- Monthly traffic: {int(metrics.monthly_visitors):,}
- AOV: ${metrics.avg_order_value}
- Cart abandonment: {metrics.cart_abandonment_rate}%

Recommendations to process:
{json.dumps(recommendations, indent=2)}

For each recommendation provide:
1. id: Unique ID (rec-001, rec-002, etc.)
2. title: Business numbers + clear action (max 70 chars)
3. description: 2-3 sentences. Business problem and impact first, then the simple solution.
4. impactScore: 1-5 (5 = affects >50% of revenue)
5. effortScore: 1-5 (1 = 15 min, 5 = 1+ week)
6. category: hero|product|cart|checkout|mobile|trust|navigation|speed
7. estimatedUplift: "+X.X% conversion rate"
8. estimatedROI: "+$X,XXX/mo potential revenue"
9. reasoning: ONE sentence on buyer psychology
10. implementation: Array of 4-6 developer steps, each starting with an action verb
    (Edit, Add, Change, Remove) and naming the file or location
11. codeSnippet: Ready-to-use Liquid/CSS/JS code (50+ chars)
12. dependencies: Array of rec IDs to do first (or empty)
13. confidence: 0-100
14. benchmarkComparison: "Your store: X vs Top performers: Y"

Return JSON array of 10-12 recommendations sorted by priority."""

    return system_prompt, user_prompt
