"""
Shared fixtures for the Conversion Advisor test suite
"""

import json

import pytest

from models import Recommendation, ShopData, StoreMetrics
from utils.clients.anthropic import ClaudeResponse


@pytest.fixture
def metrics():
    return StoreMetrics(
        conversion_rate=1.8,
        avg_order_value=85,
        monthly_visitors=12000,
        mobile_percentage=65,
        cart_abandonment_rate=68,
    )


@pytest.fixture
def metrics_payload():
    return {
        "conversionRate": 1.8,
        "avgOrderValue": 85,
        "monthlyVisitors": 12000,
        "mobilePercentage": 65,
        "cartAbandonmentRate": 68,
    }


@pytest.fixture
def shop_data():
    return ShopData(
        domain="example-store.myshopify.com",
        primary_goal="Increase conversion rate",
        theme_name="Dawn",
        top_products=[{"title": "Trail Runner", "handle": "trail-runner"}],
    )


@pytest.fixture
def specific_payload():
    """A recommendation that passes every validator rule"""
    return {
        "id": "rec-hero-cta",
        "title": "Reposition CTA 120px higher on mobile viewport",
        "description": "Move the button from 650px to 530px",
        "category": "hero",
        "impactScore": 4,
        "effortScore": 2,
        "implementation": [
            "Edit sections/hero.liquid and set margin-top to 24px",
            "Change the CTA wrapper padding in theme.css",
        ],
    }


@pytest.fixture
def make_rec():
    def _make(**overrides):
        fields = {
            "title": "Reposition CTA 120px higher on mobile viewport",
            "description": "Move the button from 650px to 530px",
            "implementation": ["Edit hero.liquid to set margin-top to 24px"],
        }
        fields.update(overrides)
        return Recommendation(**fields)

    return _make


class FakeClaude:
    """Stands in for call_claude, answering by stage"""

    model = "claude-sonnet-4-5-20250929"

    def __init__(self, stage1=None, stage2=None, stage3=None, error=None):
        self.responses = {"stage1": stage1, "stage2": stage2, "stage3": stage3}
        self.error = error
        self.calls = []

    @staticmethod
    def stage_of(system_prompt):
        if "critical conversion blockers" in system_prompt:
            return "stage1"
        if "deep-dive" in system_prompt:
            return "stage2"
        return "stage3"

    def __call__(self, system_prompt, user_prompt, screenshots):
        stage = self.stage_of(system_prompt)
        self.calls.append((stage, user_prompt))
        if self.error is not None:
            raise self.error

        text = self.responses[stage]
        if callable(text):
            text = text(user_prompt)
        if not isinstance(text, str):
            text = json.dumps(text)
        return ClaudeResponse(text=text, model=self.model, input_tokens=1000, output_tokens=500)


@pytest.fixture
def fake_claude():
    return FakeClaude
