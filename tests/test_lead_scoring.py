"""Tests for lead quality scoring."""

import pytest

from intake_core.database.models import Conversation
from intake_core.services.lead_scoring import (
    assign_temperature,
    calculate_quality_score,
    effective_urgency,
    estimate_lead_value,
)


def _conversation(**fields) -> Conversation:
    return Conversation(tavus_conversation_id="tv-1", **fields)


class TestQualityScore:
    def test_complete_urgent_case_is_capped_at_100(self):
        conversation = _conversation(
            name="Jane Doe",
            email="jane@example.com",
            phone="5125550100",
            case_description=(
                "I was in a severe accident with multiple vehicles and need help urgently. "
                "The damages to my car and medical bills are significant."
            ),
            urgency_score=9,
            case_category="Personal Injury",
        )
        assert calculate_quality_score(conversation) == 100

    def test_empty_conversation_only_gets_default_urgency(self):
        assert calculate_quality_score(_conversation()) == 10

    def test_contact_details_are_validated_loosely(self):
        partial = _conversation(name="Jane", email="not-an-email", phone="555-0100")
        assert calculate_quality_score(partial) == 10 + 10

    def test_unlisted_category_gets_default_bonus(self):
        base = calculate_quality_score(_conversation())
        assert calculate_quality_score(_conversation(case_category="Bankruptcy")) == base + 8
        assert calculate_quality_score(_conversation(case_category="family law")) == base + 12

    @pytest.mark.parametrize(
        "length,bonus",
        [(10, 0), (30, 2), (60, 5), (120, 10)],
    )
    def test_description_length_bands(self, length, bonus):
        conversation = _conversation(case_description="x" * length)
        assert calculate_quality_score(conversation) == 10 + bonus


class TestUrgency:
    def test_client_value_wins(self):
        assert effective_urgency(_conversation(urgency_score=2, openai_urgency_score=9)) == 2

    def test_model_value_then_default(self):
        assert effective_urgency(_conversation(openai_urgency_score=7)) == 7
        assert effective_urgency(_conversation()) == 5


@pytest.mark.parametrize("score,temperature", [(95, "hot"), (80, "hot"), (79, "warm"), (60, "warm"), (59, "cold")])
def test_temperature_bands(score, temperature):
    assert assign_temperature(score) == temperature


class TestLeadValue:
    def test_high_quality_urgent_personal_injury(self):
        assert estimate_lead_value("Personal Injury", 9, 95) == pytest.approx(270.0)

    def test_unknown_area_low_quality(self):
        assert estimate_lead_value(None, 3, 50) == pytest.approx(45.0)

    def test_area_lookup_is_case_insensitive(self):
        assert estimate_lead_value("Workers Compensation", 6, 80) == pytest.approx(171.6)
