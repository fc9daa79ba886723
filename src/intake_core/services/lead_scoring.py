"""Lead quality scoring.

A lead's quality score (0-100) combines four parts:

- completeness of the client's contact details and case description
- urgency (client supplied, else the model's estimate, else 5)
- complexity keywords found in the case description
- a bonus for the case category

The score drives the lead's temperature (hot/warm/cold) and, together with the
practice area and urgency, an estimated lead value in dollars.
"""

from typing import Optional

from intake_core.database.models import Conversation

_SEVERITY_WORDS = ("serious", "severe", "major", "significant")
_FINANCIAL_WORDS = ("$", "dollar", "money", "compensation", "damages")
_COMPLEXITY_WORDS = ("multiple", "complex", "complicated", "several")
_URGENCY_WORDS = ("immediately", "asap", "urgent", "emergency")

_CATEGORY_BONUS = {
    "personal injury": 15,
    "workers compensation": 15,
    "medical malpractice": 15,
    "family law": 12,
    "criminal defense": 12,
    "immigration": 12,
    "estate planning": 10,
    "business law": 10,
    "real estate": 10,
}
_DEFAULT_CATEGORY_BONUS = 8

_BASE_VALUE = {
    "personal injury": 150.0,
    "medical malpractice": 200.0,
    "workers compensation": 120.0,
    "criminal defense": 100.0,
    "family law": 80.0,
    "immigration": 70.0,
    "estate planning": 60.0,
    "business law": 90.0,
    "real estate": 70.0,
}
_DEFAULT_BASE_VALUE = 50.0

MAX_COMPLEXITY_BONUS = 25


def effective_urgency(conversation: Conversation) -> int:
    """Client-supplied urgency wins over the model's estimate."""
    if conversation.urgency_score is not None:
        return conversation.urgency_score
    if conversation.openai_urgency_score is not None:
        return conversation.openai_urgency_score
    return 5


def _completeness(conversation: Conversation) -> int:
    score = 0
    if conversation.name:
        score += 10
    email = conversation.email or ""
    if "@" in email and "." in email.split("@", 1)[1]:
        score += 10
    if conversation.phone and len(conversation.phone) >= 10:
        score += 10

    description = conversation.case_description or ""
    if len(description) > 100:
        score += 10
    elif len(description) > 50:
        score += 5
    elif len(description) > 20:
        score += 2
    return score


def _urgency_bonus(urgency: int) -> int:
    if urgency >= 8:
        return 20
    if urgency >= 6:
        return 15
    if urgency >= 4:
        return 10
    return 5


def _complexity_bonus(description: Optional[str]) -> int:
    if not description:
        return 0
    text = description.lower()
    bonus = 0
    if any(word in text for word in _SEVERITY_WORDS):
        bonus += 8
    if any(word in text for word in _FINANCIAL_WORDS):
        bonus += 7
    if any(word in text for word in _COMPLEXITY_WORDS):
        bonus += 5
    if any(word in text for word in _URGENCY_WORDS):
        bonus += 5
    return min(bonus, MAX_COMPLEXITY_BONUS)


def _category_bonus(category: Optional[str]) -> int:
    if not category:
        return 0
    return _CATEGORY_BONUS.get(category.strip().lower(), _DEFAULT_CATEGORY_BONUS)


def calculate_quality_score(conversation: Conversation) -> int:
    """Quality score of the lead built from this conversation, capped at 100."""
    score = (
        _completeness(conversation)
        + _urgency_bonus(effective_urgency(conversation))
        + _complexity_bonus(conversation.case_description)
        + _category_bonus(conversation.case_category)
    )
    return min(score, 100)


def assign_temperature(quality_score: float) -> str:
    if quality_score >= 80:
        return "hot"
    if quality_score >= 60:
        return "warm"
    return "cold"


def estimate_lead_value(practice_area_name: Optional[str], urgency: int, quality_score: float) -> float:
    """Estimated value of the lead to a firm, in dollars."""
    base = _BASE_VALUE.get((practice_area_name or "").strip().lower(), _DEFAULT_BASE_VALUE)

    if quality_score >= 90:
        multiplier = 1.5
    elif quality_score >= 75:
        multiplier = 1.3
    elif quality_score >= 60:
        multiplier = 1.1
    else:
        multiplier = 0.9

    if urgency >= 8:
        multiplier *= 1.2
    elif urgency >= 6:
        multiplier *= 1.1

    return round(base * multiplier, 2)
