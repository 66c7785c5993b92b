"""Score a posting against the user profile.

The relevance score blends the semantic similarity with three heuristics:

    relevance = 0.60 * similarity + 0.20 * budget + 0.10 * client + 0.10 * skills

All sub-scores are on a 0-100 scale and every output is rounded half-up to
two decimals, so identical inputs always reproduce identical scores.
"""
from __future__ import annotations

import math

from gigradar.log import get_logger
from gigradar.models import (
    Budget,
    ClientInfo,
    FixedBudget,
    HourlyBudget,
    RawPosting,
    ScoreBreakdown,
    UserProfile,
)

log = get_logger(__name__)

SIMILARITY_WEIGHT = 0.60
BUDGET_WEIGHT = 0.20
CLIENT_WEIGHT = 0.10
SKILLS_WEIGHT = 0.10

NEUTRAL_SCORE = 50.0
HOURS_PER_MONTH = 160

# (multiple of the profile minimum, score), checked top-down.
BUDGET_TIERS: list[tuple[float, float]] = [
    (2.0, 100.0),
    (1.5, 90.0),
    (1.0, 80.0),
    (0.7, 60.0),
    (0.5, 40.0),
]
BUDGET_FLOOR = 20.0

SPEND_TIERS: list[tuple[float, float]] = [
    (100_000, 30.0),
    (50_000, 25.0),
    (10_000, 20.0),
    (5_000, 15.0),
    (1_000, 10.0),
]
HIRE_RATE_TIERS: list[tuple[float, float]] = [
    (90, 20.0),
    (80, 15.0),
    (70, 10.0),
    (50, 5.0),
]
VERIFIED_BONUS = 10.0
SKILLS_BOOST = 1.2


def round2(value: float) -> float:
    """Round half-up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def _tier(value: float, tiers: list[tuple[float, float]]) -> float:
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0.0


def estimate_budget(budget: Budget) -> float:
    """Fixed amount, or the hourly ceiling stretched over a working month."""
    if budget is None:
        return 0.0
    if isinstance(budget, FixedBudget):
        return budget.amount or 0.0
    if isinstance(budget, HourlyBudget):
        return (budget.max or 0.0) * HOURS_PER_MONTH
    raise TypeError(f"unknown budget variant: {budget!r}")


def budget_score(budget: Budget, min_budget: float) -> float:
    estimate = estimate_budget(budget)
    if estimate <= 0:
        return NEUTRAL_SCORE
    for multiple, points in BUDGET_TIERS:
        if estimate >= min_budget * multiple:
            return points
    return BUDGET_FLOOR


def client_score(client: ClientInfo | None) -> float:
    score = NEUTRAL_SCORE
    if client is None:
        return score
    if client.total_spend:
        score += _tier(client.total_spend, SPEND_TIERS)
    if client.hire_rate:
        score += _tier(client.hire_rate, HIRE_RATE_TIERS)
    if client.payment_verified:
        score += VERIFIED_BONUS
    return min(100.0, score)


def skills_score(posting_skills: list[str], profile_skills: list[str]) -> float:
    """Share of posting skills that overlap a profile skill, boosted 1.2x.

    Overlap is a case-insensitive substring test in either direction, so
    "react" matches "React Native" and "Node.js" matches "node".
    """
    if not posting_skills or not profile_skills:
        return NEUTRAL_SCORE
    wanted = [s.lower() for s in profile_skills]
    matches = [
        skill
        for skill in (p.lower() for p in posting_skills)
        if any(skill in w or w in skill for w in wanted)
    ]
    percentage = len(matches) / len(posting_skills) * 100
    return min(100.0, percentage * SKILLS_BOOST)


def relevance_score(similarity: float, budget: float, client: float, skills: float) -> float:
    return round2(
        SIMILARITY_WEIGHT * similarity
        + BUDGET_WEIGHT * budget
        + CLIENT_WEIGHT * client
        + SKILLS_WEIGHT * skills
    )


def score_posting(posting: RawPosting, similarity: float, profile: UserProfile) -> ScoreBreakdown:
    b = budget_score(posting.budget, profile.min_budget)
    c = client_score(posting.client)
    s = skills_score(posting.skill_tags, profile.skills)
    breakdown = ScoreBreakdown(
        embedding_similarity=round2(similarity),
        budget_score=round2(b),
        client_score=round2(c),
        skills_score=round2(s),
        relevance_score=relevance_score(similarity, b, c, s),
    )
    log.debug("Scored %s → %s", posting.source_id, breakdown)
    return breakdown
