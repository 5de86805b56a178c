"""
Similarity scoring between a seed listing and a candidate.

Responsibilities:
- Compute a deterministic, non-negative score from additive signals.

Non-Responsibilities:
- No filtering or ranking.
- No store access.

Invariant:
A field missing on either side contributes nothing. Given identical
inputs (including ``now``) the score is always the same.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from .seed import Candidate, Seed

JOB_TYPE_WEIGHT = 4
INDUSTRY_WEIGHT = 3
WORK_STYLE_WEIGHT = 1
AREA_WEIGHT = 1
LANGUAGE_WEIGHT = 2
TOOL_WEIGHT = 1

RECENCY_MAX_BONUS = 2.0
RECENCY_DAYS_PER_POINT = 15.0  # bonus reaches zero after 30 days

SECONDS_PER_DAY = 86400.0


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return a is not None and b is not None and a == b


def overlap(seed_terms: Iterable[str], candidate_terms: Iterable[str]) -> int:
    """Count candidate terms (with repeats) that appear among the seed terms."""
    wanted = set(seed_terms)
    return sum(1 for term in candidate_terms if term in wanted)


def recency_bonus(updated_at: Optional[datetime], now: datetime) -> float:
    """Linear decay from 2.0 at age zero to 0 at 30 days; 0 when undated."""
    if updated_at is None:
        return 0.0
    days = max(0.0, (now - updated_at).total_seconds() / SECONDS_PER_DAY)
    return max(0.0, RECENCY_MAX_BONUS - days / RECENCY_DAYS_PER_POINT)


def score(seed: Seed, candidate: Candidate, now: Optional[datetime] = None) -> float:
    """
    Score a candidate against the seed.

    Args:
        seed: Comparison basis
        candidate: Projected listing
        now: Reference time for the recency bonus (default: current UTC time)

    Returns:
        Non-negative score
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    total = 0.0
    if _same(seed.job_type, candidate.job_type):
        total += JOB_TYPE_WEIGHT
    if _same(seed.industry, candidate.industry):
        total += INDUSTRY_WEIGHT
    if _same(seed.work_style, candidate.work_style):
        total += WORK_STYLE_WEIGHT
    if _same(seed.area_state, candidate.area_state):
        total += AREA_WEIGHT

    total += LANGUAGE_WEIGHT * overlap(seed.languages, candidate.languages)
    total += TOOL_WEIGHT * overlap(seed.tools, candidate.tools)
    total += recency_bonus(candidate.updated_at, now)
    return total
