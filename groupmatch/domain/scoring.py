# groupmatch/domain/scoring.py
"""
Variance-reduction match scoring.

A candidate improves a group in proportion to how much they flatten the
group's role-coverage vector: a team already strong in EXPERT gains little
from another EXPERT, but a lot from an under-represented CREATIVE.

Steps, for user scores P, group average G and contributing count n:

1. var_before = population_variance(G)   (0 when n == 0)
2. G' = (G * n + P) / (n + 1)
3. var_after = population_variance(G')
4. reduction = max(0, var_before - var_after), with float noise below
   REDUCTION_TOLERANCE snapped to 0
5. match = min(100, 100 * reduction / ceiling(n))
6. final = match * reliability

ceiling(n) is the reduction obtained when a one-hot group of n members is
joined by the exact complement of its only role: base * 4n / (n + 1)^2. It
keeps scores comparable across group sizes. The base defaults to the
variance of a one-hot vector and can be recalibrated.
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np

from groupmatch.domain.roles import ONE_HOT_VARIANCE, ROLES, RoleVector, population_variance

HIGH_REDUCTION = 0.05
# rounding in G' = (G*n + G)/(n+1) can leave a reduction of a few ulps when P == G
REDUCTION_TOLERANCE = 1e-12


@dataclass(frozen=True)
class MatchBreakdown:
    var_before: float
    var_after: float
    reduction: float
    ceiling: float
    match_score: float
    reliability: float
    final_score: float
    match_reason: str


def projected_average(group: RoleVector, n: int, candidate: RoleVector) -> RoleVector:
    return RoleVector((group.array * n + candidate.array) / (n + 1))


def match_reason(reduction: float, reliability: float) -> str:
    if reliability <= 0:
        return "Insufficient profile data"
    if reduction > HIGH_REDUCTION:
        return "Highly compatible - complements team strengths"
    if reduction > 0:
        return "Good compatibility - maintains team balance"
    return "Lower compatibility - overlapping profiles"


class MatchScorer:
    def __init__(self, ceiling_base: Optional[float] = None):
        if ceiling_base is not None and ceiling_base <= 0:
            raise ValueError(f"ceiling_base must be positive, got {ceiling_base}")
        self.ceiling_base = ceiling_base or ONE_HOT_VARIANCE

    def ceiling(self, n: int) -> float:
        if n <= 0:
            return self.ceiling_base
        return self.ceiling_base * 4 * n / (n + 1) ** 2

    def score(self, user_scores: RoleVector, reliability: float,
              group_scores: RoleVector, n: int) -> MatchBreakdown:
        if n < 0:
            raise ValueError(f"contributing member count must be >= 0, got {n}")
        if len(user_scores) != len(ROLES) or len(group_scores) != len(ROLES):
            raise ValueError("role vectors must have one component per role")

        var_before = population_variance(group_scores.array) if n > 0 else 0.0
        after = projected_average(group_scores, n, user_scores)
        var_after = population_variance(after.array)

        reduction = max(0.0, var_before - var_after)
        if reduction < REDUCTION_TOLERANCE:
            reduction = 0.0
        ceiling = self.ceiling(n)
        match = min(100.0, 100.0 * reduction / ceiling)

        reliability = float(np.clip(reliability, 0.0, 1.0))
        final = match * reliability
        return MatchBreakdown(
            var_before=var_before,
            var_after=var_after,
            reduction=reduction,
            ceiling=ceiling,
            match_score=match,
            reliability=reliability,
            final_score=final,
            match_reason=match_reason(reduction, reliability),
        )
