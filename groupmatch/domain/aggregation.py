# groupmatch/domain/aggregation.py
from typing import Iterable, Tuple

import numpy as np

from groupmatch.domain.models import CharacteristicProfile
from groupmatch.domain.roles import RoleVector


def aggregate(profiles: Iterable[CharacteristicProfile]) -> Tuple[RoleVector, int]:
    """
    Reliability-weighted mean of member role scores.

    avg[r] = sum(scores[r] * reliability) / sum(reliability) over members with
    reliability > 0. Returns (average, contributing_count); the average is the
    zero vector when nobody contributes.

    Members are stacked in user_id order before averaging, so the result is
    bit-identical for identical inputs.

    >>> p1 = CharacteristicProfile(user_id=1, scores=RoleVector([0.9, 0, 0, 0, 0, 0, 0]),
    ...                            quiz_status="COMPLETED")
    >>> aggregate([p1])[0][0], aggregate([p1])[1]
    (0.9, 1)
    """
    contributing = sorted(
        (p for p in profiles if p.reliability > 0),
        key=lambda p: p.user_id,
    )
    if not contributing:
        return RoleVector.zeros(), 0

    matrix = np.vstack([p.scores.array for p in contributing])
    weights = np.array([p.reliability for p in contributing])
    return RoleVector(np.average(matrix, axis=0, weights=weights)), len(contributing)
