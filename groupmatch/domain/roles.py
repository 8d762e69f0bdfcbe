# groupmatch/domain/roles.py
"""
Role enumeration and the fixed-size role score vector.

Pure domain code: no DB access, no logging. Every vector component lives in
[0, 1] and is clamped on construction, independently of the other components.
"""
from enum import Enum
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Union

import numpy as np


class Role(str, Enum):
    LEADER = "LEADER"
    PLANNER = "PLANNER"
    EXPERT = "EXPERT"
    CREATIVE = "CREATIVE"
    COMMUNICATOR = "COMMUNICATOR"
    TEAM_PLAYER = "TEAM_PLAYER"
    CHALLENGER = "CHALLENGER"

    @property
    def index(self) -> int:
        return ROLES.index(self)


ROLES = tuple(Role)
ROLE_COUNT = len(ROLES)


def clamp_scores(values: Iterable[Optional[float]]) -> np.ndarray:
    """Clip scores to [0, 1] as float64. None and NaN are written as 0."""
    arr = np.array([np.nan if v is None else v for v in values], dtype=np.float64)
    arr = np.nan_to_num(arr, nan=0.0, posinf=1.0, neginf=0.0)
    return np.clip(arr, 0.0, 1.0)


def clamp_unit(value: Optional[float]) -> float:
    return float(clamp_scores([value])[0])


def population_variance(values: Sequence[float]) -> float:
    """Mean of squared deviations from the mean (ddof=0). 0 for an empty sequence."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(np.var(arr))


class RoleVector:
    """
    Immutable vector of 7 role scores indexed by ``Role``, backed by a
    read-only float64 array.

    >>> v = RoleVector.from_mapping({Role.LEADER: 1.4, "PLANNER": -2})
    >>> v[Role.LEADER], v[Role.PLANNER]
    (1.0, 0.0)
    """

    __slots__ = ("_array",)

    def __init__(self, values: Iterable[Optional[float]] = ()):
        arr = clamp_scores(values)
        if arr.size == 0:
            arr = np.zeros(ROLE_COUNT)
        if arr.shape != (ROLE_COUNT,):
            raise ValueError(f"RoleVector needs {ROLE_COUNT} components, got {arr.size}")
        arr.flags.writeable = False
        self._array = arr

    @classmethod
    def zeros(cls) -> "RoleVector":
        return cls(np.zeros(ROLE_COUNT))

    @classmethod
    def one_hot(cls, role: Role) -> "RoleVector":
        arr = np.zeros(ROLE_COUNT)
        arr[role.index] = 1.0
        return cls(arr)

    @classmethod
    def from_mapping(cls, scores: Mapping[Union[Role, str], Optional[float]]) -> "RoleVector":
        by_role = {Role(k): v for k, v in scores.items()}
        return cls(by_role.get(r, 0.0) for r in ROLES)

    def __getitem__(self, role: Union[Role, int]) -> float:
        if isinstance(role, Role):
            return float(self._array[role.index])
        return float(self._array[role])

    def __iter__(self) -> Iterator[float]:
        return iter(self.values)

    def __len__(self) -> int:
        return ROLE_COUNT

    def __eq__(self, other) -> bool:
        if not isinstance(other, RoleVector):
            return NotImplemented
        return bool(np.array_equal(self._array, other._array))

    def __hash__(self) -> int:
        return hash(self.values)

    def __repr__(self) -> str:
        inner = ", ".join(f"{r.name}={v:.3f}" for r, v in zip(ROLES, self._array))
        return f"RoleVector({inner})"

    @property
    def array(self) -> np.ndarray:
        return self._array

    @property
    def values(self) -> tuple:
        return tuple(self._array.tolist())

    def as_dict(self) -> Dict[str, float]:
        return {r.value: v for r, v in zip(ROLES, self._array.tolist())}

    def mean(self) -> float:
        return float(np.mean(self._array))

    def variance(self) -> float:
        return float(np.var(self._array))

    def dominant_role(self) -> Role:
        # TEAM_PLAYER wins ties, including the all-zero vector
        if self._array[Role.TEAM_PLAYER.index] >= self._array.max():
            return Role.TEAM_PLAYER
        return ROLES[int(np.argmax(self._array))]


# variance of (1, 0, 0, 0, 0, 0, 0): (1/7) * (1 - 1/7) = 6/49
ONE_HOT_VARIANCE = RoleVector.one_hot(Role.LEADER).variance()
