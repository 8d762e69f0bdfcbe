# groupmatch/services/events.py
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ProfileUpdated:
    user_id: int


@dataclass(frozen=True)
class GroupCreated:
    group_id: int
    creator_id: int


@dataclass(frozen=True)
class MembershipChanged:
    group_id: int
    user_id: Optional[int] = None
    joined: bool = True


Event = Union[ProfileUpdated, GroupCreated, MembershipChanged]
