"""
Pydantic schemas for Group and GroupMember entities.
"""
from pydantic import Field, model_validator
from typing import List, Optional
from datetime import datetime
import enum
from jeongchongmu.schemas.base import WireModel


class MemberRole(str, enum.Enum):
    """Role of a member within a group."""
    OWNER = "OWNER"
    MEMBER = "MEMBER"


class UserSummary(WireModel):
    """Schema for a user reference."""
    id: int
    name: str


class GroupMember(WireModel):
    """Schema for group member response."""
    id: int
    group_id: int
    user: UserSummary
    role: MemberRole = MemberRole.MEMBER
    joined_at: Optional[datetime] = None


class GroupRequest(WireModel):
    """Schema for group creation and rename."""
    name: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None


class JoinGroupRequest(WireModel):
    """Schema for joining a group by invite code."""
    invite_code: str = Field(min_length=1)


class Group(WireModel):
    """Schema for group response."""
    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    invite_code: str
    invite_link: Optional[str] = None
    creator: Optional[UserSummary] = None
    member_count: int = 0
    created_at: Optional[datetime] = None
    members: List[GroupMember] = []

    @model_validator(mode="after")
    def check_single_owner(self):
        """A group with a known member list has exactly one OWNER."""
        if self.members:
            owners = [m for m in self.members if m.role == MemberRole.OWNER]
            if len(owners) != 1:
                raise ValueError(f"group {self.id} must have exactly one owner, found {len(owners)}")
        return self

    @property
    def owner(self) -> Optional[GroupMember]:
        for member in self.members:
            if member.role == MemberRole.OWNER:
                return member
        return None
