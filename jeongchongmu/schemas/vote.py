"""
Pydantic schemas for Vote entity.
"""
from typing import FrozenSet, List
from jeongchongmu.schemas.base import WireModel


class CastVoteRequest(WireModel):
    """Toggle one user's vote on one option."""
    user_id: int
    option_id: int


class VoteOption(WireModel):
    """One item of the expense, offered as a vote option."""
    option_id: int
    item_name: str
    price: int
    voted_user_ids: FrozenSet[int] = frozenset()


class Vote(WireModel):
    """Schema for vote status response."""
    vote_id: int
    expense_id: int
    payer_id: int  # expense payer, creator of the vote
    is_closed: bool = False
    options: List[VoteOption] = []

    def options_voted_by(self, user_id: int) -> FrozenSet[int]:
        """Option ids the given user currently holds a vote on."""
        return frozenset(
            option.option_id for option in self.options if user_id in option.voted_user_ids
        )
