"""
Vote endpoints for item based settlement.

The backend only exposes a toggle per (user, option); see
services.vote_reconciler for how a full selection is applied.
"""
from typing import Optional
from jeongchongmu.api.client import ApiClient
from jeongchongmu.core.exceptions import (
    AuthorizationError,
    BadRequestError,
    NotFoundError,
    VoteAlreadyExistsError,
    VoteClosedError,
)
from jeongchongmu.schemas.vote import CastVoteRequest, Vote


class VoteApi:
    """Vote service."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def create_vote(self, expense_id: int) -> int:
        """Open a vote whose options are the expense's items. Returns the vote id."""
        try:
            data = await self.client.post(f"/api/votes/{expense_id}", default_error="Failed to create vote.")
        except BadRequestError as e:
            raise VoteAlreadyExistsError(e.message, e.status_code) from e
        return int(data)

    async def get_vote_status(self, expense_id: int) -> Optional[Vote]:
        """Current vote status, or None when no vote exists for the expense."""
        try:
            data = await self.client.get(f"/api/votes/{expense_id}", default_error="Failed to load vote status.")
        except NotFoundError:
            return None
        return Vote.model_validate(data)

    async def toggle_vote(self, user_id: int, option_id: int) -> None:
        """Flip the user's vote on one option."""
        request = CastVoteRequest(user_id=user_id, option_id=option_id)
        try:
            await self.client.post("/api/votes/cast", json=request.to_payload(), default_error="Failed to cast vote.")
        except AuthorizationError as e:
            if e.status_code == 403:
                raise VoteClosedError("The vote is closed.", e.status_code) from e
            raise

    async def close_vote(self, expense_id: int) -> int:
        """Close the vote and let the backend create the settlement. Returns the settlement id."""
        try:
            data = await self.client.post(f"/api/votes/{expense_id}/close", default_error="Failed to close vote.")
        except BadRequestError as e:
            raise VoteClosedError(e.message, e.status_code) from e
        return int(data)

    async def delete_vote(self, expense_id: int) -> None:
        """Delete an open vote so it can be created again."""
        try:
            await self.client.delete(f"/api/votes/{expense_id}", default_error="Failed to delete vote.")
        except BadRequestError as e:
            raise VoteClosedError(e.message, e.status_code) from e
