"""
Settlement endpoints.
"""
import logging
from jeongchongmu.api.client import ApiClient
from jeongchongmu.core.exceptions import ApiError, ConflictError, DuplicateSettlementError, NotFoundError
from jeongchongmu.schemas.settlement import (
    Settlement,
    SettlementCreateRequest,
    SettlementSummary,
    TransferConfirmRequest,
)

logger = logging.getLogger(__name__)

# The backend reports a second settlement for the same expense as a 500
# carrying this message rather than as a 409.
DUPLICATE_SETTLEMENT_MARKERS = ("정산이 이미 존재합니다", "already exists")


def is_duplicate_settlement(error: ApiError) -> bool:
    if isinstance(error, ConflictError):
        return True
    return error.status_code == 500 and any(marker in error.message for marker in DUPLICATE_SETTLEMENT_MARKERS)


class SettlementApi:
    """Settlement service."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def create_settlement(self, request: SettlementCreateRequest) -> Settlement:
        """
        Create a settlement for an expense.

        Raises:
            DuplicateSettlementError: the expense already has a settlement
            BadRequestError: the backend rejected the split (e.g. amount mismatch)
        """
        try:
            data = await self.client.post(
                "/api/settlements", json=request.to_payload(), default_error="Failed to create settlement."
            )
        except ApiError as e:
            if is_duplicate_settlement(e):
                raise DuplicateSettlementError(request.expense_id, e.status_code) from e
            raise
        return Settlement.model_validate(data)

    async def get_settlement(self, settlement_id: int) -> Settlement:
        data = await self.client.get(f"/api/settlements/{settlement_id}", default_error="Failed to load settlement.")
        return Settlement.model_validate(data)

    async def get_settlement_by_expense(self, expense_id: int) -> Settlement:
        data = await self.client.get(
            f"/api/settlements/by-expense/{expense_id}", default_error="Failed to load settlement."
        )
        return Settlement.model_validate(data)

    async def update_settlement(self, settlement_id: int, request: SettlementCreateRequest) -> Settlement:
        """Recalculate an existing settlement with new inputs."""
        data = await self.client.put(
            f"/api/settlements/{settlement_id}", json=request.to_payload(), default_error="Failed to update settlement."
        )
        return Settlement.model_validate(data)

    async def delete_settlement(self, settlement_id: int) -> None:
        """Delete a settlement so a new one can be created for its expense."""
        await self.client.delete(f"/api/settlements/{settlement_id}", default_error="Failed to delete settlement.")

    async def confirm_transfer(self, settlement_id: int, debtor_id: int, creditor_id: int) -> Settlement:
        """
        Mark one debtor -> creditor transfer as sent.

        The backend moves the settlement to COMPLETED once every row is sent.
        """
        request = TransferConfirmRequest(debtor_id=debtor_id, creditor_id=creditor_id)
        data = await self.client.post(
            f"/api/settlements/{settlement_id}/confirm-transfer",
            json=request.to_payload(),
            default_error="Failed to confirm transfer.",
        )
        return Settlement.model_validate(data)

    async def get_my_summary(self) -> SettlementSummary:
        """Totals to receive and to send for the current user."""
        try:
            data = await self.client.get("/api/settlements/my-summary", default_error="Failed to load settlement summary.")
        except NotFoundError:
            # older backends do not serve this endpoint yet
            logger.warning("Settlement summary endpoint not available; reporting zero totals")
            return SettlementSummary()
        return SettlementSummary.model_validate(data)
