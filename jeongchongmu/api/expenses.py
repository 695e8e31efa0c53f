"""
Expense endpoints.
"""
from typing import List
from jeongchongmu.api.client import ApiClient
from jeongchongmu.schemas.expense import ExpenseCreate, ExpenseDetail, ExpenseSimple, ExpenseUpdate


class ExpenseApi:
    """Expense service."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_expenses(self, group_id: int) -> List[ExpenseSimple]:
        data = await self.client.get(
            "/api/expenses", params={"groupId": group_id}, default_error="Failed to load expenses."
        )
        return [ExpenseSimple.model_validate(item) for item in data or []]

    async def get_expense(self, expense_id: int) -> ExpenseDetail:
        data = await self.client.get(f"/api/expenses/{expense_id}", default_error="Failed to load expense.")
        return ExpenseDetail.model_validate(data)

    async def create_expense(self, data: ExpenseCreate) -> ExpenseDetail:
        body = await self.client.post("/api/expenses", json=data.to_payload(), default_error="Failed to create expense.")
        return ExpenseDetail.model_validate(body)

    async def update_expense(self, expense_id: int, patch: ExpenseUpdate) -> None:
        await self.client.patch(
            f"/api/expenses/{expense_id}", json=patch.to_payload(), default_error="Failed to update expense."
        )

    async def delete_expense(self, expense_id: int) -> None:
        await self.client.delete(f"/api/expenses/{expense_id}", default_error="Failed to delete expense.")
