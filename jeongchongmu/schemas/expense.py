"""
Pydantic schemas for Expense entity.
"""
from pydantic import Field
from typing import List, Optional
from datetime import datetime
from jeongchongmu.schemas.base import WireModel


class ExpenseItem(WireModel):
    """Single line of an expense's item breakdown."""
    name: str
    price: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1)

    @property
    def total(self) -> int:
        return self.price * self.quantity


class ExpenseCreate(WireModel):
    """Schema for expense creation."""
    title: str = Field(min_length=1)
    amount: int = Field(gt=0)  # smallest currency unit
    expense_date: datetime = Field(alias="expenseData")
    group_id: int
    participant_ids: List[int] = Field(min_length=1)
    items: List[ExpenseItem] = []
    tag_names: List[str] = []
    receipt_url: Optional[str] = None


class ExpenseUpdate(WireModel):
    """Schema for expense update (patch)."""
    title: Optional[str] = None
    amount: Optional[int] = Field(default=None, gt=0)
    expense_date: Optional[datetime] = Field(default=None, alias="expenseData")
    participant_ids: Optional[List[int]] = None
    items: Optional[List[ExpenseItem]] = None
    tag_names: Optional[List[str]] = None


class ExpenseSimple(WireModel):
    """Schema for expense list rows."""
    id: int
    title: str
    amount: int
    payer_name: str
    expense_date: datetime = Field(alias="expenseData")
    settlement_id: Optional[int] = None
    vote_id: Optional[int] = None
    is_vote_closed: Optional[bool] = None


class ExpenseDetail(WireModel):
    """Schema for expense detail response."""
    id: int
    title: str
    amount: int
    expense_date: datetime = Field(alias="expenseData")
    receipt_url: Optional[str] = None
    payer_name: str
    group_id: int
    items: List[ExpenseItem] = []
    participants: List[str] = []  # participant display names
    tag_names: List[str] = []
    settlement_id: Optional[int] = None
    vote_id: Optional[int] = None

    @property
    def has_items(self) -> bool:
        return len(self.items) > 0
