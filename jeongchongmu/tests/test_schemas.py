"""
Tests for wire schemas.
"""
import pytest
from pydantic import ValidationError

from jeongchongmu.schemas.expense import ExpenseCreate, ExpenseItem
from jeongchongmu.schemas.group import Group
from jeongchongmu.tests.conftest import EXPENSE_DATE


def member(member_id, role):
    return {"id": member_id, "groupId": 1, "user": {"id": member_id, "name": f"user{member_id}"}, "role": role}


def test_group_requires_single_owner():
    """A member list with two owners is rejected."""
    with pytest.raises(ValidationError):
        Group.model_validate({
            "id": 1,
            "name": "Trip",
            "inviteCode": "ABC",
            "members": [member(1, "OWNER"), member(2, "OWNER")],
        })


def test_group_without_member_list():
    group = Group.model_validate({"id": 1, "name": "Trip", "inviteCode": "ABC"})

    assert group.owner is None
    assert group.member_count == 0


def test_expense_create_payload():
    """The date goes out under the backend's expenseData key."""
    expense = ExpenseCreate(
        title="Dinner",
        amount=30000,
        expense_date=EXPENSE_DATE,
        group_id=1,
        participant_ids=[1, 2],
        items=[ExpenseItem(name="Beer", price=5000, quantity=2)],
    )

    payload = expense.to_payload()

    assert payload["expenseData"] == "2025-01-15T18:00:00"
    assert payload["groupId"] == 1
    assert payload["items"] == [{"name": "Beer", "price": 5000, "quantity": 2}]
    assert "receiptUrl" not in payload


def test_expense_create_rejects_empty_participants():
    with pytest.raises(ValidationError):
        ExpenseCreate(title="Dinner", amount=1000, expense_date=EXPENSE_DATE, group_id=1, participant_ids=[])
