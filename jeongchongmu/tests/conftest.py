import asyncio
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from jeongchongmu.core.exceptions import (
    DuplicateSettlementError,
    NetworkError,
    NotFoundError,
    VoteClosedError,
)
from jeongchongmu.schemas.expense import ExpenseDetail, ExpenseItem, ExpenseSimple
from jeongchongmu.schemas.group import Group, GroupMember, UserSummary
from jeongchongmu.schemas.settlement import Settlement, SettlementDetail, SettlementMethod, SettlementStatus
from jeongchongmu.schemas.vote import Vote, VoteOption
from jeongchongmu.services.coordinator import InvalidationCoordinator
from jeongchongmu.store.entity_store import EntityStore

EXPENSE_DATE = datetime(2025, 1, 15, 18, 0)


@pytest.fixture
def anyio_backend():
    return "asyncio"


# =============================================================================
# Builders
# =============================================================================

def make_group(group_id: int, name: str = None, invite_code: str = None) -> Group:
    return Group(
        id=group_id,
        name=name or f"Group {group_id}",
        invite_code=invite_code or f"CODE{group_id}",
        member_count=2,
    )


def make_expense(expense_id: int, settlement_id: Optional[int] = None, amount: int = 30000) -> ExpenseSimple:
    return ExpenseSimple(
        id=expense_id,
        title=f"Expense {expense_id}",
        amount=amount,
        payer_name="owner",
        expense_date=EXPENSE_DATE,
        settlement_id=settlement_id,
    )


def make_expense_detail(
    expense_id: int,
    group_id: int = 1,
    amount: int = 30000,
    settlement_id: Optional[int] = None,
    items: Optional[List[ExpenseItem]] = None,
) -> ExpenseDetail:
    return ExpenseDetail(
        id=expense_id,
        title=f"Expense {expense_id}",
        amount=amount,
        expense_date=EXPENSE_DATE,
        payer_name="owner",
        group_id=group_id,
        items=items or [],
        participants=["owner", "member"],
        settlement_id=settlement_id,
    )


def make_settlement(settlement_id: int, expense_id: int, is_sent: bool = False) -> Settlement:
    return Settlement(
        settlement_id=settlement_id,
        expense_id=expense_id,
        method=SettlementMethod.N_BUN_1,
        status=SettlementStatus.COMPLETED if is_sent else SettlementStatus.PENDING,
        total_amount=30000,
        details=[
            SettlementDetail(
                debtor_id=2, debtor_name="member", creditor_id=1, creditor_name="owner",
                amount=15000, is_sent=is_sent,
            )
        ],
    )


def make_vote(expense_id: int, voters: Dict[int, List[int]], is_closed: bool = False) -> Vote:
    """voters maps option id -> user ids."""
    return Vote(
        vote_id=expense_id * 10,
        expense_id=expense_id,
        payer_id=1,
        is_closed=is_closed,
        options=[
            VoteOption(option_id=option_id, item_name=f"Item {option_id}", price=1000, voted_user_ids=user_ids)
            for option_id, user_ids in voters.items()
        ],
    )


# =============================================================================
# In-memory collaborators
# =============================================================================

class FakeApi:
    """Records calls; raises the error registered for a key."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, Exception] = {}
        self.gates: Dict[tuple, asyncio.Event] = {}

    def fail(self, *key, error: Exception = None):
        self.failures[key] = error or NetworkError("Cannot reach the server.")

    def hold(self, *key) -> asyncio.Event:
        """Make the next call with this key wait until the returned event is set."""
        event = asyncio.Event()
        self.gates[key] = event
        return event

    async def _enter(self, *key):
        self.calls.append(key)
        if key in self.failures:
            raise self.failures[key]

    async def _wait(self, *key):
        gate = self.gates.pop(key, None)
        if gate is not None:
            await gate.wait()

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class FakeGroupApi(FakeApi):
    def __init__(self):
        super().__init__()
        self.groups: Dict[int, Group] = {}

    async def list_my_groups(self):
        await self._enter("list_my_groups")
        result = list(self.groups.values())
        await self._wait("list_my_groups")
        return result

    async def get_group(self, group_id):
        await self._enter("get_group", group_id)
        if group_id not in self.groups:
            raise NotFoundError("Group not found", 404)
        result = self.groups[group_id]
        await self._wait("get_group", group_id)
        return result

    async def create_group(self, request):
        await self._enter("create_group")
        group = make_group(max(self.groups, default=0) + 1, name=request.name)
        self.groups[group.id] = group
        return group

    async def update_group(self, group_id, request):
        await self._enter("update_group", group_id)
        group = self.groups[group_id].model_copy(update={"name": request.name})
        self.groups[group_id] = group
        return group

    async def delete_group(self, group_id):
        await self._enter("delete_group", group_id)
        self.groups.pop(group_id, None)

    async def regenerate_invite_code(self, group_id):
        await self._enter("regenerate_invite_code", group_id)
        group = self.groups[group_id].model_copy(update={"invite_code": "NEWCODE"})
        self.groups[group_id] = group
        return group


class FakeMemberApi(FakeApi):
    def __init__(self, group_api: FakeGroupApi):
        super().__init__()
        self.group_api = group_api

    async def join_group(self, invite_code):
        await self._enter("join_group", invite_code)
        for group in self.group_api.groups.values():
            if group.invite_code == invite_code:
                return GroupMember(id=99, group_id=group.id, user=UserSummary(id=3, name="newbie"))
        raise NotFoundError("Invalid invite code", 404)

    async def leave_group(self, group_id):
        await self._enter("leave_group", group_id)
        self.group_api.groups.pop(group_id, None)

    async def remove_member(self, group_id, user_id):
        await self._enter("remove_member", group_id, user_id)


class FakeExpenseApi(FakeApi):
    def __init__(self):
        super().__init__()
        self.expenses: Dict[int, List[ExpenseSimple]] = {}
        self.details: Dict[int, ExpenseDetail] = {}

    async def list_expenses(self, group_id):
        await self._enter("list_expenses", group_id)
        result = list(self.expenses.get(group_id, []))
        await self._wait("list_expenses", group_id)
        return result

    async def get_expense(self, expense_id):
        await self._enter("get_expense", expense_id)
        if expense_id not in self.details:
            raise NotFoundError("Expense not found", 404)
        result = self.details[expense_id]
        await self._wait("get_expense", expense_id)
        return result

    async def create_expense(self, data):
        await self._enter("create_expense")
        expense_id = max(self.details, default=0) + 1
        detail = make_expense_detail(expense_id, group_id=data.group_id, amount=data.amount, items=data.items)
        self.details[expense_id] = detail
        self.expenses.setdefault(data.group_id, []).append(make_expense(expense_id, amount=data.amount))
        return detail

    async def update_expense(self, expense_id, patch):
        await self._enter("update_expense", expense_id)

    async def delete_expense(self, expense_id):
        await self._enter("delete_expense", expense_id)
        self.details.pop(expense_id, None)
        for group_id, rows in self.expenses.items():
            self.expenses[group_id] = [row for row in rows if row.id != expense_id]


class FakeSettlementApi(FakeApi):
    def __init__(self):
        super().__init__()
        self.settlements: Dict[int, Settlement] = {}
        self.created: List = []

    async def get_settlement(self, settlement_id):
        await self._enter("get_settlement", settlement_id)
        if settlement_id not in self.settlements:
            raise NotFoundError("Settlement not found", 404)
        return self.settlements[settlement_id]

    async def get_settlement_by_expense(self, expense_id):
        await self._enter("get_settlement_by_expense", expense_id)
        for settlement in self.settlements.values():
            if settlement.expense_id == expense_id:
                return settlement
        raise NotFoundError("Settlement not found", 404)

    async def create_settlement(self, request):
        await self._enter("create_settlement", request.expense_id)
        if any(s.expense_id == request.expense_id for s in self.settlements.values()):
            raise DuplicateSettlementError(request.expense_id, 500)
        settlement_id = max(self.settlements, default=0) + 1
        settlement = make_settlement(settlement_id, request.expense_id)
        self.settlements[settlement_id] = settlement
        self.created.append(request)
        return settlement

    async def update_settlement(self, settlement_id, request):
        await self._enter("update_settlement", settlement_id)
        settlement = make_settlement(settlement_id, request.expense_id).model_copy(update={"method": request.method})
        self.settlements[settlement_id] = settlement
        self.created.append(request)
        return settlement

    async def delete_settlement(self, settlement_id):
        await self._enter("delete_settlement", settlement_id)
        self.settlements.pop(settlement_id, None)

    async def confirm_transfer(self, settlement_id, debtor_id, creditor_id):
        await self._enter("confirm_transfer", settlement_id, debtor_id, creditor_id)
        settlement = make_settlement(settlement_id, self.settlements[settlement_id].expense_id, is_sent=True)
        self.settlements[settlement_id] = settlement
        return settlement


class FakeVoteApi(FakeApi):
    def __init__(self):
        super().__init__()
        self.votes: Dict[int, Vote] = {}
        self.toggled: List[tuple] = []

    async def create_vote(self, expense_id):
        await self._enter("create_vote", expense_id)
        self.votes[expense_id] = make_vote(expense_id, {1: [], 2: []})
        return self.votes[expense_id].vote_id

    async def get_vote_status(self, expense_id):
        await self._enter("get_vote_status", expense_id)
        return self.votes.get(expense_id)

    async def toggle_vote(self, user_id, option_id):
        await self._enter("toggle_vote", user_id, option_id)
        self.toggled.append((user_id, option_id))
        for expense_id, vote in self.votes.items():
            options = []
            for option in vote.options:
                voters = set(option.voted_user_ids)
                if option.option_id == option_id:
                    voters ^= {user_id}
                options.append(option.model_copy(update={"voted_user_ids": frozenset(voters)}))
            self.votes[expense_id] = vote.model_copy(update={"options": options})

    async def close_vote(self, expense_id):
        await self._enter("close_vote", expense_id)
        vote = self.votes[expense_id]
        if vote.is_closed:
            raise VoteClosedError("The vote is closed.", 400)
        self.votes[expense_id] = vote.model_copy(update={"is_closed": True})
        return 500 + expense_id

    async def delete_vote(self, expense_id):
        await self._enter("delete_vote", expense_id)
        self.votes.pop(expense_id, None)


class RecordingAlerts:
    def __init__(self):
        self.shown: List[tuple] = []

    def show(self, title, message, actions=()):
        self.shown.append((title, message, tuple(actions)))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def group_api():
    api = FakeGroupApi()
    api.groups = {1: make_group(1), 2: make_group(2)}
    return api


@pytest.fixture
def member_api(group_api):
    return FakeMemberApi(group_api)


@pytest.fixture
def expense_api():
    return FakeExpenseApi()


@pytest.fixture
def settlement_api():
    return FakeSettlementApi()


@pytest.fixture
def vote_api():
    return FakeVoteApi()


@pytest.fixture
def alerts():
    return RecordingAlerts()


@pytest.fixture
def store(group_api, expense_api, settlement_api):
    return EntityStore(group_api, expense_api, settlement_api)


@pytest.fixture
def coordinator(store, group_api, member_api, expense_api, settlement_api, vote_api, alerts):
    return InvalidationCoordinator(
        store, group_api, member_api, expense_api, settlement_api, vote_api, alerts=alerts
    )
