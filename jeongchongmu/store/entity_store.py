"""
Process-wide cache of groups, expenses and settlements.

Reads are synchronous snapshots. Every write replaces a whole cache slice
after a successful fetch; a failed fetch leaves the previous slice in place
and is reported through the returned FetchOutcome instead of raising.

Each slice carries a generation counter. A fetch remembers the generation it
started under and its result is dropped if a newer fetch of the same slice
started in the meantime, so a slow, superseded response can never overwrite
a newer one.
"""
import asyncio
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple
from jeongchongmu.api.expenses import ExpenseApi
from jeongchongmu.api.groups import GroupApi
from jeongchongmu.api.settlements import SettlementApi
from jeongchongmu.schemas.expense import ExpenseDetail, ExpenseSimple
from jeongchongmu.schemas.group import Group
from jeongchongmu.schemas.settlement import Settlement
from jeongchongmu.store.observable import Observable
from jeongchongmu.store.pipeline import RECOVERABLE_ERRORS, FetchOutcome, Stage, StaleResponse, run_pipeline

logger = logging.getLogger(__name__)

GROUPS = "groups"
SELECTED_GROUP = "selected_group"
EXPENSES = "expenses"
SELECTED_EXPENSE = "selected_expense"
SETTLEMENTS = "settlements"

SLICES = (GROUPS, SELECTED_GROUP, EXPENSES, SELECTED_EXPENSE, SETTLEMENTS)


class EntityStore:
    """Cache of the last known server state, with refresh and invalidation entry points."""

    def __init__(self, group_api: GroupApi, expense_api: ExpenseApi, settlement_api: SettlementApi):
        self.group_api = group_api
        self.expense_api = expense_api
        self.settlement_api = settlement_api

        self._groups: Tuple[Group, ...] = ()
        self._selected_group: Optional[Group] = None
        self._expenses: Tuple[ExpenseSimple, ...] = ()
        self._selected_expense: Optional[ExpenseDetail] = None
        self._settlements: Dict[int, Settlement] = {}  # expense_id -> settlement

        self._generations: Dict[str, int] = {name: 0 for name in SLICES}
        self._observable = Observable()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def groups(self) -> Tuple[Group, ...]:
        return self._groups

    @property
    def selected_group(self) -> Optional[Group]:
        return self._selected_group

    @property
    def expenses(self) -> Tuple[ExpenseSimple, ...]:
        return self._expenses

    @property
    def selected_expense(self) -> Optional[ExpenseDetail]:
        return self._selected_expense

    @property
    def settlements(self) -> Mapping[int, Settlement]:
        """Settlements keyed by expense id. The mapping is never mutated in place."""
        return MappingProxyType(self._settlements)

    def settlement_for(self, expense_id: int) -> Optional[Settlement]:
        return self._settlements.get(expense_id)

    def generation(self, slice_name: str) -> int:
        return self._generations[slice_name]

    def subscribe(self, callback: Callable[[FrozenSet[str]], None]) -> Callable[[], None]:
        """Be told which slices changed after every commit. Returns an unsubscribe function."""
        return self._observable.subscribe(callback)

    # ------------------------------------------------------------------
    # Generation bookkeeping
    # ------------------------------------------------------------------

    def _begin(self, *slices: str) -> Dict[str, int]:
        """Start a fetch of the given slices; any older fetch of them becomes stale."""
        tokens = {}
        for name in slices:
            self._generations[name] += 1
            tokens[name] = self._generations[name]
        return tokens

    def _stale_slices(self, tokens: Mapping[str, int]) -> List[str]:
        return [name for name, generation in tokens.items() if self._generations[name] != generation]

    def _check_current(self, tokens: Mapping[str, int]) -> None:
        stale = self._stale_slices(tokens)
        if stale:
            raise StaleResponse(stale)

    def _commit(self, tokens: Mapping[str, int], **changes: Any) -> None:
        """Replace slices in one step, or raise StaleResponse if a newer fetch owns them."""
        self._check_current(tokens)
        for name, value in changes.items():
            setattr(self, f"_{name}", value)
        self._observable.notify(changes.keys())

    # ------------------------------------------------------------------
    # Refreshes
    # ------------------------------------------------------------------

    async def refresh_groups(self) -> FetchOutcome:
        """Replace the group list."""
        tokens = self._begin(GROUPS)

        async def fetch(ctx):
            return tuple(await self.group_api.list_my_groups())

        async def commit(ctx):
            self._commit(tokens, groups=ctx["fetch_groups"])

        return await run_pipeline("refresh_groups", [
            Stage("fetch_groups", fetch),
            Stage("commit_groups", commit),
        ])

    def _group_stages(
        self,
        group_id: int,
        tokens: Mapping[str, int],
        expense_tokens: Optional[Dict[str, int]] = None,
    ) -> List[Stage]:
        """
        Fetch and commit one group as the selected group.

        When `expense_tokens` is given it is filled at commit time with the
        generations the follow-up expense fetch owns, so a failed group fetch
        never invalidates a refresh already in flight.
        """
        async def fetch(ctx):
            return await self.group_api.get_group(group_id)

        async def commit(ctx):
            group = ctx["group"]
            self._check_current(tokens)
            changes: Dict[str, Any] = {"selected_group": group}
            previous = self._selected_group
            if previous is None or previous.id != group.id:
                # switching groups: drop what was cached for the old one and
                # make any fetch still running for it stale
                self._begin(SELECTED_EXPENSE, EXPENSES, SETTLEMENTS)
                changes.update(selected_expense=None, expenses=(), settlements={})
            if expense_tokens is not None:
                expense_tokens.update(self._begin(EXPENSES, SETTLEMENTS))
            self._commit(tokens, **changes)

        return [Stage("group", fetch), Stage("commit_group", commit)]

    def _check_group(self, group_id: int) -> None:
        selected = self._selected_group
        if selected is not None and selected.id != group_id:
            raise StaleResponse([SELECTED_GROUP])

    def _expense_stages(self, group_id: int, tokens: Mapping[str, int]) -> List[Stage]:
        async def fetch_expenses(ctx):
            return tuple(await self.expense_api.list_expenses(group_id))

        async def fetch_settlements(ctx):
            self._check_current(tokens)
            self._check_group(group_id)
            return await self._fetch_settlements(ctx["expenses"])

        async def commit(ctx):
            self._check_group(group_id)
            self._commit(tokens, expenses=ctx["expenses"], settlements=ctx["settlements"])

        return [
            Stage("expenses", fetch_expenses),
            Stage("settlements", fetch_settlements),
            Stage("commit_expenses", commit),
        ]

    async def _fetch_settlements(self, expenses: Sequence[ExpenseSimple]) -> Dict[int, Settlement]:
        """
        Look up the settlement of every expense that has one, concurrently.

        A lookup that fails with a recoverable error is logged and left out;
        it does not fail the batch. Any other exception propagates.
        Returns only once every lookup has finished.
        """
        with_settlement = [expense for expense in expenses if expense.settlement_id]
        results = await asyncio.gather(
            *(self.settlement_api.get_settlement(expense.settlement_id) for expense in with_settlement),
            return_exceptions=True,
        )
        settlements: Dict[int, Settlement] = {}
        for expense, result in zip(with_settlement, results):
            if isinstance(result, RECOVERABLE_ERRORS):
                logger.error(f"Failed to load settlement {expense.settlement_id} for expense {expense.id}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            settlements[expense.id] = result
        return settlements

    async def select_group(self, group_id: int) -> FetchOutcome:
        """Load a group, make it current, then load its expenses and their settlements."""
        tokens = self._begin(SELECTED_GROUP)
        expense_tokens: Dict[str, int] = {}
        stages = self._group_stages(group_id, tokens, expense_tokens) + self._expense_stages(group_id, expense_tokens)
        return await run_pipeline(f"select_group({group_id})", stages)

    async def refresh_expenses(self, group_id: int) -> FetchOutcome:
        """Replace the expense list of a group and the settlements attached to it."""
        tokens = self._begin(EXPENSES, SETTLEMENTS)
        return await run_pipeline(f"refresh_expenses({group_id})", self._expense_stages(group_id, tokens))

    async def _refresh_group_detail(self, group_id: int) -> FetchOutcome:
        tokens = self._begin(SELECTED_GROUP)
        return await run_pipeline(f"refresh_group({group_id})", self._group_stages(group_id, tokens))

    def _merge_settlement(self, expense_id: int, settlement: Settlement, settlements_generation: int) -> None:
        """Add one settlement to the map unless a full settlements refresh started since."""
        if self._generations[SETTLEMENTS] != settlements_generation:
            raise StaleResponse([SETTLEMENTS])
        merged = dict(self._settlements)
        merged[expense_id] = settlement
        self._settlements = merged
        self._observable.notify([SETTLEMENTS])

    async def select_expense(self, expense_id: int) -> FetchOutcome:
        """Load one expense and, best effort, its settlement."""
        tokens = self._begin(SELECTED_EXPENSE)
        settlements_generation = self._generations[SETTLEMENTS]

        async def fetch(ctx):
            return await self.expense_api.get_expense(expense_id)

        async def commit(ctx):
            self._commit(tokens, selected_expense=ctx["expense"])

        async def fetch_settlement(ctx):
            settlement_id = ctx["expense"].settlement_id
            if not settlement_id:
                return None
            try:
                settlement = await self.settlement_api.get_settlement(settlement_id)
            except RECOVERABLE_ERRORS as e:
                logger.error(f"Failed to load settlement {settlement_id} for expense {expense_id}: {e}")
                return None
            try:
                self._merge_settlement(expense_id, settlement, settlements_generation)
            except StaleResponse:
                logger.debug(f"select_expense({expense_id}): settlement superseded by a newer refresh")
            return settlement

        return await run_pipeline(f"select_expense({expense_id})", [
            Stage("expense", fetch),
            Stage("commit_expense", commit),
            Stage("settlement", fetch_settlement),
        ])

    async def refresh_settlement(self, settlement_id: int) -> List[FetchOutcome]:
        """Reload one settlement, then the current group's expense list."""
        settlements_generation = self._generations[SETTLEMENTS]

        async def fetch(ctx):
            return await self.settlement_api.get_settlement(settlement_id)

        async def merge(ctx):
            settlement = ctx["settlement"]
            self._merge_settlement(settlement.expense_id, settlement, settlements_generation)

        outcomes = [await run_pipeline(f"refresh_settlement({settlement_id})", [
            Stage("settlement", fetch),
            Stage("merge_settlement", merge),
        ])]
        if outcomes[0].failed_stage is None and self._selected_group is not None:
            outcomes.append(await self.refresh_expenses(self._selected_group.id))
        return outcomes

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def invalidate_expense(self, expense_id: int) -> List[FetchOutcome]:
        """
        An expense changed elsewhere: reload it if it is selected, and reload
        the current group's expense list.
        """
        refreshes = []
        if self._selected_expense is not None and self._selected_expense.id == expense_id:
            refreshes.append(self.select_expense(expense_id))
        if self._selected_group is not None:
            refreshes.append(self.refresh_expenses(self._selected_group.id))
        return list(await asyncio.gather(*refreshes))

    async def invalidate_settlement(self, expense_id: int) -> List[FetchOutcome]:
        """The settlement of an expense changed: reload the expense list and, if selected, the expense."""
        refreshes = []
        if self._selected_group is not None:
            refreshes.append(self.refresh_expenses(self._selected_group.id))
        if self._selected_expense is not None and self._selected_expense.id == expense_id:
            refreshes.append(self.select_expense(expense_id))
        return list(await asyncio.gather(*refreshes))

    async def invalidate_group(self, group_id: int) -> List[FetchOutcome]:
        """A group was renamed or its invite code or members changed."""
        refreshes = [self.refresh_groups()]
        if self._selected_group is not None and self._selected_group.id == group_id:
            refreshes.append(self._refresh_group_detail(group_id))
        return list(await asyncio.gather(*refreshes))

    async def invalidate_all(self) -> List[FetchOutcome]:
        """Reload groups and, if a group is selected, its expenses."""
        refreshes = [self.refresh_groups()]
        if self._selected_group is not None:
            refreshes.append(self.refresh_expenses(self._selected_group.id))
        return list(await asyncio.gather(*refreshes))

    def forget_group(self, group_id: int) -> None:
        """
        Drop the selected group and everything cached under it, if it is
        `group_id`. Used after the group was deleted or left.
        """
        if self._selected_group is None or self._selected_group.id != group_id:
            return
        tokens = self._begin(SELECTED_GROUP, EXPENSES, SETTLEMENTS, SELECTED_EXPENSE)
        self._commit(tokens, selected_group=None, expenses=(), settlements={}, selected_expense=None)
