"""
Write operations and the cache invalidation that follows them.

Every mutation goes to the backend first; only after it succeeds is the
entity store told which slices are stale. Failures propagate to the caller
as typed exceptions and leave the cache untouched.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple
from jeongchongmu.api.expenses import ExpenseApi
from jeongchongmu.api.groups import GroupApi, GroupMemberApi
from jeongchongmu.api.settlements import SettlementApi
from jeongchongmu.api.votes import VoteApi
from jeongchongmu.core.exceptions import ApiError, ConflictError, SplitValidationError
from jeongchongmu.schemas.expense import ExpenseCreate, ExpenseDetail, ExpenseUpdate
from jeongchongmu.schemas.group import Group, GroupMember, GroupRequest
from jeongchongmu.schemas.settlement import DirectEntry, PercentEntry, Settlement, SettlementMethod
from jeongchongmu.services import split_calculator
from jeongchongmu.services.vote_reconciler import VoteEditSession
from jeongchongmu.store.entity_store import EntityStore

logger = logging.getLogger(__name__)


class AlertPresenter(Protocol):
    """Shows a message to the user, optionally offering a follow-up action."""

    def show(self, title: str, message: str, actions: Tuple[str, ...] = ()) -> None:
        ...


@dataclass
class SplitSubmission:
    """What submitting a split produced: a settlement, or a vote for ITEM splits."""
    method: SettlementMethod
    settlement: Optional[Settlement] = None
    vote_id: Optional[int] = None


class InvalidationCoordinator:
    """Runs mutations against the backend and keeps the entity store in step."""

    def __init__(
        self,
        store: EntityStore,
        group_api: GroupApi,
        member_api: GroupMemberApi,
        expense_api: ExpenseApi,
        settlement_api: SettlementApi,
        vote_api: VoteApi,
        alerts: Optional[AlertPresenter] = None,
    ):
        self.store = store
        self.group_api = group_api
        self.member_api = member_api
        self.expense_api = expense_api
        self.settlement_api = settlement_api
        self.vote_api = vote_api
        self.alerts = alerts

    def _present_conflict(self, title: str, error: ConflictError) -> None:
        if self.alerts is None:
            return
        actions = ("cancel", error.remediation) if error.remediation else ("ok",)
        self.alerts.show(title, error.message, actions)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def create_group(self, request: GroupRequest) -> Group:
        group = await self.group_api.create_group(request)
        logger.info(f"Created group {group.id}")
        await self.store.refresh_groups()
        return group

    async def update_group(self, group_id: int, request: GroupRequest) -> Group:
        group = await self.group_api.update_group(group_id, request)
        await self.store.invalidate_group(group_id)
        return group

    async def regenerate_invite_code(self, group_id: int) -> Group:
        group = await self.group_api.regenerate_invite_code(group_id)
        await self.store.invalidate_group(group_id)
        return group

    async def delete_group(self, group_id: int) -> None:
        await self.group_api.delete_group(group_id)
        logger.info(f"Deleted group {group_id}")
        self.store.forget_group(group_id)
        await self.store.refresh_groups()

    async def join_group(self, invite_code: str) -> GroupMember:
        member = await self.member_api.join_group(invite_code)
        await self.store.refresh_groups()
        return member

    async def leave_group(self, group_id: int) -> None:
        await self.member_api.leave_group(group_id)
        self.store.forget_group(group_id)
        await self.store.refresh_groups()

    async def remove_member(self, group_id: int, user_id: int) -> None:
        await self.member_api.remove_member(group_id, user_id)
        await self.store.invalidate_group(group_id)

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def create_expense(self, data: ExpenseCreate, confirm_item_mismatch: bool = False) -> ExpenseDetail:
        """
        Create an expense.

        If the amount differs from the item breakdown total, raises
        ItemTotalMismatchError unless confirm_item_mismatch is set.
        """
        split_calculator.check_item_breakdown(data.amount, data.items, confirmed=confirm_item_mismatch)
        expense = await self.expense_api.create_expense(data)
        logger.info(f"Created expense {expense.id} in group {expense.group_id}")
        await self.store.invalidate_expense(expense.id)
        return expense

    async def update_expense(self, expense_id: int, patch: ExpenseUpdate, confirm_item_mismatch: bool = False) -> None:
        if patch.amount is not None and patch.items is not None:
            split_calculator.check_item_breakdown(patch.amount, patch.items, confirmed=confirm_item_mismatch)
        await self.expense_api.update_expense(expense_id, patch)
        await self.store.invalidate_expense(expense_id)

    async def delete_expense(self, expense_id: int) -> None:
        await self.expense_api.delete_expense(expense_id)
        logger.info(f"Deleted expense {expense_id}")
        await self.store.invalidate_expense(expense_id)

    # ------------------------------------------------------------------
    # Settlements
    # ------------------------------------------------------------------

    async def submit_split(
        self,
        expense: ExpenseDetail,
        method: SettlementMethod,
        participant_ids: Optional[Sequence[int]] = None,
        direct_entries: Optional[Sequence[DirectEntry]] = None,
        percent_entries: Optional[Sequence[PercentEntry]] = None,
    ) -> SplitSubmission:
        """
        Validate a split locally, then create a settlement (or, for ITEM, a vote).

        Raises:
            SplitValidationError: input rejected before any request was sent
            DuplicateSettlementError: the expense already has a settlement
            VoteAlreadyExistsError: an ITEM vote already exists
        """
        request = split_calculator.build_settlement_request(
            expense,
            method,
            participant_ids=participant_ids,
            direct_entries=direct_entries,
            percent_entries=percent_entries,
        )

        if request.method == SettlementMethod.ITEM:
            try:
                vote_id = await self.vote_api.create_vote(expense.id)
            except ConflictError as e:
                self._present_conflict("Vote already exists", e)
                raise
            logger.info(f"Created vote {vote_id} for expense {expense.id}")
            await self.store.invalidate_expense(expense.id)
            return SplitSubmission(method=request.method, vote_id=vote_id)

        try:
            settlement = await self.settlement_api.create_settlement(request)
        except ConflictError as e:
            self._present_conflict("Duplicate settlement", e)
            raise
        logger.info(f"Created {request.method.value} settlement {settlement.settlement_id} for expense {expense.id}")
        await self.store.invalidate_settlement(expense.id)
        return SplitSubmission(method=request.method, settlement=settlement)

    async def view_existing_settlement(self, expense_id: int) -> Settlement:
        """Remediation for a duplicate settlement: load the one that exists."""
        return await self.settlement_api.get_settlement_by_expense(expense_id)

    async def update_settlement(
        self,
        settlement_id: int,
        expense: ExpenseDetail,
        method: SettlementMethod,
        participant_ids: Optional[Sequence[int]] = None,
        direct_entries: Optional[Sequence[DirectEntry]] = None,
        percent_entries: Optional[Sequence[PercentEntry]] = None,
    ) -> Settlement:
        """
        Recalculate an existing settlement with new inputs.

        ITEM splits are recalculated by closing their vote, not here.
        """
        if SettlementMethod(method) == SettlementMethod.ITEM:
            raise SplitValidationError("Item split settlements are recalculated by closing the vote.")
        request = split_calculator.build_settlement_request(
            expense,
            method,
            participant_ids=participant_ids,
            direct_entries=direct_entries,
            percent_entries=percent_entries,
        )
        settlement = await self.settlement_api.update_settlement(settlement_id, request)
        logger.info(f"Recalculated settlement {settlement_id} of expense {expense.id} as {request.method.value}")
        await self.store.invalidate_settlement(expense.id)
        return settlement

    async def delete_settlement(self, settlement_id: int, expense_id: int) -> None:
        await self.settlement_api.delete_settlement(settlement_id)
        logger.info(f"Deleted settlement {settlement_id} of expense {expense_id}")
        await self.store.invalidate_settlement(expense_id)

    async def confirm_transfer(self, settlement_id: int, debtor_id: int, creditor_id: int) -> Settlement:
        settlement = await self.settlement_api.confirm_transfer(settlement_id, debtor_id, creditor_id)
        await self.store.invalidate_settlement(settlement.expense_id)
        return settlement

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    async def open_vote(self, expense_id: int, user_id: int) -> Optional[VoteEditSession]:
        """Load vote status and start an edit session. None when the expense has no vote."""
        vote = await self.vote_api.get_vote_status(expense_id)
        if vote is None:
            return None
        return VoteEditSession(vote, user_id)

    async def resync_vote(self, session: VoteEditSession) -> Optional[VoteEditSession]:
        """Start over from the server's current vote status."""
        return await self.open_vote(session.expense_id, session.user_id)

    async def submit_vote(self, session: VoteEditSession) -> int:
        """
        Send one toggle per changed option. Returns the number of calls made.

        Toggles are sent one at a time. If one fails, those already sent stay
        applied (there is no rollback); the session is marked stale and the
        error propagates, so the caller must resync before editing again.
        """
        delta = session.delta()
        sent = 0
        for option_id in sorted(delta.to_toggle):
            try:
                await self.vote_api.toggle_vote(session.user_id, option_id)
            except ApiError as e:
                logger.error(
                    f"Vote toggle failed for expense {session.expense_id} option {option_id} "
                    f"after {sent} of {len(delta)} toggles: {e}"
                )
                session.mark_stale()
                if isinstance(e, ConflictError):
                    self._present_conflict("Vote closed", e)
                raise
            sent += 1
        session.commit()
        return sent

    async def close_vote(self, expense_id: int) -> int:
        """Close the vote; the backend creates the settlement. Returns its id."""
        try:
            settlement_id = await self.vote_api.close_vote(expense_id)
        except ConflictError as e:
            self._present_conflict("Vote closed", e)
            raise
        logger.info(f"Closed vote of expense {expense_id}, settlement {settlement_id}")
        await self.store.invalidate_settlement(expense_id)
        return settlement_id

    async def delete_vote(self, expense_id: int) -> None:
        await self.vote_api.delete_vote(expense_id)
        await self.store.invalidate_expense(expense_id)
