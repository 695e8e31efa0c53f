"""
Split validation for the four settlement methods.

The backend computes the authoritative split when a settlement is created.
These functions only reject input the backend would reject, before any
request is sent, and derive amounts for display.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence
import math
from jeongchongmu.core.exceptions import (
    AmountMismatchError,
    EmptyParticipantsError,
    ItemBreakdownRequiredError,
    ItemTotalMismatchError,
    MissingEntriesError,
    PercentTotalError,
    SplitValidationError,
)
from jeongchongmu.core.utils import items_total
from jeongchongmu.schemas.expense import ExpenseDetail, ExpenseItem
from jeongchongmu.schemas.settlement import (
    DirectEntry,
    PercentEntry,
    SettlementCreateRequest,
    SettlementMethod,
)

# Maximum distance of the ratio sum from 100, exclusive.
PERCENT_TOLERANCE = Decimal("0.1")


def equal_share(total: int, participant_ids: Sequence[int]) -> int:
    """
    Per-person amount of an N_BUN_1 split, for display.

    floor(total / count). The remainder is not assigned to anyone here;
    the backend decides where it goes.
    """
    if not participant_ids:
        raise EmptyParticipantsError()
    return total // len(participant_ids)


def validate_equal(total: int, participant_ids: Sequence[int]) -> None:
    equal_share(total, participant_ids)


def validate_direct(total: int, entries: Sequence[DirectEntry]) -> None:
    """Direct amounts must add up to the expense total exactly."""
    if not entries:
        raise MissingEntriesError(SettlementMethod.DIRECT.value)
    computed = sum(entry.amount for entry in entries)
    if computed != total:
        raise AmountMismatchError(computed, total)


def ratio_total(entries: Iterable[PercentEntry]) -> Decimal:
    # str() first so 33.3 sums as 33.3, not as its binary approximation
    return sum((Decimal(str(entry.ratio)) for entry in entries), Decimal("0"))


def validate_percent(total: int, entries: Sequence[PercentEntry]) -> None:
    """Ratios must add up to 100 within PERCENT_TOLERANCE."""
    if not entries:
        raise MissingEntriesError(SettlementMethod.PERCENT.value)
    ratio_sum = ratio_total(entries)
    if abs(ratio_sum - Decimal("100")) >= PERCENT_TOLERANCE:
        raise PercentTotalError(float(ratio_sum))


def percent_shares(total: int, entries: Sequence[PercentEntry]) -> Dict[int, int]:
    """
    Display amount per user: floor(total * ratio / 100).

    Floor truncation means the amounts may add up to less than total.
    """
    return {
        entry.user_id: math.floor(Decimal(total) * Decimal(str(entry.ratio)) / Decimal("100"))
        for entry in entries
    }


def validate_item(expense: ExpenseDetail) -> None:
    """Item split needs an item breakdown to vote on."""
    if not expense.items:
        raise ItemBreakdownRequiredError(expense.id)


def validate_split(expense: ExpenseDetail, request: SettlementCreateRequest) -> None:
    """Validate a settlement request against its expense."""
    method = request.method
    if method == SettlementMethod.N_BUN_1:
        validate_equal(expense.amount, request.participant_user_ids)
    elif method == SettlementMethod.DIRECT:
        validate_direct(expense.amount, request.direct_entries or [])
    elif method == SettlementMethod.PERCENT:
        validate_percent(expense.amount, request.percent_entries or [])
    elif method == SettlementMethod.ITEM:
        validate_item(expense)
    else:
        raise SplitValidationError(f"Unsupported settlement method: {method}")


def build_settlement_request(
    expense: ExpenseDetail,
    method: SettlementMethod,
    participant_ids: Optional[Sequence[int]] = None,
    direct_entries: Optional[Sequence[DirectEntry]] = None,
    percent_entries: Optional[Sequence[PercentEntry]] = None,
) -> SettlementCreateRequest:
    """
    Assemble and validate a settlement request.

    For DIRECT and PERCENT the participant list is the users the entries
    name; only the entries matching the method are sent.
    """
    method = SettlementMethod(method)
    if method == SettlementMethod.DIRECT:
        entries: List = list(direct_entries or [])
        request = SettlementCreateRequest(
            expense_id=expense.id,
            method=method,
            participant_user_ids=[entry.user_id for entry in entries],
            direct_entries=entries,
        )
    elif method == SettlementMethod.PERCENT:
        entries = list(percent_entries or [])
        request = SettlementCreateRequest(
            expense_id=expense.id,
            method=method,
            participant_user_ids=[entry.user_id for entry in entries],
            percent_entries=entries,
        )
    else:
        request = SettlementCreateRequest(
            expense_id=expense.id,
            method=method,
            participant_user_ids=list(participant_ids or []),
        )
    validate_split(expense, request)
    return request


def check_item_breakdown(amount: int, items: Sequence[ExpenseItem], confirmed: bool = False) -> int:
    """
    Compare an expense amount with the sum of its items.

    Returns amount - items_total (0 without a breakdown). A non-zero
    difference raises ItemTotalMismatchError unless the user confirmed it.
    """
    if not items:
        return 0
    breakdown_total = items_total(items)
    difference = amount - breakdown_total
    if difference != 0 and not confirmed:
        raise ItemTotalMismatchError(amount, breakdown_total)
    return difference
