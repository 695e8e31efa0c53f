"""
Tests for split validation.
"""
import pytest

from jeongchongmu.core.exceptions import (
    AmountMismatchError,
    EmptyParticipantsError,
    ItemBreakdownRequiredError,
    ItemTotalMismatchError,
    MissingEntriesError,
    PercentTotalError,
    SplitValidationError,
)
from jeongchongmu.schemas.expense import ExpenseItem
from jeongchongmu.schemas.settlement import DirectEntry, PercentEntry, SettlementMethod
from jeongchongmu.services.split_calculator import (
    build_settlement_request,
    check_item_breakdown,
    equal_share,
    percent_shares,
    validate_direct,
    validate_item,
    validate_percent,
)
from jeongchongmu.tests.conftest import make_expense_detail


def direct(*amounts):
    return [DirectEntry(user_id=i + 1, amount=amount) for i, amount in enumerate(amounts)]


def percent(*ratios):
    return [PercentEntry(user_id=i + 1, ratio=ratio) for i, ratio in enumerate(ratios)]


class TestEqualSplit:

    def test_floor_of_total_per_person(self):
        """100 among 3 is 33, not 33.33 and not 34."""
        assert equal_share(100, [1, 2, 3]) == 33

    def test_exact_division(self):
        assert equal_share(30000, [1, 2, 3]) == 10000

    def test_empty_participants_rejected(self):
        with pytest.raises(EmptyParticipantsError):
            equal_share(100, [])


class TestDirectSplit:

    def test_exact_sum_passes(self):
        validate_direct(30000, direct(10000, 10000, 10000))

    def test_off_by_one_fails_with_both_amounts(self):
        with pytest.raises(AmountMismatchError) as exc_info:
            validate_direct(30000, direct(10000, 10000, 9999))

        assert exc_info.value.computed == 29999
        assert exc_info.value.target == 30000
        assert exc_info.value.difference == 1

    def test_overshoot_fails(self):
        with pytest.raises(AmountMismatchError):
            validate_direct(30000, direct(10000, 10000, 10001))

    def test_no_entries_rejected(self):
        with pytest.raises(MissingEntriesError):
            validate_direct(30000, [])


class TestPercentSplit:

    def test_exact_hundred_passes(self):
        validate_percent(30000, percent(50, 30, 20))

    def test_within_tolerance_passes(self):
        validate_percent(30000, percent(33.3, 33.3, 33.35))  # 99.95

    def test_deviation_of_tolerance_fails(self):
        with pytest.raises(PercentTotalError) as exc_info:
            validate_percent(30000, percent(50, 50.1))  # 100.1

        assert exc_info.value.total_ratio == pytest.approx(100.1)

    def test_far_off_fails(self):
        with pytest.raises(PercentTotalError):
            validate_percent(30000, percent(50, 40))

    def test_no_entries_rejected(self):
        with pytest.raises(MissingEntriesError):
            validate_percent(30000, [])

    def test_display_amounts_are_floored(self):
        shares = percent_shares(100, percent(33.3, 33.3, 33.4))

        assert shares == {1: 33, 2: 33, 3: 33}
        assert sum(shares.values()) < 100


class TestItemSplit:

    def test_requires_item_breakdown(self):
        with pytest.raises(ItemBreakdownRequiredError):
            validate_item(make_expense_detail(1))

    def test_passes_with_items(self):
        validate_item(make_expense_detail(1, items=[ExpenseItem(name="chicken", price=15000, quantity=2)]))


class TestBuildSettlementRequest:

    def test_direct_takes_participants_from_entries(self):
        expense = make_expense_detail(7, amount=30000)

        request = build_settlement_request(expense, SettlementMethod.DIRECT, direct_entries=direct(10000, 20000))

        assert request.participant_user_ids == [1, 2]
        assert request.percent_entries is None
        assert request.to_payload()["directEntries"] == [
            {"userId": 1, "amount": 10000},
            {"userId": 2, "amount": 20000},
        ]

    def test_equal_split_payload(self):
        request = build_settlement_request(make_expense_detail(7), "N_BUN_1", participant_ids=[1, 2, 3])

        assert request.to_payload() == {"expenseId": 7, "method": "N_BUN_1", "participantUserIds": [1, 2, 3]}

    def test_invalid_input_never_builds_a_request(self):
        with pytest.raises(SplitValidationError):
            build_settlement_request(make_expense_detail(7), SettlementMethod.DIRECT, direct_entries=direct(1))


class TestItemBreakdown:

    def test_matching_breakdown(self):
        items = [ExpenseItem(name="a", price=10000, quantity=2), ExpenseItem(name="b", price=10000)]
        assert check_item_breakdown(30000, items) == 0

    def test_no_breakdown_is_not_checked(self):
        assert check_item_breakdown(30000, []) == 0

    def test_mismatch_requires_confirmation(self):
        items = [ExpenseItem(name="a", price=10000)]

        with pytest.raises(ItemTotalMismatchError) as exc_info:
            check_item_breakdown(30000, items)
        assert exc_info.value.items_total == 10000

        assert check_item_breakdown(30000, items, confirmed=True) == 20000
