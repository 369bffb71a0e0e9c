"""
Test suite for allocations module

Tests the allocation invariant, creditor shares and expected returns,
creditor portfolio aggregation and payment pro-rating.
"""

import pytest
from decimal import Decimal

from lendbook.currency import Money, Currency
from lendbook.models import Allocation, LoanStatus, snapshot
from lendbook.allocations import (
    normalize_allocations, validate_allocations, merge_by_creditor,
    aggregate_allocations, try_aggregate_allocations, check_capital,
    aggregate_creditor_stats, creditor_loan_position, split_payment
)
from lendbook.exceptions import ValidationError, ConsistencyError, NotFoundError


def php(value) -> Money:
    return Money(Decimal(str(value)), Currency.PHP)


class TestValidation:
    """Test the allocation invariant"""

    def test_allocations_must_sum_to_principal(self):
        """Test 60000 + 30000 against 100000 is rejected"""
        allocations = [("creditor1", "60000"), ("creditor2", "30000")]
        with pytest.raises(ValidationError, match="total"):
            aggregate_allocations(Decimal('100000'), allocations)

        result = try_aggregate_allocations(Decimal('100000'), allocations)
        assert not result.accepted
        assert "90000" in result.rejected
        assert result.shares == []

    def test_exact_sum_accepted(self):
        """Test a matching split is accepted"""
        items = validate_allocations(Decimal('100000'), [("c1", "60000"), ("c2", "40000")])
        assert [a.creditor_id for a in items] == ["c1", "c2"]

    def test_empty_list_rejected(self):
        """Test a loan needs at least one creditor"""
        with pytest.raises(ValidationError):
            validate_allocations(Decimal('1000'), [])

    @pytest.mark.parametrize("allocations", [
        [("c1", "0"), ("c2", "1000")],
        [("c1", "-100"), ("c2", "1100")],
        [(None, "1000")],
        [("  ", "1000")],
        [("c1", "999.995"), ("c2", "0.005")],
    ])
    def test_bad_entries_rejected(self, allocations):
        """Test non-positive, unassigned and sub-centavo entries"""
        with pytest.raises(ValidationError):
            validate_allocations(Decimal('1000'), allocations)

    def test_accepts_mappings(self):
        """Test dict entries with either amount key"""
        items = validate_allocations(Decimal('500'), [
            {'creditor_id': 'c1', 'amount': '200'},
            {'creditor_id': 'c2', 'amount_allocated': '300'},
        ])
        assert items[1] == Allocation('c2', Decimal('300'))


class TestNormalization:
    """Test unifying the legacy creditor reference with allocation lists"""

    def test_legacy_reference_becomes_full_allocation(self):
        """Test a single creditor funds the whole principal"""
        assert normalize_allocations(Decimal('5000'), None, "c9") == [Allocation("c9", Decimal('5000'))]

    def test_allocation_list_wins(self):
        """Test a non-empty list is authoritative"""
        result = normalize_allocations(Decimal('5000'), [("c1", "5000")], "c9")
        assert result == [Allocation("c1", Decimal('5000'))]

    def test_nothing_given(self):
        """Test no creditor information yields an empty list"""
        assert normalize_allocations(Decimal('5000')) == []

    def test_merge_duplicates(self):
        """Test amounts for the same creditor are summed in first-seen order"""
        merged = merge_by_creditor([
            Allocation("c2", Decimal('100')),
            Allocation("c1", Decimal('50')),
            Allocation("c2", Decimal('25')),
        ])
        assert list(merged.items()) == [("c2", Decimal('125')), ("c1", Decimal('50'))]


class TestShares:
    """Test per-creditor expected returns"""

    def test_sixty_forty_split(self):
        """Test expected returns follow the principal share"""
        result = aggregate_allocations(
            Decimal('100000'), [("c1", "60000"), ("c2", "40000")], Decimal('30000')
        )
        assert result.accepted
        first = result.share_for("c1")
        second = result.share_for("c2")
        assert first.share_ratio == Decimal('0.6')
        assert first.expected_return == php('78000')
        assert first.expected_interest == php('18000')
        assert second.expected_return == php('52000')
        assert result.share_for("nobody") is None

    def test_duplicate_creditor_merged(self):
        """Test one creditor listed twice gets a single share"""
        result = aggregate_allocations(
            Decimal('1000'), [("c1", "400"), ("c2", "500"), ("c1", "100")], Decimal('100')
        )
        assert len(result.shares) == 2
        assert result.share_for("c1").allocated_amount == php('500')
        assert result.share_for("c1").expected_return == php('550')

    def test_negative_interest_rejected(self):
        """Test total interest cannot be negative"""
        with pytest.raises(ValidationError):
            aggregate_allocations(Decimal('1000'), [("c1", "1000")], Decimal('-1'))


class TestCapital:
    """Test capital sufficiency checks"""

    def test_within_capital(self):
        """Test allocations inside available capital pass"""
        check_capital([Allocation("c1", Decimal('500'))], {"c1": Decimal('500')})

    def test_over_allocation_rejected(self):
        """Test exceeding available capital is refused, not trimmed"""
        allocations = [Allocation("c1", Decimal('300')), Allocation("c1", Decimal('300'))]
        with pytest.raises(ConsistencyError):
            check_capital(allocations, {"c1": php('500')})

    def test_unknown_creditor(self):
        """Test a creditor with no capital record"""
        with pytest.raises(NotFoundError):
            check_capital([Allocation("ghost", Decimal('1'))], {})


class TestCreditorStats:
    """Test portfolio aggregation for one creditor"""

    @pytest.fixture
    def loans(self):
        return [
            snapshot("L1", "10000", "2", 12, allocations=[("c1", "10000")]),
            snapshot("L2", "10000", "1", 12, allocations=[("c1", "6000"), ("c2", "4000")]),
            snapshot("L3", "3000", "2", 6, status="Completed", creditor_id="c1"),
            snapshot("L4", "8000", "2", 12, allocations=[("c2", "8000")]),
        ]

    def test_aggregate(self, loans):
        """Test lent, available and expected figures across both reference shapes"""
        stats = aggregate_creditor_stats("c1", php('50000'), loans)
        assert stats.total_lent == php('19000')
        assert stats.available == php('31000')
        # 12400 + 6720 + 3360
        assert stats.expected_returns == php('22480')
        assert stats.expected_interest == php('3480')
        assert stats.total_loans == 3
        assert stats.active_loans == 2
        assert stats.completed_loans == 1

    def test_loan_counted_once(self, loans):
        """Test a repeated snapshot is not double counted"""
        stats = aggregate_creditor_stats("c1", php('50000'), loans + [loans[0]])
        assert stats.total_loans == 3
        assert stats.total_lent == php('19000')

    def test_stale_legacy_reference(self):
        """Test a legacy reference not in the allocation list counts with nothing lent"""
        loan = snapshot("L9", "5000", "2", 6, creditor_id="c1", allocations=[("c2", "5000")])
        stats = aggregate_creditor_stats("c1", php('1000'), [loan])
        assert stats.total_loans == 1
        assert stats.total_lent.is_zero()
        assert stats.available == php('1000')

    def test_no_loans(self):
        """Test an idle creditor keeps all capital available"""
        stats = aggregate_creditor_stats("c1", php('1000'), [])
        assert stats.available == php('1000')
        assert stats.total_loans == 0
        assert stats.expected_returns.is_zero()

    def test_defaulted_counts_only_in_total(self):
        """Test defaulted loans are neither active nor completed"""
        loan = snapshot("L5", "1000", "0", 1, status=LoanStatus.DEFAULTED, creditor_id="c1")
        stats = aggregate_creditor_stats("c1", php('5000'), [loan])
        assert stats.total_loans == 1
        assert stats.active_loans == 0
        assert stats.completed_loans == 0

    def test_loan_position(self, loans):
        """Test a creditor's stake in a shared loan"""
        position = creditor_loan_position("c1", loans[1])
        assert position.amount_allocated == php('6000')
        assert position.amount_to_be_returned == php('6720')
        assert position.is_shared_loan
        assert not creditor_loan_position("c1", loans[0]).is_shared_loan
        assert creditor_loan_position("c1", loans[3]) is None


class TestSplitPayment:
    """Test pro-rating a payment across creditors"""

    def test_residue_goes_to_last_creditor(self):
        """Test splits add up to the payment exactly"""
        splits = split_payment(
            Decimal('100'), Decimal('300'), [("a", "100"), ("b", "100"), ("c", "100")]
        )
        assert [s.amount for s in splits] == [php('33.33'), php('33.33'), php('33.34')]
        assert sum(s.amount.amount for s in splits) == Decimal('100')

    def test_single_creditor(self):
        """Test one creditor receives the full payment"""
        splits = split_payment(php('250.50'), Decimal('1000'), [("c1", "1000")])
        assert len(splits) == 1
        assert splits[0].creditor_id == "c1"
        assert splits[0].amount == php('250.50')

    def test_invalid_principal(self):
        """Test a zero principal cannot be pro-rated"""
        with pytest.raises(ValidationError):
            split_payment(Decimal('10'), Decimal('0'), [("c1", "10")])
