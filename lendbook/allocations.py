"""
Allocation Aggregator Module

Validates how a loan's principal is split across creditors and derives each
creditor's capital exposure and expected return. Creditor figures (total
lent, available, expected returns) are always recomputed from loans and
allocations; nothing here is stored.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .currency import Money, Currency, DecimalLike, to_decimal, quantize_amount
from .exceptions import ValidationError, ConsistencyError, NotFoundError
from .models import Allocation, LoanSnapshot, LoanStatus


@dataclass
class CreditorShare:
    """One creditor's position in a single loan"""
    creditor_id: str
    allocated_amount: Money
    share_ratio: Decimal          # allocated / principal, full precision
    expected_return: Money        # allocated + total_interest x share_ratio
    expected_interest: Money


@dataclass
class AllocationResult:
    """Outcome of aggregating a loan's allocations"""
    principal: Money
    total_interest: Money
    shares: List[CreditorShare] = field(default_factory=list)
    rejected: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.rejected is None

    def share_for(self, creditor_id: str) -> Optional[CreditorShare]:
        for share in self.shares:
            if share.creditor_id == str(creditor_id):
                return share
        return None


@dataclass
class CreditorStats:
    """Portfolio-level aggregates for one creditor"""
    creditor_id: str
    capital: Money
    total_lent: Money
    available: Money
    active_loans: int
    completed_loans: int
    total_loans: int
    expected_returns: Money
    expected_interest: Money


@dataclass
class CreditorLoanPosition:
    """A creditor's stake in one loan, as listed on the creditor's loan view"""
    loan_id: str
    amount_allocated: Money
    share_ratio: Decimal
    amount_to_be_returned: Money
    is_shared_loan: bool


@dataclass
class PaymentSplit:
    """Portion of a received payment attributable to one creditor"""
    creditor_id: str
    amount: Money


def _as_decimal(value: Union[Money, DecimalLike], name: str) -> Decimal:
    if isinstance(value, Money):
        return value.amount
    return to_decimal(value, name)


def _currency_of(value: Any, currency: Optional[Currency]) -> Currency:
    if currency is not None:
        return currency
    if isinstance(value, Money):
        return value.currency
    return Currency.PHP


def normalize_allocations(
    principal: Union[Money, DecimalLike],
    allocations: Optional[Iterable[Any]] = None,
    creditor_id: Optional[str] = None
) -> List[Allocation]:
    """
    Collapse the two ways a loan can name its creditors into one list

    A non-empty allocation list is authoritative. A loan that only carries
    the legacy single-creditor reference becomes a one-element list funding
    the full principal.

    Args:
        principal: Loan principal
        allocations: Allocation objects, mappings or (creditor_id, amount) pairs
        creditor_id: Legacy single-creditor reference

    Returns:
        List of Allocation (empty when neither shape is present)
    """
    items = [Allocation.coerce(a) for a in (allocations or [])]
    if items:
        return items
    if creditor_id is not None and str(creditor_id).strip():
        return [Allocation(creditor_id=str(creditor_id), amount=_as_decimal(principal, "principal"))]
    return []


def validate_allocations(
    principal: Union[Money, DecimalLike],
    allocations: Iterable[Any],
    currency: Optional[Currency] = None
) -> List[Allocation]:
    """
    Enforce the allocation invariant for one loan

    Raises:
        ValidationError: Empty list, unset creditor, amount <= 0, amount finer
            than the currency's minor unit, or amounts not summing exactly to
            the principal
    """
    currency = _currency_of(principal, currency)
    principal_amount = _as_decimal(principal, "principal")
    if principal_amount <= 0:
        raise ValidationError("principal must be greater than zero")

    items = [Allocation.coerce(a) for a in allocations]
    if not items:
        raise ValidationError("At least one creditor allocation is required")

    total = Decimal('0')
    for index, allocation in enumerate(items, start=1):
        if allocation.creditor_id is None or not allocation.creditor_id.strip():
            raise ValidationError(f"Allocation {index} has no creditor")
        if allocation.amount <= 0:
            raise ValidationError(f"Allocation {index} must be greater than zero")
        if quantize_amount(allocation.amount, currency) != allocation.amount:
            raise ValidationError(
                f"Allocation {index} is finer than the {currency.code} minor unit"
            )
        total += allocation.amount

    if total != principal_amount:
        raise ValidationError(
            f"Allocations total {total} but principal is {principal_amount}"
        )
    return items


def merge_by_creditor(allocations: Iterable[Allocation]) -> Dict[str, Decimal]:
    """Sum allocation amounts per creditor, keeping first-seen order"""
    merged: Dict[str, Decimal] = {}
    for allocation in allocations:
        merged[allocation.creditor_id] = merged.get(allocation.creditor_id, Decimal('0')) + allocation.amount
    return merged


def aggregate_allocations(
    principal: Union[Money, DecimalLike],
    allocations: Iterable[Any],
    total_interest: Union[Money, DecimalLike] = Decimal('0'),
    currency: Optional[Currency] = None
) -> AllocationResult:
    """
    Validate a loan's allocations and compute each creditor's share

    Args:
        principal: Loan principal
        allocations: The loan's allocations
        total_interest: Total simple interest over the loan term
        currency: Currency for the results (defaults to principal's, else PHP)

    Returns:
        AllocationResult with one CreditorShare per distinct creditor

    Raises:
        ValidationError: If the allocation invariant does not hold
    """
    currency = _currency_of(principal, currency)
    items = validate_allocations(principal, allocations, currency)
    principal_amount = _as_decimal(principal, "principal")
    interest_amount = _as_decimal(total_interest, "total_interest")
    if interest_amount < 0:
        raise ValidationError("total_interest cannot be negative")

    shares = []
    for creditor_id, allocated in merge_by_creditor(items).items():
        ratio = allocated / principal_amount
        expected_interest = interest_amount * ratio
        shares.append(CreditorShare(
            creditor_id=creditor_id,
            allocated_amount=Money(allocated, currency),
            share_ratio=ratio,
            expected_return=Money(allocated + expected_interest, currency),
            expected_interest=Money(expected_interest, currency),
        ))

    return AllocationResult(
        principal=Money(principal_amount, currency),
        total_interest=Money(interest_amount, currency),
        shares=shares,
    )


def try_aggregate_allocations(
    principal: Union[Money, DecimalLike],
    allocations: Iterable[Any],
    total_interest: Union[Money, DecimalLike] = Decimal('0'),
    currency: Optional[Currency] = None
) -> AllocationResult:
    """Like aggregate_allocations, but reports a rejection instead of raising"""
    try:
        return aggregate_allocations(principal, allocations, total_interest, currency)
    except ValidationError as e:
        currency = _currency_of(principal, currency)
        try:
            principal_money = Money(_as_decimal(principal, "principal"), currency)
        except ValidationError:
            principal_money = Money.zero(currency)
        return AllocationResult(
            principal=principal_money,
            total_interest=Money.zero(currency),
            rejected=str(e),
        )


def check_capital(
    allocations: Iterable[Allocation],
    available_by_creditor: Mapping[str, Union[Money, DecimalLike]]
) -> None:
    """
    Make sure every creditor can fund what is being allocated to them

    Runs before anything is written; an over-allocation is rejected, never
    trimmed down to what the creditor has left.

    Raises:
        NotFoundError: If a creditor has no known capital
        ConsistencyError: If an allocation exceeds the creditor's available capital
    """
    for creditor_id, requested in merge_by_creditor(allocations).items():
        if creditor_id not in available_by_creditor:
            raise NotFoundError(f"Creditor {creditor_id} not found")
        available = _as_decimal(available_by_creditor[creditor_id], "available")
        if requested > available:
            raise ConsistencyError(
                f"Creditor {creditor_id} has {available} available, "
                f"cannot allocate {requested}"
            )


def _participates(creditor_id: str, loan: LoanSnapshot) -> bool:
    if loan.creditor_id == creditor_id:
        return True
    return any(a.creditor_id == creditor_id for a in loan.allocations)


def _allocated_to(creditor_id: str, loan: LoanSnapshot) -> Decimal:
    resolved = normalize_allocations(loan.principal, loan.allocations, loan.creditor_id)
    return sum((a.amount for a in resolved if a.creditor_id == creditor_id), Decimal('0'))


def aggregate_creditor_stats(
    creditor_id: str,
    capital: Union[Money, DecimalLike],
    loans: Iterable[LoanSnapshot],
    currency: Optional[Currency] = None
) -> CreditorStats:
    """
    Reduce all loans into one creditor's portfolio figures

    A loan belongs to the creditor when it names them through the legacy
    single-creditor reference or through an allocation. Either way it is
    counted once.

    Args:
        creditor_id: Creditor to aggregate
        capital: Creditor's lending ceiling
        loans: Loans to scan (may include loans of other creditors)
        currency: Result currency (defaults to capital's, else PHP)

    Returns:
        CreditorStats
    """
    creditor_id = str(creditor_id)
    currency = _currency_of(capital, currency)
    capital_amount = _as_decimal(capital, "capital")

    total_lent = Decimal('0')
    expected_returns = Decimal('0')
    counts = {status: 0 for status in LoanStatus}
    seen = set()

    for loan in loans:
        if loan.loan_id in seen or not _participates(creditor_id, loan):
            continue
        seen.add(loan.loan_id)
        counts[loan.status] += 1

        allocated = _allocated_to(creditor_id, loan)
        ratio = allocated / loan.principal.amount
        total_lent += allocated
        expected_returns += allocated + loan.total_interest.amount * ratio

    return CreditorStats(
        creditor_id=creditor_id,
        capital=Money(capital_amount, currency),
        total_lent=Money(total_lent, currency),
        available=Money(capital_amount - total_lent, currency),
        active_loans=counts[LoanStatus.ONGOING],
        completed_loans=counts[LoanStatus.COMPLETED],
        total_loans=len(seen),
        expected_returns=Money(expected_returns, currency),
        expected_interest=Money(expected_returns - total_lent, currency),
    )


def creditor_loan_position(creditor_id: str, loan: LoanSnapshot) -> Optional[CreditorLoanPosition]:
    """A creditor's stake in one loan, or None if they are not part of it"""
    creditor_id = str(creditor_id)
    if not _participates(creditor_id, loan):
        return None
    resolved = normalize_allocations(loan.principal, loan.allocations, loan.creditor_id)
    allocated = _allocated_to(creditor_id, loan)
    ratio = allocated / loan.principal.amount
    return CreditorLoanPosition(
        loan_id=loan.loan_id,
        amount_allocated=Money(allocated, loan.currency),
        share_ratio=ratio,
        amount_to_be_returned=Money(allocated + loan.total_interest.amount * ratio, loan.currency),
        is_shared_loan=len(merge_by_creditor(resolved)) > 1,
    )


def split_payment(
    amount: Union[Money, DecimalLike],
    principal: Union[Money, DecimalLike],
    allocations: Iterable[Any],
    currency: Optional[Currency] = None
) -> List[PaymentSplit]:
    """
    Pro-rate one received payment across the loan's creditors

    Each creditor gets ``amount x allocated / principal`` rounded to the
    minor unit; the last creditor takes the rounding residue so the splits
    add up to the payment exactly.
    """
    currency = _currency_of(amount, currency)
    payment = _as_decimal(amount, "amount")
    principal_amount = _as_decimal(principal, "principal")
    if principal_amount <= 0:
        raise ValidationError("principal must be greater than zero")

    merged = list(merge_by_creditor(Allocation.coerce(a) for a in allocations).items())
    splits = []
    distributed = Decimal('0')
    for index, (creditor_id, allocated) in enumerate(merged):
        if index == len(merged) - 1:
            share = quantize_amount(payment, currency) - distributed
        else:
            share = quantize_amount(payment * allocated / principal_amount, currency)
        distributed += share
        splits.append(PaymentSplit(creditor_id=creditor_id, amount=Money(share, currency)))
    return splits
