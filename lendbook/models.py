"""
Shared domain value types

Plain data views consumed by the allocation, payment and portfolio
reducers. Persistence records (see loans.py / parties.py) convert to these
so the reducers never depend on storage.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from enum import Enum

from .currency import Money, Currency, DecimalLike, to_decimal
from .exceptions import ValidationError


class LoanStatus(Enum):
    """Loan lifecycle states"""
    ONGOING = "Ongoing"        # Being collected
    COMPLETED = "Completed"    # Fully repaid or closed by an operator
    DEFAULTED = "Defaulted"    # Written down by an operator

    @classmethod
    def parse(cls, value: Union['LoanStatus', str]) -> 'LoanStatus':
        if isinstance(value, cls):
            return value
        for member in cls:
            if isinstance(value, str) and member.value.lower() == value.strip().lower():
                return member
        raise ValidationError(f"Unknown loan status: {value!r}")


@dataclass(frozen=True)
class Allocation:
    """Portion of one loan's principal funded by one creditor"""
    creditor_id: Optional[str]
    amount: Decimal

    def __post_init__(self):
        if self.creditor_id is not None and not isinstance(self.creditor_id, str):
            object.__setattr__(self, 'creditor_id', str(self.creditor_id))
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', to_decimal(self.amount, "amount"))

    def to_dict(self) -> Dict[str, Any]:
        return {'creditor_id': self.creditor_id, 'amount': str(self.amount)}

    @classmethod
    def coerce(cls, value: Any) -> 'Allocation':
        """Build from an Allocation, a mapping or a (creditor_id, amount) pair"""
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            amount = value.get('amount', value.get('amount_allocated'))
            return cls(creditor_id=value.get('creditor_id'), amount=amount)
        creditor_id, amount = value
        return cls(creditor_id=creditor_id, amount=amount)


@dataclass
class LoanSnapshot:
    """Read-side view of a loan used by the aggregators"""
    loan_id: str
    debtor_id: Optional[str]
    principal: Money
    interest_rate_monthly: Decimal
    term_months: int
    status: LoanStatus
    date_released: Optional[date] = None
    creditor_id: Optional[str] = None          # legacy single-creditor reference
    allocations: List[Allocation] = field(default_factory=list)

    @property
    def currency(self) -> Currency:
        return self.principal.currency

    @property
    def total_interest(self) -> Money:
        """Simple interest over the whole term"""
        rate = self.interest_rate_monthly / Decimal('100')
        return Money(self.principal.amount * rate * Decimal(self.term_months), self.currency)

    @property
    def total_amount(self) -> Money:
        return self.principal + self.total_interest


def snapshot(
    loan_id: str,
    principal: DecimalLike,
    interest_rate_monthly: DecimalLike,
    term_months: int,
    status: Union[LoanStatus, str] = LoanStatus.ONGOING,
    debtor_id: Optional[str] = None,
    creditor_id: Optional[str] = None,
    allocations: Optional[List[Any]] = None,
    date_released: Optional[date] = None,
    currency: Currency = Currency.PHP
) -> LoanSnapshot:
    """Convenience constructor from loose values"""
    return LoanSnapshot(
        loan_id=str(loan_id),
        debtor_id=str(debtor_id) if debtor_id is not None else None,
        principal=Money(to_decimal(principal, "principal"), currency),
        interest_rate_monthly=to_decimal(interest_rate_monthly, "interest_rate_monthly"),
        term_months=int(term_months),
        status=LoanStatus.parse(status),
        date_released=date_released,
        creditor_id=str(creditor_id) if creditor_id is not None else None,
        allocations=[Allocation.coerce(a) for a in (allocations or [])],
    )
