"""
Party Management Module

Creditors (who fund loans up to their capital) and debtors (who borrow).
Only identity and the creditor's capital ceiling are stored; lending
figures are derived from loans on every read (see reports.py).
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
import logging
import uuid

from .currency import Money, Currency, DecimalLike, to_decimal
from .storage import StorageInterface, StorageRecord
from .allocations import normalize_allocations
from .audit import AuditTrail, AuditEventType
from .config import LendbookConfig, get_config
from .exceptions import ValidationError, ConsistencyError, NotFoundError
from .logging_config import log_action

logger = logging.getLogger(__name__)

GENDERS = ("M", "F", "Other")


@dataclass
class Creditor(StorageRecord):
    """A lender with a fixed capital ceiling"""
    first_name: str
    last_name: str
    capital: Money
    gender: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['capital'] = str(self.capital.amount)
        result['currency'] = self.capital.currency.code
        return result


@dataclass
class Debtor(StorageRecord):
    """A borrower"""
    name: str
    contact_info: Optional[str] = None
    address: Optional[str] = None


def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def _validate_gender(gender: Optional[str]) -> Optional[str]:
    if gender is None:
        return None
    for option in GENDERS:
        if option.lower() == str(gender).strip().lower():
            return option
    raise ValidationError(f"gender must be one of {', '.join(GENDERS)}")


class PartyManager:
    """
    Manages creditor and debtor records
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        config: Optional[LendbookConfig] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.currency = Currency.from_code(self.config.default_currency)

        self.creditors_table = "creditors"
        self.debtors_table = "debtors"
        # Read only, for the references and amounts loans hold on parties
        self.loans_table = "loans"
        self.allocations_table = "loan_allocations"

    def _audit(self, event_type: AuditEventType, entity_type: str, entity_id: str,
               metadata: Dict[str, Any], user_id: Optional[str]) -> None:
        if self.config.enable_audit_logging:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata,
                user_id=user_id
            )

    def _capital(self, capital: DecimalLike) -> Money:
        amount = to_decimal(capital, "capital")
        if amount < 0:
            raise ValidationError("capital cannot be negative")
        return Money(amount, self.currency)

    def total_lent(self, creditor_id: str) -> Decimal:
        """Principal the creditor has allocated across all stored loans"""
        lent = Decimal('0')
        for data in self.storage.load_all(self.loans_table):
            rows = self.storage.find(self.allocations_table, {"loan_id": data['id']})
            resolved = normalize_allocations(
                data['principal_amount'],
                [(row['creditor_id'], row['amount_allocated']) for row in rows],
                data.get('creditor_id'),
            )
            lent += sum((a.amount for a in resolved if a.creditor_id == creditor_id), Decimal('0'))
        return lent

    # Creditors

    def create_creditor(
        self,
        first_name: str,
        last_name: str,
        capital: DecimalLike,
        gender: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Creditor:
        """
        Register a creditor

        Args:
            first_name: Given name
            last_name: Family name
            capital: Lending ceiling, must be >= 0
            gender: M, F or Other
            phone: Contact number
            email: Contact email
            address: Postal address
            user_id: Operator performing the action

        Returns:
            Created Creditor
        """
        now = datetime.now(timezone.utc)
        creditor = Creditor(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            first_name=_require_text(first_name, "first_name"),
            last_name=_require_text(last_name, "last_name"),
            capital=self._capital(capital),
            gender=_validate_gender(gender),
            phone=phone,
            email=email,
            address=address,
        )

        with self.storage.atomic():
            self.storage.save(self.creditors_table, creditor.id, creditor.to_dict())
            self._audit(AuditEventType.CREDITOR_CREATED, "creditor", creditor.id, {
                "name": creditor.full_name,
                "capital": creditor.capital,
            }, user_id)

        log_action(logger, "info", "Creditor created", user_id=user_id,
                   action="creditor.create", resource=creditor.id)
        return creditor

    def update_creditor(
        self,
        creditor_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        capital: Optional[DecimalLike] = None,
        gender: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Creditor:
        """
        Update creditor details; fields left as None are unchanged

        Raises:
            NotFoundError: If the creditor does not exist
            ConsistencyError: If the new capital is below what the creditor has lent
        """
        creditor = self.require_creditor(creditor_id)
        old_capital = creditor.capital

        if first_name is not None:
            creditor.first_name = _require_text(first_name, "first_name")
        if last_name is not None:
            creditor.last_name = _require_text(last_name, "last_name")
        if capital is not None:
            creditor.capital = self._capital(capital)
        if gender is not None:
            creditor.gender = _validate_gender(gender)
        if phone is not None:
            creditor.phone = phone
        if email is not None:
            creditor.email = email
        if address is not None:
            creditor.address = address

        creditor.updated_at = datetime.now(timezone.utc)

        with self.storage.atomic():
            if capital is not None:
                lent = self.total_lent(creditor.id)
                if creditor.capital.amount < lent:
                    raise ConsistencyError(
                        f"Creditor {creditor.id} has {lent} lent out, "
                        f"capital cannot drop to {creditor.capital.amount}"
                    )
            self.storage.save(self.creditors_table, creditor.id, creditor.to_dict())
            self._audit(AuditEventType.CREDITOR_UPDATED, "creditor", creditor.id, {
                "name": creditor.full_name,
                "old_capital": old_capital,
                "new_capital": creditor.capital,
            }, user_id)

        return creditor

    def delete_creditor(self, creditor_id: str, user_id: Optional[str] = None) -> bool:
        """
        Delete a creditor that funds no loan

        Raises:
            NotFoundError: If the creditor does not exist
            ConsistencyError: If any loan still names the creditor
        """
        creditor = self.require_creditor(creditor_id)
        with self.storage.atomic():
            if (self.storage.find(self.loans_table, {"creditor_id": creditor.id})
                    or self.storage.find(self.allocations_table, {"creditor_id": creditor.id})):
                raise ConsistencyError(f"Creditor {creditor.id} still funds loans")
            self.storage.delete(self.creditors_table, creditor.id)
            self._audit(AuditEventType.CREDITOR_DELETED, "creditor", creditor.id,
                        {"name": creditor.full_name}, user_id)

        log_action(logger, "info", "Creditor deleted", user_id=user_id,
                   action="creditor.delete", resource=creditor.id)
        return True

    def get_creditor(self, creditor_id: str) -> Optional[Creditor]:
        """Get creditor by ID"""
        data = self.storage.load(self.creditors_table, str(creditor_id))
        if data:
            return self._creditor_from_dict(data)
        return None

    def require_creditor(self, creditor_id: str) -> Creditor:
        creditor = self.get_creditor(creditor_id)
        if not creditor:
            raise NotFoundError(f"Creditor {creditor_id} not found")
        return creditor

    def list_creditors(self) -> List[Creditor]:
        """All creditors, oldest first"""
        return [self._creditor_from_dict(data) for data in self.storage.load_all(self.creditors_table)]

    # Debtors

    def create_debtor(
        self,
        name: str,
        contact_info: Optional[str] = None,
        address: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Debtor:
        """Register a debtor"""
        now = datetime.now(timezone.utc)
        debtor = Debtor(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=_require_text(name, "name"),
            contact_info=contact_info,
            address=address,
        )

        with self.storage.atomic():
            self.storage.save(self.debtors_table, debtor.id, debtor.to_dict())
            self._audit(AuditEventType.DEBTOR_CREATED, "debtor", debtor.id,
                        {"name": debtor.name}, user_id)

        log_action(logger, "info", "Debtor created", user_id=user_id,
                   action="debtor.create", resource=debtor.id)
        return debtor

    def update_debtor(
        self,
        debtor_id: str,
        name: Optional[str] = None,
        contact_info: Optional[str] = None,
        address: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Debtor:
        """Update debtor details; fields left as None are unchanged"""
        debtor = self.require_debtor(debtor_id)
        old_name = debtor.name

        if name is not None:
            debtor.name = _require_text(name, "name")
        if contact_info is not None:
            debtor.contact_info = contact_info
        if address is not None:
            debtor.address = address

        debtor.updated_at = datetime.now(timezone.utc)

        with self.storage.atomic():
            self.storage.save(self.debtors_table, debtor.id, debtor.to_dict())
            self._audit(AuditEventType.DEBTOR_UPDATED, "debtor", debtor.id, {
                "old_name": old_name,
                "new_name": debtor.name,
            }, user_id)

        return debtor

    def delete_debtor(self, debtor_id: str, user_id: Optional[str] = None) -> bool:
        """
        Delete a debtor with no loans

        Raises:
            NotFoundError: If the debtor does not exist
            ConsistencyError: If any loan still belongs to the debtor
        """
        debtor = self.require_debtor(debtor_id)
        with self.storage.atomic():
            if self.storage.find(self.loans_table, {"debtor_id": debtor.id}):
                raise ConsistencyError(f"Debtor {debtor.id} still has loans")
            self.storage.delete(self.debtors_table, debtor.id)
            self._audit(AuditEventType.DEBTOR_DELETED, "debtor", debtor.id,
                        {"name": debtor.name}, user_id)

        log_action(logger, "info", "Debtor deleted", user_id=user_id,
                   action="debtor.delete", resource=debtor.id)
        return True

    def get_debtor(self, debtor_id: str) -> Optional[Debtor]:
        """Get debtor by ID"""
        data = self.storage.load(self.debtors_table, str(debtor_id))
        if data:
            return self._debtor_from_dict(data)
        return None

    def require_debtor(self, debtor_id: str) -> Debtor:
        debtor = self.get_debtor(debtor_id)
        if not debtor:
            raise NotFoundError(f"Debtor {debtor_id} not found")
        return debtor

    def list_debtors(self) -> List[Debtor]:
        """All debtors, oldest first"""
        return [self._debtor_from_dict(data) for data in self.storage.load_all(self.debtors_table)]

    def _creditor_from_dict(self, data: Dict) -> Creditor:
        """Convert dictionary to creditor"""
        currency = Currency.from_code(data.get('currency', self.currency.code))
        return Creditor(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            first_name=data['first_name'],
            last_name=data['last_name'],
            capital=Money(Decimal(data['capital']), currency),
            gender=data.get('gender'),
            phone=data.get('phone'),
            email=data.get('email'),
            address=data.get('address'),
        )

    def _debtor_from_dict(self, data: Dict) -> Debtor:
        """Convert dictionary to debtor"""
        return Debtor(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            name=data['name'],
            contact_info=data.get('contact_info'),
            address=data.get('address'),
        )
