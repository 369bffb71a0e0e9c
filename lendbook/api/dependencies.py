"""
Shared API dependencies: the wired-up lending system and error mapping
"""

from datetime import date
from typing import Optional

from fastapi import HTTPException

from ..storage import InMemoryStorage, SQLiteStorage
from ..audit import AuditTrail
from ..parties import PartyManager
from ..loans import LoanManager
from ..reports import PortfolioReporter
from ..config import LendbookConfig, get_config
from ..dates import parse_date
from ..exceptions import LendbookError, ValidationError, ConsistencyError, NotFoundError


class LendingSystem:
    """Storage, audit trail and services wired together"""

    def __init__(self, config: Optional[LendbookConfig] = None, use_sqlite: Optional[bool] = None):
        self.config = config or get_config()
        if use_sqlite is None:
            use_sqlite = self.config.use_sqlite

        if use_sqlite:
            self.storage = SQLiteStorage(self.config.database_path)
        else:
            self.storage = InMemoryStorage()

        self.audit_trail = AuditTrail(self.storage)
        self.party_manager = PartyManager(self.storage, self.audit_trail, self.config)
        self.loan_manager = LoanManager(self.storage, self.audit_trail, self.config, self.party_manager)
        self.reporter = PortfolioReporter(self.loan_manager, self.party_manager)


_lending_system: Optional[LendingSystem] = None


def get_lending_system() -> LendingSystem:
    """Dependency returning the process-wide lending system, created on first use"""
    global _lending_system
    if _lending_system is None:
        _lending_system = LendingSystem()
    return _lending_system


def http_error(error: LendbookError) -> HTTPException:
    """Translate a domain error into the matching HTTP status"""
    if isinstance(error, NotFoundError):
        code = 404
    elif isinstance(error, ConsistencyError):
        code = 409
    else:
        code = 422
    return HTTPException(status_code=code, detail=str(error))


def parse_today(today: Optional[str]) -> Optional[date]:
    """Optional ?today=YYYY-MM-DD override for date-dependent views"""
    if today is None:
        return None
    try:
        return parse_date(today)
    except ValidationError as e:
        raise http_error(e)
