"""
Portfolio Reporting Module

Runs the pure allocation, payment and portfolio reducers over the stored
loans, parties and payments. Nothing computed here is persisted; every
figure is rebuilt from the records on each call.
"""

from datetime import date
from typing import Dict, List, Optional

from .allocations import CreditorStats, CreditorLoanPosition, aggregate_creditor_stats, \
    creditor_loan_position
from .payments import CollectionSummary, summarize_collections
from .portfolio import DashboardStats, DebtorStats, MonthlyBucket, aggregate_debtor_stats, \
    dashboard_stats, loan_status_counts, monthly_collection_series
from .portfolio import recent_loans as newest_first
from .loans import Loan, LoanManager
from .parties import PartyManager


class PortfolioReporter:
    """
    Derived creditor, debtor and dashboard figures
    """

    def __init__(self, loan_manager: LoanManager, party_manager: Optional[PartyManager] = None):
        self.loans = loan_manager
        self.parties = party_manager or loan_manager.parties
        self.config = loan_manager.config
        self.currency = loan_manager.currency

    def creditor_summary(self, creditor_id: str) -> CreditorStats:
        """Capital, exposure and expected returns of one creditor"""
        creditor = self.parties.require_creditor(creditor_id)
        return aggregate_creditor_stats(creditor.id, creditor.capital, self.loans.get_snapshots())

    def creditor_stats(self) -> List[CreditorStats]:
        """Figures for every creditor, in registration order"""
        snapshots = self.loans.get_snapshots()
        return [
            aggregate_creditor_stats(creditor.id, creditor.capital, snapshots)
            for creditor in self.parties.list_creditors()
        ]

    def creditor_loans(self, creditor_id: str) -> List[CreditorLoanPosition]:
        """
        The creditor's stake in each loan they fund

        Args:
            creditor_id: Creditor to list

        Returns:
            One position per loan, oldest loan first
        """
        creditor = self.parties.require_creditor(creditor_id)
        positions = []
        for loan in self.loans.get_loans_for_creditor(creditor.id):
            position = creditor_loan_position(creditor.id, loan.snapshot())
            if position is not None:
                positions.append(position)
        return positions

    def debtor_summary(self, debtor_id: str) -> DebtorStats:
        debtor = self.parties.require_debtor(debtor_id)
        return aggregate_debtor_stats(debtor.id, self.loans.get_snapshots(), self.currency)

    def debtor_stats(self) -> List[DebtorStats]:
        """Borrowing figures for every debtor, in registration order"""
        snapshots = self.loans.get_snapshots()
        return [
            aggregate_debtor_stats(debtor.id, snapshots, self.currency)
            for debtor in self.parties.list_debtors()
        ]

    def dashboard(self, today: Optional[date] = None) -> DashboardStats:
        """Headline figures, with collections taken from the payments ledger"""
        return dashboard_stats(
            self.loans.get_snapshots(),
            self.loans.get_payments(),
            today=today,
            currency=self.currency,
        )

    def monthly_collections(
        self,
        months: Optional[int] = None,
        today: Optional[date] = None
    ) -> List[MonthlyBucket]:
        """Trailing monthly collection trend, oldest month first"""
        return monthly_collection_series(
            self.loans.get_payments(),
            months=months if months is not None else self.config.collection_series_months,
            today=today,
            currency=self.currency,
        )

    def status_counts(self) -> Dict[str, int]:
        return loan_status_counts(self.loans.get_snapshots())

    def recent_loans(self, limit: Optional[int] = None) -> List[Loan]:
        """Newest loans first"""
        return newest_first(self.loans.list_loans(), limit if limit is not None else self.config.recent_loans_limit)

    def loan_collections(self, loan_id: str, today: Optional[date] = None) -> CollectionSummary:
        """Amount due, collected, outstanding and overdue for one loan"""
        today = today or date.today()
        return summarize_collections(self.loans.get_schedule_status(loan_id, today), today)
