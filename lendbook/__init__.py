"""
Lendbook

Loan portfolio administration core: simple-interest repayment schedules,
multi-creditor allocations, payment status tracking and portfolio rollups.
All financial math uses Decimal.
"""

__version__ = "1.0.0"
