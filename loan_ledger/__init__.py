"""
Loan Ledger

Personal micro-lending ledger: loans disbursed to customers, payments collected
against them, running balances and delinquency tracking, with exact Decimal
arithmetic throughout.
"""

__version__ = "1.0.0"
