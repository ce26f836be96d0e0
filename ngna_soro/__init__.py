"""
N'GNA SÔRÔ! Loan Engine

Loan amortization scheduling and delinquency accrual for the N'GNA SÔRÔ!
microfinance platform, using Decimal arithmetic and a hash-chained audit trail.
"""

__version__ = "1.0.0"
