"""
Expense Tracker - Source Package

A personal ledger of deposits and expenses per person, with running
balances grouped by month and email one-time-passcode access.

DESIGN PRINCIPLES:
1. Balances are always recomputed from stored transactions, never stored
2. Stored transactions are never mutated
3. Fail early, fail visibly
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
