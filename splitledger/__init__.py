"""
Split Ledger - Source Package

A shared-expense ledger for a personal finance tracker: records expenses
paid by one member on behalf of a group, splits them equally or by custom
shares, tracks who has settled, and resolves who owes whom.

DESIGN PRINCIPLES:
1. Shares always add up to the total
2. Fail early with typed, correctable errors
3. Settlement only moves forward
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Split Ledger Team"
