"""
Expense Manager - Source Package

A personal expense tracker: record dated expenses, tag them to
family members, and review monthly spending analytics.

DESIGN PRINCIPLES:
1. Every record belongs to exactly one user
2. Fail early, fail visibly
3. Analytics are pure functions of stored data
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "0.1.0"
__author__ = "Expense Manager Team"
