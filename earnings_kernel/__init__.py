"""
Earnings Kernel

Lowest layer of the earnings and billing reconciliation engine:
- Structured logging and typed exceptions
- Injectable clock and Decimal helpers
- Immutable domain records (placements, goals, evidence, ledgers)
- SQLAlchemy declarative base and session utilities
"""

__version__ = "0.1.0"
