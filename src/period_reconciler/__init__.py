"""Payroll period reconciliation engine.

Keeps a company's payroll-period ledger consistent: deterministic
numbering, unique intervals, complete annual cycles and period states
that agree with their payroll records.
"""

__version__ = "0.1.0"
