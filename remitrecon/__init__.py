"""RemitRecon - remittance payment to deduction reconciliation.

Matches incoming remittance payments against outstanding deductions of the
same vendor ledger and records each match as an idempotent billing entry.
"""

__version__ = "0.1.0"
