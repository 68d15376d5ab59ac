"""School finance ledger: categories, transactions, book sales, payroll and reports."""

__version__ = "0.1.0"
