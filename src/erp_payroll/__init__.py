"""ERP payroll generation and calculation engine."""

__version__ = "0.1.0"
