"""HTTP API for the ERP payroll engine."""
