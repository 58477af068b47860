"""Payroll domain errors.

All errors are raised synchronously and propagate to the caller, which is
responsible for rolling back the unit of work and translating them into
user-facing responses. None are retried internally.
"""

from __future__ import annotations

from typing import Any


class PayrollError(Exception):
    """Base class for payroll domain errors."""

    code = "PAYROLL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PayrollError):
    """Malformed input or a violated data invariant."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, errors: dict[str, Any] | None = None):
        self.field = field
        self.errors = dict(errors or {})
        if field and field not in self.errors:
            self.errors[field] = message
        super().__init__(message)


class NotFoundError(PayrollError):
    """Unknown run, employee, item, loan or contract id."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class BusinessRuleError(PayrollError):
    """Domain-level illegal operation or transition."""

    code = "BUSINESS_RULE_VIOLATION"

    def __init__(self, message: str, rule: str | None = None):
        self.rule = rule
        super().__init__(message)
