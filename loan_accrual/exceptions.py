"""Custom exceptions for the loan accrual engine."""

from __future__ import annotations

from typing import Any, Dict, Optional


class LoanAccrualError(Exception):
    """Base exception for all loan accrual errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ValidationError(LoanAccrualError):
    """Raised when loan or transaction input cannot be parsed."""

    def __init__(self, field: str, value: Any = None, reason: str = "invalid value"):
        details = {"field": field}
        if value is not None:
            details["value"] = value
        super().__init__(f"Invalid '{field}': {reason}", details)
        self.field = field


class MissingLoanError(LoanAccrualError):
    """Raised when a calculation is requested without a loan."""

    def __init__(self, operation: str):
        super().__init__(f"A loan is required to {operation}", {"operation": operation})


class UnsupportedInterestTypeError(LoanAccrualError):
    """Raised when no amortization model is registered for an interest type."""

    def __init__(self, interest_type: str, available=None):
        details = {"interest_type": interest_type}
        if available:
            details["available"] = sorted(available)
        super().__init__(f"No amortization model for interest type '{interest_type}'", details)
