"""Standardized exception hierarchy for RemitRecon.

All exceptions carry a human-readable message plus a structured context
dict, so they can be logged with structlog without string parsing.

Usage:
    from remitrecon.exceptions import DatabaseConnectionError

    try:
        check_connection()
    except DatabaseConnectionError as e:
        logger.error("setup_failed", error=str(e), context=e.context)
"""

from __future__ import annotations

from typing import Any


class RemitReconError(Exception):
    """Base exception for all RemitRecon errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging (dict)
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Format exception with context for logging."""
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        if self.original_error:
            base = f"{base} [caused by: {type(self.original_error).__name__}]"
        return base

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(RemitReconError):
    """Raised when application configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if setting:
            context["setting"] = setting
        if expected:
            context["expected"] = expected
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Database & Persistence Errors
# =============================================================================


class DatabaseError(RemitReconError):
    """Base class for database-related errors."""


class DatabaseConnectionError(DatabaseError):
    """Raised when a data-access session cannot be established.

    Fatal for the whole run.
    """


class DatabaseIntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""


# =============================================================================
# Reconciliation Errors
# =============================================================================


class ReconciliationError(RemitReconError):
    """Base class for reconciliation rule and write failures."""


class MatchAttemptError(ReconciliationError):
    """Raised when the atomic unit for a payment/deduction pair fails.

    The pair is treated as unmatched; the run continues.
    """

    def __init__(
        self,
        message: str,
        *,
        payment_id: int | None = None,
        deduction_id: int | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if payment_id is not None:
            context["payment_id"] = payment_id
        if deduction_id is not None:
            context["deduction_id"] = deduction_id
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.payment_id = payment_id
        self.deduction_id = deduction_id


class StaleDeductionError(MatchAttemptError):
    """Raised when a deduction re-read inside the unit is mapped or ineligible."""


class PaymentConsumedError(MatchAttemptError):
    """Raised when the payment already settles a deduction committed elsewhere."""


class UnresolvableReferenceError(ReconciliationError):
    """A deduction's case, vendor or organization cannot be resolved.

    Resolvers build it for the debug log and return None; the deduction is
    treated as ineligible.
    """

    def __init__(
        self,
        message: str,
        *,
        deduction_id: int | None = None,
        missing: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if deduction_id is not None:
            context["deduction_id"] = deduction_id
        if missing:
            context["missing"] = missing
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.missing = missing


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    error: Exception,
    message: str,
    *,
    exception_class: type[RemitReconError] = RemitReconError,
    **context: Any,
) -> RemitReconError:
    """Wrap an external exception in the RemitRecon exception hierarchy.

    Example:
        try:
            session.commit()
        except IntegrityError as e:
            raise wrap_exception(
                e,
                "Billing ledger entry already exists",
                exception_class=DatabaseIntegrityError,
                billing_key="PAY-001",
            )
    """
    return exception_class(
        message,
        context=context,
        original_error=error,
    )


__all__ = [
    "RemitReconError",
    "ConfigurationError",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseIntegrityError",
    "ReconciliationError",
    "MatchAttemptError",
    "StaleDeductionError",
    "PaymentConsumedError",
    "UnresolvableReferenceError",
    "wrap_exception",
]
