# Overview: Typed failures raised by the sales, inventory and debt services.

"""
Error taxonomy

Every failure the core can report is a LedgerError carrying a human-readable
message, a details dict for the caller, and the HTTP status the API layer
should answer with. Nothing here is retried by the core.

- ValidationError / DuplicateDeviceId: malformed input, no write attempted
- InsufficientStock: business-rule rejection, no write attempted
- OverPayment: debt payment above the derived remaining balance
- NotFound: referenced row missing at write time
- PersistenceError: a data store call failed
- PartialFailure: a multi-step operation failed after its first write and
  could not be compensated; an operator must reconcile
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all core failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""


class DuplicateDeviceId(ValidationError):
    """A device/serial identifier appears more than once where it must be unique."""

    def __init__(self, device_id: str, scope: str):
        super().__init__(
            f'Device ID "{device_id}" already exists in this {scope}',
            details={"device_id": device_id, "scope": scope},
        )
        self.device_id = device_id
        self.scope = scope


class NotFound(LedgerError):
    status_code = 404


class SaleError(LedgerError):
    """Business-rule rejection raised by sale and inventory operations."""
    status_code = 409


class InsufficientStock(SaleError):
    def __init__(self, product_id: int, available: int, requested: int, product_name: str | None = None):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}: only {available} available",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested


class DebtError(LedgerError):
    """Business-rule rejection raised by debt operations."""
    status_code = 409


class OverPayment(DebtError):
    def __init__(self, debt_id: int, remaining_cents: int, attempted_cents: int):
        super().__init__(
            f"Payment of {attempted_cents} exceeds remaining balance {remaining_cents}",
            details={
                "debt_id": debt_id,
                "remaining_cents": remaining_cents,
                "attempted_cents": attempted_cents,
            },
        )
        self.debt_id = debt_id
        self.remaining_cents = remaining_cents
        self.attempted_cents = attempted_cents


class PersistenceError(LedgerError):
    status_code = 503

    def __init__(self, message: str, details: dict | None = None, *, transient: bool = False):
        super().__init__(message, details)
        # True when the failed call rolled back cleanly and may be retried
        self.transient = transient


class PartialFailure(PersistenceError):
    """
    Raised when some writes of a multi-step operation landed and the
    compensating writes failed too. `applied` lists the steps that are
    known to be persisted.
    """
    status_code = 500

    def __init__(self, operation: str, applied: list[dict], cause: Exception):
        super().__init__(
            f"{operation} was partially applied and needs reconciliation: {cause}",
            details={"operation": operation, "applied": applied, "cause": str(cause)},
        )
        self.operation = operation
        self.applied = applied
        self.cause = cause
