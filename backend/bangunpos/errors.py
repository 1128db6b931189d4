"""
Domain error taxonomy.

Every service failure is raised as a PosError subclass. Routes translate
them into JSON responses using status_code; client_error tells the boundary
whether the caller or the server is at fault (only the latter is logged
with a traceback).
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for all domain failures."""

    kind = "Error"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def client_error(self) -> bool:
        return self.status_code < 500

    def to_dict(self) -> dict:
        payload = {"error": self.message, "kind": self.kind}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(PosError):
    """Referenced product/unit/category/supplier/transaction/debt record does not exist."""
    kind = "NotFound"
    status_code = 404


class ConflictError(PosError):
    """Uniqueness violation (duplicate SKU, duplicate category name)."""
    kind = "Conflict"
    status_code = 409


class InvalidStateError(PosError):
    """Operation would violate an invariant (negative stock, referenced delete, SKU change after sale)."""
    kind = "InvalidState"
    status_code = 400


class InsufficientStockError(PosError):
    kind = "InsufficientStock"
    status_code = 400


class InvalidPaymentError(PosError):
    kind = "InvalidPayment"
    status_code = 400


class NotADebtTransactionError(InvalidPaymentError):
    kind = "NotADebtTransaction"


class AlreadySettledError(InvalidPaymentError):
    kind = "AlreadySettled"


class OverPaymentError(InvalidPaymentError):
    kind = "OverPayment"


class AlreadyCancelledError(PosError):
    kind = "AlreadyCancelled"
    status_code = 400


class HasPaymentsError(PosError):
    kind = "HasPayments"
    status_code = 400
