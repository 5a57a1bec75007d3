"""
Exceptions métier.

Chaque erreur porte un code stable et le statut HTTP correspondant.
Les services les lèvent, la couche API les rend en JSON
({"error", "code", "details"}).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class DomainError(Exception):
    """Base exception for all workflow errors"""

    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, *, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    """Malformed or missing input, raised before any mutation"""

    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidTransferError(ValidationError):
    """Transfer source and destination are the same warehouse"""

    code = "INVALID_TRANSFER"


class AuthenticationRequiredError(DomainError):
    code = "UNAUTHORIZED"
    status_code = 401


class PermissionDeniedError(DomainError):
    """Caller's role is not allowed to run the operation"""

    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    status_code = 404


class StateConflictError(DomainError):
    """Entity is not in the state required by the transition"""

    code = "INVALID_STATUS"
    status_code = 409


class InsufficientStockError(DomainError):
    """Requested quantity exceeds what the ledger holds"""

    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        product_id: Any,
        available: Decimal,
        requested: Decimal,
        product_name: str | None = None,
    ):
        super().__init__(
            message,
            details={
                "product_id": str(product_id),
                "product_name": product_name,
                "available": str(available),
                "requested": str(requested),
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested


class NegativeStockError(InsufficientStockError):
    """Adjustment would drive a ledger quantity below zero"""

    code = "NEGATIVE_STOCK"


class InternalError(DomainError):
    """Unexpected store or collaborator failure; the transaction was rolled back"""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
