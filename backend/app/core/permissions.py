from __future__ import annotations

import enum
from dataclasses import dataclass

from backend.app.core.errors import PermissionDeniedError
from backend.app.db.models.core_types import Role


class Operation(str, enum.Enum):
    submit_approvisionnement = "submit_approvisionnement"
    read_approvisionnement = "read_approvisionnement"
    validate_bd = "validate_bd"
    reject_bd = "reject_bd"
    receive_stock = "receive_stock"
    reject_stock = "reject_stock"
    process_order = "process_order"
    read_order = "read_order"
    read_stock = "read_stock"
    adjust_stock = "adjust_stock"
    transfer_stock = "transfer_stock"
    stock_report = "stock_report"
    stock_alert = "stock_alert"


_BUSINESS = frozenset({Role.business_developer, Role.admin})
_STOCK = frozenset({Role.stock_manager, Role.admin})

PERMISSIONS: dict[Operation, frozenset[Role]] = {
    Operation.submit_approvisionnement: frozenset({Role.supplier, Role.admin}),
    Operation.read_approvisionnement: frozenset(
        {Role.admin, Role.business_developer, Role.stock_manager, Role.supplier}
    ),
    Operation.validate_bd: _BUSINESS,
    Operation.reject_bd: _BUSINESS,
    Operation.receive_stock: _STOCK,
    Operation.reject_stock: _STOCK,
    Operation.process_order: frozenset({Role.client, Role.admin}),
    Operation.read_order: frozenset({Role.client, Role.admin, Role.stock_manager}),
    Operation.read_stock: frozenset({Role.admin, Role.business_developer, Role.stock_manager, Role.client}),
    Operation.adjust_stock: _STOCK,
    Operation.transfer_stock: _STOCK,
    Operation.stock_report: _STOCK,
    Operation.stock_alert: _STOCK,
}


@dataclass(frozen=True)
class Actor:
    """Utilisateur courant tel que fourni par la source d'identité."""

    id: str
    role: Role


def is_allowed(role: Role, operation: Operation) -> bool:
    return role in PERMISSIONS.get(operation, frozenset())


def require_role(actor: Actor, operation: Operation) -> None:
    if not is_allowed(actor.role, operation):
        raise PermissionDeniedError(
            f"Role '{actor.role.value}' is not allowed to {operation.value}",
            details={"operation": operation.value, "role": actor.role.value},
        )
