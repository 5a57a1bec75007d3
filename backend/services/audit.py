"""
Journal d'audit (transaction_logs).

Append-only : aucune fonction ici ne met à jour ni ne supprime une entrée.

- append()           : ajoute l'entrée DANS la transaction de l'appelant,
                       sous SAVEPOINT. Si l'insert échoue, seul le savepoint
                       est annulé : la transaction métier continue.
- append_committed() : variante après commit (best-effort, son propre commit).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.db.models.core_types import AuditAction
from backend.app.db.models.models_v1 import TransactionLog

logger = logging.getLogger(__name__)


def _build_entry(
    *,
    entity_type: str,
    entity_id: Any,
    action: AuditAction,
    user_id: str | None,
    details: dict[str, Any] | None,
) -> TransactionLog:
    return TransactionLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        user_id=user_id,
        details=jsonable_encoder(details) if details is not None else None,
    )


def append(
    db: Session,
    *,
    entity_type: str,
    entity_id: Any,
    action: AuditAction,
    user_id: str | None,
    details: dict[str, Any] | None = None,
) -> TransactionLog | None:
    entry = _build_entry(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        user_id=user_id,
        details=details,
    )
    # les mutations de l'appelant doivent échouer pour leur propre compte
    db.flush()
    try:
        with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError:
        logger.exception("Audit append failed for %s %s (%s)", entity_type, entity_id, action.value)
        return None
    return entry


def append_committed(
    db: Session,
    *,
    entity_type: str,
    entity_id: Any,
    action: AuditAction,
    user_id: str | None,
    details: dict[str, Any] | None = None,
) -> TransactionLog | None:
    entry = _build_entry(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        user_id=user_id,
        details=details,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Audit append failed for %s %s (%s)", entity_type, entity_id, action.value)
        return None
    return entry


def recent_entries(
    db: Session,
    *,
    entity_type: str,
    since: datetime,
    limit: int,
) -> list[TransactionLog]:
    return list(
        db.execute(
            select(TransactionLog)
            .where(TransactionLog.entity_type == entity_type)
            .where(TransactionLog.created_at >= since)
            .order_by(TransactionLog.created_at.desc())
            .limit(limit)
        )
        .scalars()
        .all()
    )


def entries_for(db: Session, *, entity_type: str, entity_id: Any) -> list[TransactionLog]:
    return list(
        db.execute(
            select(TransactionLog)
            .where(TransactionLog.entity_type == entity_type)
            .where(TransactionLog.entity_id == str(entity_id))
            .order_by(TransactionLog.created_at.asc())
        )
        .scalars()
        .all()
    )
