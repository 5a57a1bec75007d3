"""
Notifications (fire-and-forget).

Les workflows accumulent des PendingNotification pendant la transaction
et n'appellent dispatch() qu'APRÈS le commit : aucune ligne de stock ne
reste verrouillée pendant l'envoi, et un échec d'envoi n'annule jamais
la mutation déjà commitée (at-most-once, pas de retry).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.core_types import NotificationStatus, NotificationType, Role
from backend.app.db.models.models_v1 import Notification, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingNotification:
    user_id: str
    message: str
    type: NotificationType = NotificationType.email


def send(db: Session, *, user_id: str, type: NotificationType, message: str) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        message=message,
        status=NotificationStatus.sent,
    )
    db.add(notification)
    db.commit()
    return notification


def dispatch(db: Session, pending: Iterable[PendingNotification]) -> int:
    """Envoie chaque notification indépendamment. Retourne le nombre envoyé."""
    sent = 0
    for item in pending:
        try:
            send(db, user_id=item.user_id, type=item.type, message=item.message)
        except Exception:
            db.rollback()
            logger.exception("Notification to %s dropped", item.user_id)
            continue
        sent += 1
    return sent


def staff_recipients(db: Session, role: Role) -> list[str]:
    return list(
        db.execute(
            select(User.id)
            .where(User.role == role)
            .where(User.active.is_(True))
            .order_by(User.id)
        )
        .scalars()
        .all()
    )
