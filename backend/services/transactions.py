from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.errors import DomainError, InternalError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, operation: str) -> Iterator[Session]:
    """
    Unité de travail d'une opération : commit si tout passe,
    rollback complet sinon. Rien de partiel n'est jamais commité.

    Les erreurs SQL et toute autre exception imprévue sont converties
    en InternalError.
    """
    try:
        yield db
        db.commit()
    except DomainError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s rolled back after a store failure", operation)
        raise InternalError(f"{operation} failed", details=str(exc)) from exc
    except Exception as exc:
        db.rollback()
        logger.exception("%s rolled back after an unexpected failure", operation)
        raise InternalError(f"{operation} failed", details=repr(exc)) from exc
