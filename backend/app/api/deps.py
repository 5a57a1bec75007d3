from __future__ import annotations

from typing import Generator

from fastapi import Header

from backend.app.core.errors import AuthenticationRequiredError
from backend.app.core.permissions import Actor
from backend.app.db.models.core_types import Role
from backend.app.db.session import SessionLocal

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_actor(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_user_role: str | None = Header(default=None, alias="X-User-Role"),
) -> Actor:
    """
    Identité posée en amont (gateway d'authentification).
    Le core lui fait confiance et ne vérifie que le rôle.
    """
    if not x_user_id or not x_user_id.strip() or not x_user_role:
        raise AuthenticationRequiredError("Authentication required")
    try:
        role = Role(x_user_role.strip())
    except ValueError:
        raise AuthenticationRequiredError(f"Unknown role '{x_user_role}'") from None
    return Actor(id=x_user_id.strip(), role=role)
