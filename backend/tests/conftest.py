import os

# avant tout import de backend.* : get_settings() est mis en cache
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("APP_ENV", "test")

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.api.deps import get_db
from backend.app.core.permissions import Actor
from backend.app.db.base import Base
from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import Product, Stock, User, Warehouse
from backend.app.main import app


@pytest.fixture(scope="function")
def engine():
    """
    Base SQLite en mémoire, neuve pour chaque test.

    Les services font leurs propres commit()/rollback() : une base jetable
    par test remplace la transaction englobante.
    SAVEPOINT sous pysqlite : on laisse SQLAlchemy émettre BEGIN lui-même.
    """
    eng = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Session:
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def world(db_session):
    """
    Données de référence : un utilisateur par rôle,
    deux entrepôts, deux produits. Aucun stock.
    """
    users = {}
    for role in Role:
        user = User(id=f"{role.value}-1", name=role.value.replace("_", " ").title(), role=role, active=True)
        db_session.add(user)
        users[role] = user

    north = Warehouse(name="Entrepôt Nord", address="Lille")
    south = Warehouse(name="Entrepôt Sud", address="Marseille")
    tomatoes = Product(name="Tomates", unit="kg", active=True)
    potatoes = Product(name="Pommes de terre", unit="kg", active=True)
    db_session.add_all([north, south, tomatoes, potatoes])
    db_session.commit()

    return SimpleNamespace(
        users=users,
        actors={role: Actor(id=user.id, role=role) for role, user in users.items()},
        north=north,
        south=south,
        tomatoes=tomatoes,
        potatoes=potatoes,
    )


@pytest.fixture
def put_stock(db_session):
    """Crée une ligne de ledger et la commite."""

    def _put(product, warehouse, quantity, unit_price="10.00") -> Stock:
        sl = Stock(
            product_id=product.id,
            warehouse_id=warehouse.id,
            quantity=Decimal(str(quantity)),
            unit_price=Decimal(str(unit_price)),
        )
        db_session.add(sl)
        db_session.commit()
        return sl

    return _put


@pytest.fixture
def client(db_session):
    def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    """En-têtes d'identité posés par la gateway."""

    def _headers(actor: Actor) -> dict:
        return {"X-User-Id": actor.id, "X-User-Role": actor.role.value}

    return _headers
