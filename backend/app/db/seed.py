from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select

from backend.app.core.config import get_settings
from backend.app.core.logging_config import configure_logging
from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import Product, Stock, User, Warehouse
from backend.app.db.models.core_types import Role

logger = logging.getLogger(__name__)

# un utilisateur par rôle ; les ids sont ceux envoyés dans X-User-Id
SEED_USERS = [
    ("admin-1", "Admin", Role.admin),
    ("bd-1", "Business Developer", Role.business_developer),
    ("sm-1", "Stock Manager", Role.stock_manager),
    ("supplier-1", "Fournisseur Maraîcher", Role.supplier),
    ("client-1", "Restaurant Le Comptoir", Role.client),
    ("driver-1", "Livreur", Role.driver),
]

SEED_PRODUCTS = [
    ("Tomates", "kg", Decimal("2.50")),
    ("Pommes de terre", "kg", Decimal("1.20")),
    ("Huile d'olive", "l", Decimal("8.90")),
]


def run_seed():
    db = SessionLocal()
    try:
        # 1) Utilisateurs
        for user_id, name, role in SEED_USERS:
            if not db.get(User, user_id):
                db.add(User(id=user_id, name=name, role=role, email=f"{user_id}@distrib.local", active=True))
        db.commit()

        # 2) Entrepôt principal
        warehouse = db.scalar(select(Warehouse).where(Warehouse.name == "Entrepôt Central"))
        if not warehouse:
            warehouse = Warehouse(name="Entrepôt Central", address="1 rue du Marché, Rungis")
            db.add(warehouse)
            db.commit()

        # 3) Produits + ligne de stock vide
        for name, unit, price in SEED_PRODUCTS:
            product = db.scalar(select(Product).where(Product.name == name))
            if not product:
                product = Product(name=name, unit=unit, active=True)
                db.add(product)
                db.flush()
                db.add(Stock(product_id=product.id, warehouse_id=warehouse.id, quantity=Decimal("0"), unit_price=price))
        db.commit()

        logger.info("SEED OK: %d users, warehouse=%s, %d products", len(SEED_USERS), warehouse.name, len(SEED_PRODUCTS))
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging(get_settings().log_level)
    run_seed()
