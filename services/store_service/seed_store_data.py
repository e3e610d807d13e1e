"""Seed script for store demo data.

Creates the three roles, one user per role, and a small shoe catalog so the
web pages and the API can be tried end-to-end.

Usage:
    python -m services.store_service.seed_store_data

Demo logins (change them outside local development):
    admin / admin123, manager / manager123, client / client123
"""

import asyncio
from decimal import Decimal

from libs.auth.passwords import hash_password
from libs.auth.policy import Role as RoleName
from libs.db.config import AsyncSessionLocal
from services.store_service.models import (
    NEW_ORDER_STATUS,
    Category,
    Manufacturer,
    OrderStatus,
    Product,
    Role,
    Supplier,
    User,
)
from sqlalchemy import func, select

DEMO_USERS = [
    ("admin", "admin123", "Store Administrator", RoleName.ADMINISTRATOR),
    ("manager", "manager123", "Store Manager", RoleName.MANAGER),
    ("client", "client123", "Demo Client", RoleName.CLIENT),
]

# article, name, description, unit, price, discount, stock, category, manufacturer, supplier
DEMO_PRODUCTS = [
    ("A112T4", "Ankle boots", "Women's leather ankle boots with warm lining", "pair", "4990", "3", 6, "Women's shoes", "Kari", "Kari"),
    ("F635R4", "Loafers", "Men's suede loafers for everyday wear", "pair", "3244", "2", 13, "Men's shoes", "Marco Tozzi", "ShoeHub"),
    ("H782T5", "Sneakers", "Men's running sneakers with breathable mesh", "pair", "4499", "4", 5, "Men's shoes", "Rieker", "Kari"),
    ("G783F5", "Oxford shoes", "Men's classic leather oxford shoes", "pair", "5900", "2", 8, "Men's shoes", "Rieker", "ShoeHub"),
    ("J384T6", "Ballet flats", "Women's soft ballet flats", "pair", "3800", "2", 16, "Women's shoes", "Kari", "Kari"),
    ("D572U8", "Winter boots", "Women's waterproof winter boots", "pair", "4100", "18", 0, "Women's shoes", "Alessio Nesca", "ShoeHub"),
    ("F572H7", "Slippers", None, "pair", "990", "0", 20, "Home shoes", "CROSBY", "Kari"),
    ("S213E3", "Shoe cream", "Black shoe cream for leather care", "pcs", "199", "25", 12, "Care", "CROSBY", "ShoeHub"),
]


async def seed_store_data():
    async with AsyncSessionLocal() as db:
        print("Seeding store data...")

        # Check if data already exists
        count = (await db.execute(select(func.count(Product.id)))).scalar()
        if count:
            print(f"Store data already exists ({count} products). Skipping seed.")
            return

        # =========================================================================
        # 1. ROLES AND USERS
        # =========================================================================
        roles = {name: Role(name=name.value) for name in RoleName}
        db.add_all(roles.values())

        for login, password, full_name, role_name in DEMO_USERS:
            db.add(
                User(
                    login=login,
                    password_hash=hash_password(password),
                    full_name=full_name,
                    role=roles[role_name],
                )
            )

        db.add(OrderStatus(name=NEW_ORDER_STATUS))
        db.add(OrderStatus(name="Completed"))

        # =========================================================================
        # 2. REFERENCE DATA
        # =========================================================================
        categories = {
            name: Category(name=name) for name in sorted({p[7] for p in DEMO_PRODUCTS})
        }
        manufacturers = {
            name: Manufacturer(name=name)
            for name in sorted({p[8] for p in DEMO_PRODUCTS})
        }
        suppliers = {
            name: Supplier(name=name) for name in sorted({p[9] for p in DEMO_PRODUCTS})
        }
        db.add_all([*categories.values(), *manufacturers.values(), *suppliers.values()])

        # =========================================================================
        # 3. PRODUCTS
        # =========================================================================
        for (
            article,
            name,
            description,
            unit,
            price,
            discount,
            stock,
            category,
            manufacturer,
            supplier,
        ) in DEMO_PRODUCTS:
            db.add(
                Product(
                    article=article,
                    name=name,
                    description=description,
                    unit=unit,
                    price=Decimal(price),
                    discount=Decimal(discount),
                    stock_quantity=stock,
                    category=categories[category],
                    manufacturer=manufacturers[manufacturer],
                    supplier=suppliers[supplier],
                )
            )

        await db.commit()
        print("=" * 60)
        print("Store data seeded successfully!")
        print("=" * 60)
        print(f"  Users: {len(DEMO_USERS)}")
        print(f"  Categories: {len(categories)}")
        print(f"  Manufacturers: {len(manufacturers)}")
        print(f"  Suppliers: {len(suppliers)}")
        print(f"  Products: {len(DEMO_PRODUCTS)}")
        print("=" * 60)


if __name__ == "__main__":
    asyncio.run(seed_store_data())
