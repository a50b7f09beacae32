"""Initial catalog and admin account. Safe to run on every start."""

import logging

from .database import Database
from .schemas import Category, Product, Role, User
from .security import hash_password

logger = logging.getLogger(__name__)

CATEGORIES = [
    {"name": "Tools", "slug": "tools"},
    {"name": "Electrical", "slug": "electrical"},
    {"name": "Plumbing", "slug": "plumbing"},
    {"name": "Building Materials", "slug": "building-materials"},
    {"name": "Hardware", "slug": "hardware"},
    {"name": "Garden & Outdoor", "slug": "garden-outdoor"},
]

PRODUCTS = [
    {
        "sku": "HAM-001", "name": "Hammer", "slug": "hammer", "category": "tools",
        "description": "Professional claw hammer for construction and DIY projects",
        "price": 25.99, "stock_quantity": 50,
    },
    {
        "sku": "DRI-001", "name": "Cordless Drill", "slug": "cordless-drill", "category": "tools",
        "description": "18V cordless drill with battery and charger",
        "price": 89.99, "stock_quantity": 30,
    },
    {
        "sku": "WIR-001", "name": "Electrical Wire", "slug": "electrical-wire", "category": "electrical",
        "description": "100m roll of 2.5mm² electrical wire",
        "price": 45.50, "stock_quantity": 25,
    },
    {
        "sku": "PIP-001", "name": "PVC Pipe", "slug": "pvc-pipe", "category": "plumbing",
        "description": "3m PVC pipe, 50mm diameter",
        "price": 12.99, "stock_quantity": 100,
    },
    {
        "sku": "CEM-001", "name": "Portland Cement", "slug": "portland-cement", "category": "building-materials",
        "description": "50kg bag of Portland cement",
        "price": 8.99, "stock_quantity": 200,
    },
]


def seed_database(db: Database, settings) -> None:
    created = 0
    category_ids = {}
    for c in CATEGORIES:
        existing = db["category"].find_one({"slug": c["slug"]})
        if existing:
            category_ids[c["slug"]] = existing["_id"]
            continue
        category_ids[c["slug"]] = db["category"].insert_one(Category(**c).model_dump()).inserted_id
        created += 1

    for p in PRODUCTS:
        if db["product"].find_one({"sku": p["sku"]}):
            continue
        fields = {k: v for k, v in p.items() if k != "category"}
        db["product"].insert_one(Product(category_id=category_ids[p["category"]], **fields).model_dump())
        created += 1

    if not db["user"].find_one({"email": settings.admin_email}):
        admin = User(
            email=settings.admin_email,
            password_hash=hash_password(settings.admin_password),
            full_name="Admin User",
            role=Role.ADMIN,
        )
        db["user"].insert_one(admin.model_dump())
        created += 1
        logger.info("Created admin user %s", settings.admin_email)

    logger.info("Database seeding complete (%d new documents)", created)
