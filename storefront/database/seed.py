"""
Seed the catalog with sample categories, products and images.

Usage:
    python -m storefront.database.seed

Existing rows (matched by slug) are left untouched, so the script can be
re-run safely.
"""

import asyncio
from decimal import Decimal

import structlog
from sqlalchemy import select

from storefront.config.logging import configure_logging
from storefront.database.connection import close_database, get_db, init_database
from storefront.database.models import Category, Product, ProductImage

logger = structlog.get_logger(__name__)

IMG = "https://images.unsplash.com/photo-{}?w=600&h=600&fit=crop"

# (name, slug, description, parent slug, image id, sort order)
CATEGORIES = [
    ("Furniture", "furniture", "Beautiful and functional furniture for every room", None, "1586023492125-27b2c045efd7", 1),
    ("Home Decor", "home-decor", "Transform your space with stylish decorative items", None, "1449824913935-59a10b8d2000", 2),
    ("Kitchen & Dining", "kitchen-dining", "Everything you need for cooking and dining", None, "1556909114-f6e7ad7d3136", 3),
    ("Bedding & Bath", "bedding-bath", "Comfort and style for your bedroom and bathroom", None, "1505691723518-36a1bcb13fc8", 4),
    ("Living Room", "living-room", "Sofas, chairs, and living room essentials", "furniture", "1586023492125-27b2c045efd7", 1),
    ("Bedroom", "bedroom", "Beds, nightstands, and bedroom furniture", "furniture", "1505691723518-36a1bcb13fc8", 2),
    ("Dining Room", "dining-room", "Dining tables, chairs, and storage", "furniture", "1449824913935-59a10b8d2000", 3),
    ("Wall Art & Mirrors", "wall-art-mirrors", "Artwork, mirrors, and wall decorations", "home-decor", "1449824913935-59a10b8d2000", 1),
    ("Lighting", "lighting", "Table lamps, floor lamps, and ceiling lights", "home-decor", "1507003211169-0a1dd7228f2d", 2),
    ("Rugs & Carpets", "rugs-carpets", "Area rugs, runners, and floor coverings", "home-decor", "1586023492125-27b2c045efd7", 3),
    ("Cookware", "cookware", "Pots, pans, and cooking utensils", "kitchen-dining", "1556909114-f6e7ad7d3136", 1),
    ("Dinnerware", "dinnerware", "Plates, bowls, glasses, and cutlery", "kitchen-dining", "1556909114-f6e7ad7d3136", 2),
    ("Storage & Organization", "storage-organization", "Kitchen storage and organization solutions", "kitchen-dining", "1556909114-f6e7ad7d3136", 3),
]

PRODUCTS = [
    {
        "name": "Modern Sectional Sofa",
        "slug": "modern-sectional-sofa",
        "short_description": "Comfortable sectional sofa with premium fabric upholstery",
        "description": "Comfortable and stylish sectional sofa perfect for modern living rooms. "
                       "Upholstered in premium fabric with sturdy hardwood frame construction.",
        "sku": "MS-SOFA-001",
        "price": "1299.99",
        "compare_at_price": "1599.99",
        "stock_quantity": 15,
        "category": "living-room",
        "is_featured": True,
        "images": ["1586023492125-27b2c045efd7", "1555041469-a586c61ea9bc"],
    },
    {
        "name": "Mid-Century Armchair",
        "slug": "mid-century-armchair",
        "short_description": "Classic mid-century chair with wooden legs",
        "description": "Classic mid-century modern armchair with tapered wooden legs and comfortable cushions.",
        "sku": "MC-CHAIR-001",
        "price": "499.99",
        "stock_quantity": 25,
        "category": "living-room",
        "images": ["1507003211169-0a1dd7228f2d"],
    },
    {
        "name": "Glass Coffee Table",
        "slug": "glass-coffee-table",
        "short_description": "Tempered glass coffee table with metal frame",
        "description": "Elegant tempered glass coffee table with sleek metal frame.",
        "sku": "GC-TABLE-001",
        "price": "299.99",
        "compare_at_price": "399.99",
        "stock_quantity": 20,
        "category": "living-room",
        "is_featured": True,
        "images": ["1449824913935-59a10b8d2000"],
    },
    {
        "name": "Queen Platform Bed",
        "slug": "queen-platform-bed",
        "short_description": "Minimalist queen platform bed",
        "description": "Minimalist queen platform bed with solid wood construction. No box spring required.",
        "sku": "QB-PLATFORM-001",
        "price": "899.99",
        "compare_at_price": "1199.99",
        "stock_quantity": 12,
        "category": "bedroom",
        "is_featured": True,
        "images": ["1505691723518-36a1bcb13fc8"],
    },
    {
        "name": "Walnut Nightstand",
        "slug": "walnut-nightstand",
        "short_description": "Solid walnut nightstand with drawer",
        "sku": "WN-STAND-001",
        "price": "249.99",
        "stock_quantity": 30,
        "category": "bedroom",
        "images": ["1505691723518-36a1bcb13fc8"],
    },
    {
        "name": "Extendable Dining Table",
        "slug": "extendable-dining-table",
        "short_description": "Seats six, extends to ten",
        "sku": "ED-TABLE-001",
        "price": "1199.99",
        "compare_at_price": "1499.99",
        "stock_quantity": 8,
        "category": "dining-room",
        "images": ["1449824913935-59a10b8d2000"],
    },
    {
        "name": "Modern Floor Lamp",
        "slug": "modern-floor-lamp",
        "short_description": "Arc floor lamp with linen shade",
        "sku": "MF-LAMP-001",
        "price": "189.99",
        "compare_at_price": "249.99",
        "stock_quantity": 40,
        "category": "lighting",
        "images": ["1507003211169-0a1dd7228f2d"],
    },
    {
        "name": "Persian Area Rug",
        "slug": "persian-area-rug",
        "short_description": "Hand-knotted wool area rug",
        "sku": "PA-RUG-001",
        "price": "399.99",
        "compare_at_price": "599.99",
        "stock_quantity": 12,
        "category": "rugs-carpets",
        "images": ["1586023492125-27b2c045efd7"],
    },
    {
        "name": "Stainless Steel Cookware Set",
        "slug": "stainless-steel-cookware-set",
        "short_description": "Ten-piece tri-ply cookware set",
        "sku": "SC-SET-010",
        "price": "299.99",
        "compare_at_price": "449.99",
        "stock_quantity": 20,
        "category": "cookware",
        "images": ["1556909114-f6e7ad7d3136"],
    },
    {
        "name": "Porcelain Dinnerware Set",
        "slug": "porcelain-dinnerware-set",
        "short_description": "Sixteen-piece service for four",
        "sku": "PD-SET-016",
        "price": "149.99",
        "compare_at_price": "199.99",
        "stock_quantity": 35,
        "category": "dinnerware",
        "images": ["1556909114-f6e7ad7d3136"],
    },
    {
        "name": "Luxury Bedding Set",
        "slug": "luxury-bedding-set",
        "short_description": "Egyptian cotton duvet cover and shams",
        "sku": "LB-SET-001",
        "price": "199.99",
        "compare_at_price": "299.99",
        "stock_quantity": 30,
        "category": "bedding-bath",
        "images": ["1505691723518-36a1bcb13fc8"],
    },
]


async def seed_categories(db) -> dict:
    """Insert missing categories; returns slug -> id for all seeded slugs."""
    ids = {}
    for name, slug, description, parent, image, sort_order in CATEGORIES:
        category = await db.scalar(select(Category).where(Category.slug == slug))
        if category is None:
            category = Category(
                name=name,
                slug=slug,
                description=description,
                parent_id=ids.get(parent),
                image_url=IMG.format(image),
                sort_order=sort_order,
            )
            db.add(category)
            await db.flush()
        ids[slug] = category.id

    logger.info("Categories seeded", count=len(ids))
    return ids


async def seed_products(db, category_ids: dict) -> int:
    created = 0
    for data in PRODUCTS:
        if await db.scalar(select(Product.id).where(Product.slug == data["slug"])):
            continue

        product = Product(
            name=data["name"],
            slug=data["slug"],
            description=data.get("description"),
            short_description=data.get("short_description"),
            sku=data["sku"],
            price=Decimal(data["price"]),
            compare_at_price=Decimal(data["compare_at_price"]) if data.get("compare_at_price") else None,
            stock_quantity=data["stock_quantity"],
            category_id=category_ids[data["category"]],
            brand="Modahaus",
            is_featured=data.get("is_featured", False),
            images=[
                ProductImage(
                    image_url=IMG.format(image),
                    alt_text=data["name"],
                    is_primary=index == 0,
                    sort_order=index,
                )
                for index, image in enumerate(data["images"])
            ],
        )
        db.add(product)
        created += 1

    await db.flush()
    logger.info("Products seeded", created=created)
    return created


async def main():
    configure_logging()
    logger.info("Starting database seeding")
    await init_database()

    try:
        async with get_db() as db:
            category_ids = await seed_categories(db)
            await seed_products(db, category_ids)
        logger.info("Database seeding completed")
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
