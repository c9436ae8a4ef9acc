"""
Catalog reads and admin product creation.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.database.models import Category, Product
from storefront.services.exceptions import Conflict, NotFound, ValidationFailed

logger = structlog.get_logger(__name__)

CATEGORY_SORTS = {
    "newest": (Product.created_at.desc(), Product.id.desc()),
    "price_asc": (Product.price.asc(), Product.id.asc()),
    "price_desc": (Product.price.desc(), Product.id.desc()),
    "name_asc": (Product.name.asc(),),
    "name_desc": (Product.name.desc(),),
    "rating_desc": (Product.rating.desc(), Product.id.desc()),
}


async def get_active_product(db: AsyncSession, product_id: int) -> Product:
    """Load an active product or raise NotFound."""
    product = await db.scalar(
        select(Product).where(Product.id == product_id, Product.is_active.is_(True))
    )
    if product is None:
        raise NotFound(f"Product with ID {product_id} not found")
    return product


@dataclass
class Page:
    """One page of results plus the total row count"""
    items: List
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass
class CategoryNode:
    category: Category
    product_count: int
    subcategory_count: int = 0
    subcategories: List["CategoryNode"] = field(default_factory=list)


class CatalogService:
    """Product and category queries over one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_products(
        self,
        page: int = 1,
        limit: int = 12,
        category: Optional[str] = None,
        search: Optional[str] = None,
        featured: bool = False,
    ) -> Page:
        conditions = [Product.is_active.is_(True)]
        if category:
            conditions.append(Product.category.has(Category.slug == category))
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        if featured:
            conditions.append(Product.is_featured.is_(True))

        total = await self.db.scalar(
            select(func.count(Product.id)).where(and_(*conditions))
        ) or 0

        result = await self.db.execute(
            select(Product)
            .where(and_(*conditions))
            .options(selectinload(Product.category), selectinload(Product.images))
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    async def get_product(self, slug: str) -> Product:
        product = await self.db.scalar(
            select(Product)
            .where(Product.slug == slug, Product.is_active.is_(True))
            .options(selectinload(Product.category), selectinload(Product.images))
            .execution_options(populate_existing=True)
        )
        if product is None:
            raise NotFound("Product not found")
        return product

    async def create_product(self, **fields) -> Product:
        """Create a product; slug and sku must be unused."""
        if await self.db.scalar(select(Product.id).where(Product.slug == fields["slug"])):
            raise Conflict("Product slug already exists")
        if await self.db.scalar(select(Product.id).where(Product.sku == fields["sku"])):
            raise Conflict("Product SKU already exists")
        if await self.db.get(Category, fields["category_id"]) is None:
            raise ValidationFailed(f"Category {fields['category_id']} does not exist")

        product = Product(**fields)
        self.db.add(product)
        await self.db.flush()
        logger.info("Product created", product_id=product.id, sku=product.sku)
        return product

    async def _product_counts(self, category_ids: List[int]) -> Dict[int, int]:
        if not category_ids:
            return {}
        rows = await self.db.execute(
            select(Product.category_id, func.count(Product.id))
            .where(Product.category_id.in_(category_ids), Product.is_active.is_(True))
            .group_by(Product.category_id)
        )
        return {category_id: count for category_id, count in rows.all()}

    async def _subcategories(self, parent_ids: List[int]) -> Dict[int, List[Category]]:
        children: Dict[int, List[Category]] = {pid: [] for pid in parent_ids}
        if not parent_ids:
            return children
        result = await self.db.execute(
            select(Category)
            .where(Category.parent_id.in_(parent_ids), Category.is_active.is_(True))
            .order_by(Category.sort_order.asc(), Category.name.asc())
        )
        for sub in result.scalars().all():
            children[sub.parent_id].append(sub)
        return children

    async def _nodes(self, categories: List[Category]) -> List[CategoryNode]:
        children = await self._subcategories([c.id for c in categories])
        all_ids = [c.id for c in categories] + [s.id for subs in children.values() for s in subs]
        counts = await self._product_counts(all_ids)

        return [
            CategoryNode(
                category=c,
                product_count=counts.get(c.id, 0),
                subcategory_count=len(children[c.id]),
                subcategories=[
                    CategoryNode(category=s, product_count=counts.get(s.id, 0))
                    for s in children[c.id]
                ],
            )
            for c in categories
        ]

    async def list_categories(self) -> List[CategoryNode]:
        """Active top-level categories with their active subcategories."""
        result = await self.db.execute(
            select(Category)
            .where(Category.parent_id.is_(None), Category.is_active.is_(True))
            .order_by(Category.sort_order.asc(), Category.name.asc())
        )
        return await self._nodes(list(result.scalars().all()))

    async def find_category(self, identifier: str) -> Category:
        """Look a category up by numeric id or by slug."""
        if identifier.isdigit():
            condition = Category.id == int(identifier)
        else:
            condition = Category.slug == identifier

        category = await self.db.scalar(
            select(Category)
            .where(condition, Category.is_active.is_(True))
            .options(selectinload(Category.parent))
        )
        if category is None:
            raise NotFound("Category not found")
        return category

    async def get_category(
        self,
        identifier: str,
        page: int = 1,
        limit: int = 12,
        sort: str = "newest",
    ) -> tuple[CategoryNode, Page]:
        """Category with subcategories and one page of its products."""
        category = await self.find_category(identifier)
        node = (await self._nodes([category]))[0]

        conditions = [Product.category_id == category.id, Product.is_active.is_(True)]
        total = await self.db.scalar(select(func.count(Product.id)).where(*conditions)) or 0
        result = await self.db.execute(
            select(Product)
            .where(*conditions)
            .options(selectinload(Product.category), selectinload(Product.images))
            .order_by(*CATEGORY_SORTS.get(sort, CATEGORY_SORTS["newest"]))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return node, Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    async def breadcrumbs(self, identifier: str) -> List[Dict[str, str]]:
        category = await self.find_category(identifier)

        crumbs = [{"name": "Home", "slug": "/"}]
        if category.parent is not None:
            crumbs.append({"name": category.parent.name, "slug": f"/categories/{category.parent.slug}"})
        crumbs.append({"name": category.name, "slug": f"/categories/{category.slug}"})
        return crumbs
