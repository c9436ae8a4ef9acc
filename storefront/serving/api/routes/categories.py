"""
Category Endpoints
"""

from typing import List, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.connection import get_db_dependency
from storefront.serving.api.schemas import (
    Breadcrumb,
    CategoryDetail,
    CategoryOut,
    Envelope,
    pagination,
    product_summary,
)
from storefront.serving.cache import categories_cache
from storefront.services.catalog import CatalogService, CategoryNode

router = APIRouter()

CategorySort = Literal["newest", "price_asc", "price_desc", "name_asc", "name_desc", "rating_desc"]


def category_out(node: CategoryNode) -> CategoryOut:
    c = node.category
    return CategoryOut(
        id=c.id,
        name=c.name,
        slug=c.slug,
        description=c.description,
        image_url=c.image_url,
        parent_id=c.parent_id,
        sort_order=c.sort_order,
        product_count=node.product_count,
        subcategory_count=node.subcategory_count,
        subcategories=[category_out(sub) for sub in node.subcategories],
    )


@router.get("", response_model=Envelope[List[CategoryOut]])
async def list_categories(
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[List[CategoryOut]]:
    """Category tree: top-level categories with nested subcategories."""

    async def build():
        nodes = await CatalogService(db).list_categories()
        return [category_out(n).model_dump(mode="json") for n in nodes]

    tree = await categories_cache.get_or_set("tree", build)
    return Envelope(data=[CategoryOut.model_validate(c) for c in tree])


@router.get("/{identifier}", response_model=Envelope[CategoryDetail])
async def get_category(
    identifier: str,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    sort: CategorySort = "newest",
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[CategoryDetail]:
    node, products = await CatalogService(db).get_category(identifier, page=page, limit=limit, sort=sort)
    return Envelope(
        data=CategoryDetail(
            category=category_out(node),
            products=[product_summary(p) for p in products.items],
            pagination=pagination(products, total_products=products.total),
        )
    )


@router.get("/{identifier}/breadcrumbs", response_model=Envelope[List[Breadcrumb]])
async def breadcrumbs(
    identifier: str,
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[List[Breadcrumb]]:
    crumbs = await CatalogService(db).breadcrumbs(identifier)
    return Envelope(data=[Breadcrumb(**c) for c in crumbs])
