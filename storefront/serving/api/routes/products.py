"""
Products API Endpoints

Catalog listing and detail; product detail is served from the cache when
available.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.connection import get_db_dependency
from storefront.serving.api.dependencies import require_admin
from storefront.serving.api.schemas import (
    Envelope,
    ProductCreate,
    ProductDetailOut,
    ProductList,
    pagination,
    product_detail,
    product_summary,
)
from storefront.serving.cache import products_cache
from storefront.services.catalog import CatalogService

router = APIRouter()


@router.get("", response_model=Envelope[ProductList])
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    featured: bool = False,
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[ProductList]:
    """List active products, newest first."""
    result = await CatalogService(db).list_products(
        page=page,
        limit=limit,
        category=category,
        search=search,
        featured=featured,
    )
    return Envelope(
        data=ProductList(
            products=[product_summary(p) for p in result.items],
            pagination=pagination(result, total_products=result.total),
        )
    )


@router.get("/{slug}", response_model=Envelope[ProductDetailOut])
async def get_product(
    slug: str,
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[ProductDetailOut]:
    cached = await products_cache.get(slug)
    if cached:
        return Envelope(data=ProductDetailOut.model_validate(cached))

    detail = product_detail(await CatalogService(db).get_product(slug))
    await products_cache.set(slug, detail.model_dump(mode="json"))
    return Envelope(data=detail)


@router.post(
    "",
    response_model=Envelope[ProductDetailOut],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[ProductDetailOut]:
    catalog = CatalogService(db)
    product = await catalog.create_product(**body.model_dump())
    await db.commit()
    await products_cache.invalidate_all()
    return Envelope(
        message="Product created successfully",
        data=product_detail(await catalog.get_product(product.slug)),
    )
