"""
FastAPI Application Factory

Creates and configures the storefront API application.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from storefront.config import get_settings
from storefront.serving.api.errors import register_exception_handlers
from storefront.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from storefront.serving.api.routes import (
    auth_router,
    cart_router,
    categories_router,
    health_router,
    orders_router,
    products_router,
    users_router,
    wishlist_router,
)


def create_api_app(lifespan=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Optional lifespan context; tests build the app without one

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Modahaus Storefront API",
        description="Catalog, cart, wishlist and checkout API",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router, prefix="/api", tags=["Health"])
    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(users_router, prefix="/api/users", tags=["Users"])
    app.include_router(products_router, prefix="/api/products", tags=["Products"])
    app.include_router(categories_router, prefix="/api/categories", tags=["Categories"])
    app.include_router(cart_router, prefix="/api/cart", tags=["Cart"])
    app.include_router(wishlist_router, prefix="/api/wishlist", tags=["Wishlist"])
    app.include_router(orders_router, prefix="/api/orders", tags=["Orders"])

    @app.get("/api", tags=["Health"])
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Modahaus Storefront API",
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app
