"""
Serving Module
"""
from .cache import init_redis, close_redis, get_redis, products_cache, categories_cache

__all__ = [
    "init_redis",
    "close_redis",
    "get_redis",
    "products_cache",
    "categories_cache",
]
