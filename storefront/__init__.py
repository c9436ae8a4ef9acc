"""
Modahaus Storefront

Catalog, cart, wishlist, accounts and checkout behind a FastAPI REST API.
"""

__version__ = "1.0.0"
