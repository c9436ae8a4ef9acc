"""
API Schemas

Request and response models. Field names are snake_case in Python and
camelCase on the wire; requests accept either form.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.database.models import CartItem, OrderStatus, PaymentMethod, Product, WishlistItem
from storefront.services.cart import MAX_QUANTITY, MIN_QUANTITY
from storefront.services.pricing import PriceSummary, line_total

T = TypeVar("T")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(APIModel, Generic[T]):
    """Standard success body"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class MessageResponse(APIModel):
    success: bool = True
    message: str


# =============================================================================
# ACCOUNTS
# =============================================================================

class RegisterRequest(APIModel):
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)


class LoginRequest(APIModel):
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)


class ProfileUpdate(APIModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)


class UserOut(APIModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[datetime] = None


class AuthData(APIModel):
    user: UserOut
    token: str


class TokenData(APIModel):
    token: str


class AddressCreate(APIModel):
    type: Literal["billing", "shipping"]
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    company: Optional[str] = Field(default=None, max_length=100)
    address_line_1: str = Field(min_length=1, max_length=255)
    address_line_2: Optional[str] = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    is_default: bool = False


class AddressUpdate(APIModel):
    type: Optional[Literal["billing", "shipping"]] = None
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    company: Optional[str] = Field(default=None, max_length=100)
    address_line_1: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address_line_2: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, min_length=1, max_length=20)
    country: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    is_default: Optional[bool] = None


class AddressOut(APIModel):
    id: int
    type: str
    first_name: str
    last_name: str
    company: Optional[str] = None
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: str
    country: str
    phone: Optional[str] = None
    is_default: bool = False


# =============================================================================
# CATALOG
# =============================================================================

class ImageOut(APIModel):
    id: int
    image_url: str
    alt_text: Optional[str] = None
    is_primary: bool = False
    sort_order: int = 0


class CategoryRef(APIModel):
    id: int
    name: str
    slug: str


class ProductSummaryOut(APIModel):
    id: int
    name: str
    slug: str
    sku: str
    short_description: Optional[str] = None
    price: float
    compare_at_price: Optional[float] = None
    stock_quantity: int
    rating: float = 0
    review_count: int = 0
    is_featured: bool = False
    primary_image: Optional[str] = None
    category: Optional[CategoryRef] = None


class ProductDetailOut(ProductSummaryOut):
    description: Optional[str] = None
    brand: Optional[str] = None
    low_stock_threshold: int = 10
    is_in_stock: bool = True
    images: List[ImageOut] = []


class ProductCreate(APIModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    sku: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    short_description: Optional[str] = Field(default=None, max_length=500)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    compare_at_price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    cost_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    stock_quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    category_id: int
    brand: Optional[str] = Field(default=None, max_length=100)
    is_featured: bool = False


class ProductPagination(APIModel):
    current_page: int
    total_pages: int
    total_products: int
    has_next_page: bool
    has_prev_page: bool


class ProductList(APIModel):
    products: List[ProductSummaryOut]
    pagination: ProductPagination


class CategoryOut(APIModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int = 0
    product_count: int = 0
    subcategory_count: int = 0
    subcategories: List["CategoryOut"] = []


class CategoryDetail(APIModel):
    category: CategoryOut
    products: List[ProductSummaryOut]
    pagination: ProductPagination


class Breadcrumb(APIModel):
    name: str
    slug: str


# =============================================================================
# CART / WISHLIST
# =============================================================================

class CartAddRequest(APIModel):
    product_id: int
    quantity: int = Field(default=1, ge=MIN_QUANTITY, le=MAX_QUANTITY)


class CartUpdateRequest(APIModel):
    quantity: int = Field(ge=MIN_QUANTITY, le=MAX_QUANTITY)


class CartLineOut(APIModel):
    id: int
    product_id: int
    quantity: int
    name: str
    slug: str
    price: float
    stock_quantity: int
    image_url: Optional[str] = None
    line_total: float


class CartSummaryOut(APIModel):
    subtotal: float
    shipping_amount: float
    tax_amount: float
    total_amount: float
    item_count: int
    free_shipping_threshold: float
    eligible_for_free_shipping: bool


class CartOut(APIModel):
    items: List[CartLineOut]
    summary: CartSummaryOut


class CartLineCheck(APIModel):
    id: int
    product_id: int
    name: str
    quantity: int
    available: int
    status: Literal["valid", "out_of_stock", "removed"]


class CartValidation(APIModel):
    items: List[CartLineCheck]
    is_valid: bool


class WishlistAddRequest(APIModel):
    product_id: int


class MoveToCartRequest(APIModel):
    quantity: int = Field(default=1, ge=MIN_QUANTITY, le=MAX_QUANTITY)


class WishlistEntryOut(APIModel):
    id: int
    product_id: int
    name: str
    slug: str
    price: float
    compare_at_price: Optional[float] = None
    stock_quantity: int
    rating: float = 0
    image_url: Optional[str] = None
    category_name: Optional[str] = None
    created_at: Optional[datetime] = None


class WishlistCheck(APIModel):
    in_wishlist: bool
    wishlist_item_id: Optional[int] = None


class WishlistAdded(APIModel):
    id: int
    product_id: int


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemIn(APIModel):
    product_id: int
    quantity: int = Field(ge=1)


class OrderCreate(APIModel):
    items: List[OrderItemIn] = Field(min_length=1)
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    payment_method: PaymentMethod = PaymentMethod.CARD
    shipping_method: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class OrderStatusUpdate(APIModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(default=None, max_length=255)


class OrderItemOut(APIModel):
    id: int
    product_id: int
    product_name: str
    product_sku: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float


class OrderOut(APIModel):
    id: int
    order_number: str
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    subtotal: float
    tax_amount: float
    shipping_amount: float
    discount_amount: float = 0
    total_amount: float
    currency: str = "USD"
    created_at: Optional[datetime] = None
    items: List[OrderItemOut] = []


class OrderDetailOut(OrderOut):
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


class OrderListItem(OrderOut):
    item_count: int


class OrderPagination(APIModel):
    current_page: int
    total_pages: int
    total_orders: int
    has_next_page: bool
    has_prev_page: bool


class OrderList(APIModel):
    orders: List[OrderListItem]
    pagination: OrderPagination


class OrderData(APIModel):
    order: OrderDetailOut


class OrderTrackOut(APIModel):
    order_number: str
    status: str
    payment_status: str
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    created_at: Optional[datetime] = None


class CheckoutResponse(APIModel):
    """Order created; ``redirect_url`` is set when payment continues off-site"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[OrderData] = None
    redirect_url: Optional[str] = None
    order_number: Optional[str] = None


# =============================================================================
# BUILDERS
# =============================================================================

def primary_image(product: Product) -> Optional[str]:
    if not product.images:
        return None
    for image in product.images:
        if image.is_primary:
            return image.image_url
    return product.images[0].image_url


def product_summary(product: Product) -> ProductSummaryOut:
    return ProductSummaryOut(
        id=product.id,
        name=product.name,
        slug=product.slug,
        sku=product.sku,
        short_description=product.short_description,
        price=float(product.price),
        compare_at_price=float(product.compare_at_price) if product.compare_at_price is not None else None,
        stock_quantity=product.stock_quantity,
        rating=float(product.rating or 0),
        review_count=product.review_count or 0,
        is_featured=bool(product.is_featured),
        primary_image=primary_image(product),
        category=CategoryRef.model_validate(product.category) if product.category else None,
    )


def product_detail(product: Product) -> ProductDetailOut:
    summary = product_summary(product)
    return ProductDetailOut(
        **summary.model_dump(),
        description=product.description,
        brand=product.brand,
        low_stock_threshold=product.low_stock_threshold,
        is_in_stock=product.stock_quantity > 0,
        images=[ImageOut.model_validate(image) for image in product.images],
    )


def cart_line(item: CartItem) -> CartLineOut:
    product = item.product
    return CartLineOut(
        id=item.id,
        product_id=item.product_id,
        quantity=item.quantity,
        name=product.name,
        slug=product.slug,
        price=float(product.price),
        stock_quantity=product.stock_quantity,
        image_url=primary_image(product),
        line_total=float(line_total(product.price, item.quantity)),
    )


def cart_summary(summary: PriceSummary) -> CartSummaryOut:
    return CartSummaryOut(**summary.to_dict())


def wishlist_entry(entry: WishlistItem) -> WishlistEntryOut:
    product = entry.product
    return WishlistEntryOut(
        id=entry.id,
        product_id=entry.product_id,
        name=product.name,
        slug=product.slug,
        price=float(product.price),
        compare_at_price=float(product.compare_at_price) if product.compare_at_price is not None else None,
        stock_quantity=product.stock_quantity,
        rating=float(product.rating or 0),
        image_url=primary_image(product),
        category_name=product.category.name if product.category else None,
        created_at=entry.created_at,
    )


def pagination(page, **extra) -> dict:
    return {
        "current_page": page.page,
        "total_pages": page.total_pages,
        "has_next_page": page.page < page.total_pages,
        "has_prev_page": page.page > 1,
        **extra,
    }
