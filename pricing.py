"""
Cart and coupon arithmetic shown on the cart and checkout pages.

The backend prices the order; these figures mirror its rules for display.
"""
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional

import config
from schemas import CartItem, CartTotals, Coupon, Product

ATTRIBUTE_KINDS = ("color", "size", "weight")


def compute_discount(subtotal: float, coupon: Coupon) -> float:
    if subtotal <= 0:
        return 0.0
    if coupon.discount_type == "percentage":
        discount = subtotal * coupon.discount_value / 100
        # the cap only applies to percentage coupons
        if coupon.max_discount_amount and discount > coupon.max_discount_amount:
            discount = coupon.max_discount_amount
    else:
        discount = coupon.discount_value
    discount = min(discount, subtotal)
    return round(discount, 2)


def coupon_problem(coupon: Coupon, subtotal: Optional[float] = None, now: Optional[datetime] = None) -> Optional[str]:
    """Return why the backend would refuse ``coupon``, or None if it would accept it."""
    now = now or datetime.now(timezone.utc)
    if not coupon.is_active:
        return "Invalid coupon code"
    if coupon.expires_at:
        expires = coupon.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        if now > expires:
            return "Coupon has expired"
    if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
        return "Coupon usage limit reached"
    if subtotal is not None and coupon.min_order_amount and subtotal < coupon.min_order_amount:
        return f"Minimum order amount of {config.CURRENCY} {coupon.min_order_amount:g} required"
    return None


def subtotal_of(items: Iterable[CartItem]) -> float:
    return sum(i.price_at_time * i.quantity for i in items)


def item_count(items: Iterable[CartItem]) -> int:
    return sum(i.quantity for i in items)


def cart_totals(subtotal: float, discount: float = 0, shipping_fee: float = config.SHIPPING_FEE) -> CartTotals:
    shipping = shipping_fee if subtotal > 0 else 0
    discount = min(max(discount, 0), subtotal)
    return CartTotals(
        subtotal=round(subtotal, 2),
        shipping=shipping,
        discount=round(discount, 2),
        total=round(subtotal - discount + shipping, 2),
    )


def clamp_quantity(quantity: int, stock: int) -> int:
    if stock < 1:
        return 1
    return max(1, min(quantity, stock))


def base_price(product: Product) -> float:
    if product.discount_price is not None and 0 < product.discount_price < product.price:
        return product.discount_price
    return product.price


def final_price(product: Product, selections: Optional[Mapping[str, str]] = None) -> float:
    """Base price plus the modifiers of the selected attribute options.

    ``selections`` maps an attribute kind (color, size, weight) to the chosen
    option value. Unknown kinds and values are ignored.
    """
    price = base_price(product)
    if not selections or not product.attributes:
        return price
    for kind in ATTRIBUTE_KINDS:
        wanted = selections.get(kind)
        if not wanted:
            continue
        for option in getattr(product.attributes, kind):
            if option.value == wanted:
                price += option.price_modifier
                break
    return round(price, 2)
