from datetime import datetime, timedelta, timezone

import pytest

import pricing
from schemas import Coupon, Product
from conftest import product_payload


def coupon(**kw):
    data = {"code": "save20", "discountType": "percentage", "discountValue": 20}
    data.update(kw)
    return Coupon.model_validate(data)


def test_save20_is_capped_at_max_discount():
    c = coupon(maxDiscountAmount=500)
    discount = pricing.compute_discount(3000, c)
    assert discount == 500
    totals = pricing.cart_totals(3000, discount)
    assert totals.total == 3000 - 500 + 100
    assert totals.shipping == 100


def test_percentage_below_cap_uses_percentage():
    assert pricing.compute_discount(1000, coupon(maxDiscountAmount=500)) == 200


def test_percentage_without_cap():
    assert pricing.compute_discount(10000, coupon()) == 2000


def test_fixed_coupon_ignores_cap_but_never_exceeds_subtotal():
    c = coupon(discountType="fixed", discountValue=700, maxDiscountAmount=100)
    assert pricing.compute_discount(3000, c) == 700
    assert pricing.compute_discount(400, c) == 400


def test_discount_on_empty_cart_is_zero():
    assert pricing.compute_discount(0, coupon()) == 0


def test_coupon_code_is_uppercased():
    assert coupon().code == "SAVE20"


def test_coupon_problems():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert pricing.coupon_problem(coupon(), 1000, now) is None
    assert pricing.coupon_problem(coupon(isActive=False), 1000, now) == "Invalid coupon code"
    expired = coupon(expiresAt=(now - timedelta(days=1)).isoformat())
    assert pricing.coupon_problem(expired, 1000, now) == "Coupon has expired"
    used_up = coupon(usageLimit=5, usageCount=5)
    assert pricing.coupon_problem(used_up, 1000, now) == "Coupon usage limit reached"
    minimum = coupon(minOrderAmount=2000)
    assert pricing.coupon_problem(minimum, 1000, now) == "Minimum order amount of NPR 2000 required"
    assert pricing.coupon_problem(minimum, None, now) is None


def test_empty_cart_has_no_shipping():
    totals = pricing.cart_totals(0)
    assert totals.shipping == 0
    assert totals.total == 0


@pytest.mark.parametrize(
    "quantity, stock, expected",
    [(0, 5, 1), (-3, 5, 1), (3, 5, 3), (9, 5, 5), (2, 0, 1)],
)
def test_clamp_quantity(quantity, stock, expected):
    assert pricing.clamp_quantity(quantity, stock) == expected


def test_final_price_adds_selected_modifiers():
    product = Product.model_validate(product_payload(
        price=1000,
        attributes={
            "color": [{"value": "Red", "priceModifier": 50}, {"value": "Blue", "priceModifier": 0}],
            "size": [{"value": "XL", "priceModifier": 120}],
        },
    ))
    assert pricing.final_price(product) == 1000
    assert pricing.final_price(product, {"color": "Red", "size": "XL"}) == 1170
    assert pricing.final_price(product, {"color": "Green"}) == 1000


def test_final_price_starts_from_discount_price():
    product = Product.model_validate(product_payload(price=1000, discountPrice=800))
    assert pricing.final_price(product) == 800
