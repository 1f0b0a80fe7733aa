import json
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from api_client import ApiError


def test_sends_bearer_token_and_returns_data(backend, make_api):
    backend.add("GET", "/api/auth/me", {"_id": "user-1", "name": "Sita"})
    assert make_api().auth.me() == {"_id": "user-1", "name": "Sita"}
    assert backend.calls[0].headers["Authorization"] == "Bearer token-123"


def test_guest_requests_carry_no_authorization(backend, make_api):
    backend.add("GET", "/api/categories", [])
    api = make_api(token=None)
    api.categories.list()
    assert not api.is_authenticated
    assert "Authorization" not in backend.calls[0].headers


def test_error_status_and_message_are_kept(backend, make_api):
    backend.add("GET", "/api/orders/o1", status=403, success=False, message="Not authorized to view this order")
    with pytest.raises(ApiError) as e:
        make_api().orders.get("o1")
    assert e.value.status_code == 403
    assert e.value.message == "Not authorized to view this order"


def test_unsuccessful_envelope_on_200_is_an_error(backend, make_api):
    backend.add("GET", "/api/cart", success=False)
    with pytest.raises(ApiError) as e:
        make_api().cart.get()
    assert e.value.status_code == 400
    assert e.value.message == "Request failed"


def test_non_json_body_is_bad_gateway(backend, make_api):
    backend.add("GET", "/api/products", raw="<html>oops</html>")
    with pytest.raises(ApiError) as e:
        make_api().products.list()
    assert e.value.status_code == 502


def test_unreachable_backend_is_unavailable(backend, make_api):
    backend.add("GET", "/api/products", raw=requests.ConnectionError("refused"))
    with pytest.raises(ApiError) as e:
        make_api().products.list()
    assert e.value.status_code == 503
    assert e.value.message == "Backend unavailable"


def test_empty_filters_are_not_sent(backend, make_api):
    backend.add("GET", "/api/products", {"products": []})
    make_api().products.list(page=2, category="", search=None, min_price=100, seller_id="s1")
    query = parse_qs(urlparse(backend.calls[0].url).query)
    assert query == {"page": ["2"], "minPrice": ["100"], "sellerId": ["s1"]}


def test_coupon_code_is_uppercased(backend, make_api):
    backend.add("POST", "/api/coupons/apply", {"code": "SAVE20"})
    make_api().coupons.apply(" save20 ", 3000)
    assert json.loads(backend.calls[0].body) == {"code": "SAVE20", "orderAmount": 3000}


def test_status_update_sends_only_given_fields(backend, make_api):
    backend.add("PUT", "/api/orders/o1/status", {"_id": "o1"})
    make_api().orders.update_status("o1", order_status="shipped")
    assert json.loads(backend.calls[0].body) == {"orderStatus": "shipped"}


def test_upload_sends_multipart_images(backend, make_api):
    backend.add("POST", "/api/upload/multiple", {"urls": ["/uploads/a.jpg"]})
    make_api().upload.multiple([("a.jpg", b"\xff\xd8", "image/jpeg")])
    request = backend.calls[0]
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'name="images"; filename="a.jpg"' in request.body


def test_notification_list_keeps_envelope_extras(backend, make_api):
    backend.add("GET", "/api/notifications", raw=json.dumps({
        "success": True, "data": [{"_id": "n1"}], "unreadCount": 3, "total": 1, "page": 1, "pages": 1,
    }))
    envelope = make_api().notifications.list(unread_only=True, limit=5)
    assert envelope.data == [{"_id": "n1"}]
    assert envelope.model_extra["unreadCount"] == 3
    query = parse_qs(urlparse(backend.calls[0].url).query)
    assert query == {"unreadOnly": ["true"], "limit": ["5"]}


def test_failed_notification_list_raises(backend, make_api):
    backend.add("GET", "/api/notifications", status=401, success=False, message="Not authorized")
    with pytest.raises(ApiError) as e:
        make_api().notifications.list()
    assert e.value.status_code == 401


def test_admin_user_creation_uses_admin_route(backend, make_api):
    backend.add("POST", "/api/admin/users", {"_id": "u9"})
    make_api().users.create({"name": "Hari"})
    backend.add("PATCH", "/api/users/u9/toggle-seller", {"_id": "u9", "isSellerActive": False})
    assert make_api().users.toggle_seller("u9")["isSellerActive"] is False
    assert [urlparse(r.url).path for r in backend.calls] == ["/api/admin/users", "/api/users/u9/toggle-seller"]
