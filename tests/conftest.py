import json
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

import jwt
import pytest
import requests
from requests.adapters import BaseAdapter

from api_client import ApiClient

BACKEND = "http://backend.test"


class FakeBackend(BaseAdapter):
    """Transport adapter answering canned envelopes keyed by (method, path)."""

    def __init__(self):
        super().__init__()
        self.routes = {}
        self.calls = []

    def add(self, method, path, data=None, status=200, success=True, message=None, raw=None):
        if isinstance(raw, Exception):
            body = raw
        elif raw is not None:
            body = raw
        else:
            body = json.dumps({"success": success, "data": data, "message": message})
        self.routes[(method, path)] = (status, body)

    def calls_to(self, method, path):
        return [r for r in self.calls if r.method == method and urlparse(r.url).path == path]

    def send(self, request, **kwargs):
        self.calls.append(request)
        key = (request.method, urlparse(request.url).path)
        status, body = self.routes.get(key, (404, json.dumps({"success": False, "message": "Route not found"})))
        if isinstance(body, Exception):
            raise body
        resp = requests.Response()
        resp.status_code = status
        resp._content = body.encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
        resp.encoding = "utf-8"
        resp.url = request.url
        resp.request = request
        return resp

    def close(self):
        pass


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_api(backend):
    def factory(token="token-123"):
        session = requests.Session()
        session.mount("http://", backend)
        return ApiClient(token=token, base_url=BACKEND, session=session)

    return factory


def make_token(role="customer", user_id="user-1", expires_in=timedelta(hours=1), secret="backend-secret"):
    payload = {"userId": user_id, "role": role, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, secret, algorithm="HS256")


def product_payload(pid="p1", title="Trail Shoe", price=1500, stock=5, **extra):
    data = {
        "_id": pid,
        "title": title,
        "slug": title.lower().replace(" ", "-"),
        "description": "A product",
        "price": price,
        "images": ["/uploads/shoe.jpg"],
        "stock": stock,
        "ratingAvg": 4.5,
        "ratingCount": 2,
    }
    data.update(extra)
    return data


def cart_payload(*items):
    return {
        "_id": "cart-1",
        "userId": "user-1",
        "items": [
            {"productId": product, "quantity": quantity, "priceAtTime": product["price"] if isinstance(product, dict) else 0}
            for product, quantity in items
        ],
    }


def order_payload(oid="o1", status="placed", **extra):
    data = {
        "_id": oid,
        "userId": {"_id": "user-1", "name": "Sita"},
        "orderItems": [{"productId": "p1", "title": "Trail Shoe", "quantity": 2, "price": 1500}],
        "totalAmount": 3100,
        "paymentMethod": "cash_on_delivery",
        "paymentStatus": "pending",
        "orderStatus": status,
        "shippingAddress": {"fullName": "Sita", "phone": "9812345678", "city": "Kathmandu"},
        "createdAt": "2024-05-01T10:00:00Z",
        "updatedAt": "2024-05-01T10:00:00Z",
    }
    data.update(extra)
    return data
