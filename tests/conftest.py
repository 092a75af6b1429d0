import itertools
from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from main import app
from security import create_access_token, get_password_hash

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture
def db():
    database.close()
    handle = database.connect(client=mongomock.MongoClient(), name="shop_test")
    database.ensure_indexes(handle)
    yield handle
    database.close()


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(**fields):
        n = next(counter)
        now = datetime.now(timezone.utc)
        doc = {
            "first_name": "مریم",
            "last_name": f"کاربر{n}",
            "email": f"user{n}@example.com",
            "phone": f"0912{n:07d}",
            "password_hash": PASSWORD_HASH,
            "address": {"city": "تهران", "country": "ایران"},
            "is_admin": False,
            "is_active": True,
            "order_history": [],
            "favorites": [],
            "created_at": now,
            "updated_at": now,
        }
        doc.update(fields)
        doc["_id"] = db["user"].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(first_name="مدیر", is_admin=True)


@pytest.fixture
def headers_for():
    def _headers(user):
        token = create_access_token({"sub": str(user["_id"])})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_product(db):
    counter = itertools.count(1)

    def _make(**fields):
        n = next(counter)
        now = datetime.now(timezone.utc)
        doc = {
            "name": f"شال شماره {n}",
            "description": "توضیحات محصول",
            "price": 100000,
            "discount_price": None,
            "category": "شال",
            "images": [{"url": f"/uploads/shawl-{n}.jpg", "alt": "شال", "is_primary": True}],
            "colors": [],
            "sizes": [],
            "tags": [],
            "stock": 10,
            "is_active": True,
            "is_featured": False,
            "reviews": [],
            "average_rating": 0,
            "total_reviews": 0,
            "sold_count": 0,
            "view_count": 0,
            "created_at": now,
            "updated_at": now,
        }
        doc.update(fields)
        doc["_id"] = db["product"].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def shipping_address():
    return {
        "first_name": "مریم",
        "last_name": "احمدی",
        "phone": "09121234567",
        "street": "خیابان ولیعصر",
        "city": "تهران",
        "state": "تهران",
        "postal_code": "1234567890",
    }


@pytest.fixture
def place_order(client, headers_for, shipping_address):
    def _place(user, *lines):
        items = [{"product_id": str(product["_id"]), "quantity": qty} for product, qty in lines]
        resp = client.post(
            "/orders",
            json={"items": items, "shipping_address": shipping_address},
            headers=headers_for(user),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["order"]

    return _place
