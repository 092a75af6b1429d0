from bson import ObjectId

import catalog


def _names(resp):
    return sorted(p["name"] for p in resp.json()["products"])


def test_list_hides_inactive_and_reviews(client, make_product):
    make_product(name="فعال", reviews=[{"user_id": "u", "rating": 5}])
    make_product(name="غیرفعال", is_active=False)

    resp = client.get("/products")

    assert resp.status_code == 200
    assert _names(resp) == ["فعال"]
    assert "reviews" not in resp.json()["products"][0]
    assert resp.json()["total"] == 1


def test_list_filters(client, make_product):
    make_product(name="شال ارزان", price=80000, category="شال", tags=["نخی"])
    make_product(name="شال گران", price=900000, category="شال", is_featured=True)
    make_product(name="روسری ابریشم", price=400000, category="روسری", description="ابریشم طبیعی")

    assert _names(client.get("/products", params={"category": "روسری"})) == ["روسری ابریشم"]
    assert _names(client.get("/products", params={"min_price": 100000, "max_price": 500000})) == ["روسری ابریشم"]
    assert _names(client.get("/products", params={"is_featured": "true"})) == ["شال گران"]
    assert _names(client.get("/products", params={"search": "ابریشم"})) == ["روسری ابریشم"]
    assert _names(client.get("/products", params={"search": "نخی"})) == ["شال ارزان"]


def test_list_sorting_and_pagination(client, make_product):
    for price in (300000, 100000, 200000):
        make_product(price=price)

    resp = client.get("/products", params={"sort_by": "price", "sort_order": "asc", "limit": 2, "page": 1})

    body = resp.json()
    assert [p["price"] for p in body["products"]] == [100000, 200000]
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert body["current_page"] == 1


def test_list_rejects_bad_query(client):
    assert client.get("/products", params={"sort_by": "password"}).status_code == 400
    assert client.get("/products", params={"category": "کفش"}).status_code == 400
    assert client.get("/products", params={"limit": 0}).status_code == 400


def test_search_input_is_not_a_regex(client, make_product):
    make_product(name="شال (ویژه)")
    resp = client.get("/products", params={"search": "(ویژه"})
    assert resp.status_code == 200
    assert _names(resp) == ["شال (ویژه)"]


def test_list_counts_views_only_for_signed_in_viewers(client, db, user, make_product, headers_for):
    product = make_product()

    client.get("/products")
    client.get("/products", headers={"Authorization": "Bearer broken"})
    assert db["product"].find_one({"_id": product["_id"]})["view_count"] == 0

    client.get("/products", headers=headers_for(user))
    assert db["product"].find_one({"_id": product["_id"]})["view_count"] == 1


def test_get_product_counts_view(client, db, make_product):
    product = make_product()

    resp = client.get(f"/products/{product['_id']}")

    assert resp.status_code == 200
    assert resp.json()["product"]["id"] == str(product["_id"])
    assert db["product"].find_one({"_id": product["_id"]})["view_count"] == 1


def test_get_product_missing_or_inactive(client, make_product):
    hidden = make_product(is_active=False)
    assert client.get(f"/products/{hidden['_id']}").status_code == 404
    assert client.get(f"/products/{ObjectId()}").status_code == 404
    assert client.get("/products/not-an-id").json()["message"] == "محصول یافت نشد"


def test_featured_list_sorted_by_sales(client, make_product):
    make_product(name="الف", is_featured=True, sold_count=3)
    make_product(name="ب", is_featured=True, sold_count=10)
    make_product(name="ج", is_featured=False, sold_count=50)
    make_product(name="د", is_featured=True, is_active=False)

    resp = client.get("/products/featured/list")

    assert [p["name"] for p in resp.json()["products"]] == ["ب", "الف"]


def test_categories_list(client, make_product):
    make_product(category="شال")
    make_product(category="شال")
    make_product(category="روسری")
    make_product(category="سایر", is_active=False)

    resp = client.get("/products/categories/list")

    assert sorted(resp.json()["categories"]) == ["روسری", "شال"]


def test_search_endpoint(client, make_product):
    make_product(name="شال پشمی")
    make_product(name="روسری نخی")

    body = client.get("/products/search/پشمی").json()

    assert [p["name"] for p in body["products"]] == ["شال پشمی"]
    assert body["query"] == "پشمی"


# Reviews
def test_review_updates_average(client, db, make_user, make_product, headers_for):
    product = make_product()
    first, second = make_user(), make_user()

    r1 = client.post(f"/products/{product['_id']}/reviews", json={"rating": 4, "comment": "خوب"}, headers=headers_for(first))
    r2 = client.post(f"/products/{product['_id']}/reviews", json={"rating": 5}, headers=headers_for(second))

    assert r1.status_code == 201
    assert r1.json()["average_rating"] == 4
    assert r2.json()["average_rating"] == 4.5
    assert r2.json()["total_reviews"] == 2
    stored = db["product"].find_one({"_id": product["_id"]})
    assert stored["average_rating"] == 4.5
    assert len(stored["reviews"]) == 2


def test_second_review_by_same_user_rejected(client, db, user, make_product, headers_for):
    product = make_product()
    url = f"/products/{product['_id']}/reviews"
    client.post(url, json={"rating": 2}, headers=headers_for(user))

    resp = client.post(url, json={"rating": 5}, headers=headers_for(user))

    assert resp.status_code == 409
    stored = db["product"].find_one({"_id": product["_id"]})
    assert stored["average_rating"] == 2
    assert stored["total_reviews"] == 1


def test_review_validation(client, user, make_product, headers_for):
    product = make_product()
    url = f"/products/{product['_id']}/reviews"

    assert client.post(url, json={"rating": 6}, headers=headers_for(user)).status_code == 400
    assert client.post(url, json={"rating": 3}).status_code == 401
    assert client.post(f"/products/{ObjectId()}/reviews", json={"rating": 3}, headers=headers_for(user)).status_code == 404


class _ReviewLandsMidway:
    """Product collection where another shopper's review is saved right after the first read."""

    def __init__(self, collection, competing_review):
        self._collection = collection
        self._competing_review = competing_review

    def find_one(self, *args, **kwargs):
        doc = self._collection.find_one(*args, **kwargs)
        if self._competing_review is not None:
            self._collection.update_one(
                {"_id": doc["_id"]},
                {"$push": {"reviews": self._competing_review}, "$set": {"average_rating": 1, "total_reviews": 1}},
            )
            self._competing_review = None
        return doc

    def __getattr__(self, name):
        return getattr(self._collection, name)


def test_concurrent_reviews_are_both_counted(db, user, make_product):
    product = make_product()
    racing = {"product": _ReviewLandsMidway(db["product"], {"user_id": "someone-else", "rating": 1})}

    result = catalog.add_review(racing, str(product["_id"]), user, 5)

    stored = db["product"].find_one({"_id": product["_id"]})
    assert result == {"average_rating": 3, "total_reviews": 2}
    assert stored["average_rating"] == 3
    assert stored["total_reviews"] == 2
    assert len(stored["reviews"]) == 2
