"""
Product catalog: storefront listing, search, reviews and admin management.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from database import paginate, serialize_doc, to_object_id
from errors import ConflictError, NotFoundError
from schemas import AdminProductQuery, Pagination, ProductIn, ProductQuery, ProductUpdate

logger = logging.getLogger(__name__)

PRODUCT_NOT_FOUND = "محصول یافت نشد"
NO_REVIEWS = {"reviews": 0}
FEATURED_LIMIT = 8
REVIEW_WRITE_ATTEMPTS = 5
DUPLICATE_REVIEW = "شما قبلاً این محصول را نظر داده‌اید"


def _text_match(text: str, fields):
    pattern = {"$regex": re.escape(text), "$options": "i"}
    return [{field: pattern} for field in fields]


def build_product_filter(query: ProductQuery) -> dict:
    filter_q = {"is_active": True}
    if query.category:
        filter_q["category"] = query.category
    if query.min_price is not None or query.max_price is not None:
        price_filter = {}
        if query.min_price is not None:
            price_filter["$gte"] = query.min_price
        if query.max_price is not None:
            price_filter["$lte"] = query.max_price
        filter_q["price"] = price_filter
    if query.is_featured is not None:
        filter_q["is_featured"] = query.is_featured
    if query.search:
        filter_q["$or"] = _text_match(query.search, ("name", "description", "tags"))
    return filter_q


def list_products(db, query: ProductQuery, viewer: Optional[dict] = None) -> dict:
    direction = DESCENDING if query.sort_order == "desc" else ASCENDING
    products, meta = paginate(
        db["product"],
        build_product_filter(query),
        query.page,
        query.limit,
        sort=[(query.sort_by, direction)],
        projection=NO_REVIEWS,
    )
    if viewer and products:
        ids = [to_object_id(p["id"]) for p in products]
        db["product"].update_many({"_id": {"$in": ids}}, {"$inc": {"view_count": 1}})
    return {"products": products, **meta}


def get_product(db, product_id: str) -> dict:
    oid = to_object_id(product_id, PRODUCT_NOT_FOUND)
    product = db["product"].find_one_and_update(
        {"_id": oid, "is_active": True},
        {"$inc": {"view_count": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFoundError(PRODUCT_NOT_FOUND)
    return serialize_doc(product)


def featured_products(db):
    cursor = (
        db["product"]
        .find({"is_featured": True, "is_active": True}, NO_REVIEWS)
        .sort([("sold_count", DESCENDING)])
        .limit(FEATURED_LIMIT)
    )
    return [serialize_doc(p) for p in cursor]


def categories(db):
    return sorted(db["product"].distinct("category", {"is_active": True}))


def search_products(db, text: str, pagination: Pagination) -> dict:
    filter_q = {"is_active": True, "$or": _text_match(text, ("name", "description", "tags"))}
    products, meta = paginate(
        db["product"],
        filter_q,
        pagination.page,
        pagination.limit,
        sort=[("sold_count", DESCENDING)],
        projection=NO_REVIEWS,
    )
    return {"products": products, **meta, "query": text}


def add_review(db, product_id: str, user: dict, rating: int, comment: Optional[str] = None) -> dict:
    """Add the user's single review and recompute the rating over all reviews.

    The write only lands if the review array still has the length that was
    read, so a concurrent review forces a re-read instead of being averaged out.
    """
    oid = to_object_id(product_id, PRODUCT_NOT_FOUND)
    user_id = str(user["_id"])
    review = {
        "user_id": user_id,
        "user_name": f"{user.get('first_name', '')} {user.get('last_name', '')}".strip(),
        "rating": rating,
        "comment": comment,
        "created_at": datetime.now(timezone.utc),
    }

    for _ in range(REVIEW_WRITE_ATTEMPTS):
        product = db["product"].find_one({"_id": oid}, {"reviews": 1})
        if not product:
            raise NotFoundError(PRODUCT_NOT_FOUND)
        reviews = product.get("reviews", [])
        if any(r.get("user_id") == user_id for r in reviews):
            raise ConflictError(DUPLICATE_REVIEW)

        total_reviews = len(reviews) + 1
        average_rating = (sum(r["rating"] for r in reviews) + rating) / total_reviews
        result = db["product"].update_one(
            {"_id": oid, "reviews": {"$size": len(reviews)}, "reviews.user_id": {"$ne": user_id}},
            {
                "$push": {"reviews": review},
                "$set": {"average_rating": average_rating, "total_reviews": total_reviews},
            },
        )
        if result.matched_count == 1:
            return {"average_rating": average_rating, "total_reviews": total_reviews}

    logger.warning("Review on product %s not saved after %d attempts", product_id, REVIEW_WRITE_ATTEMPTS)
    raise ConflictError("ثبت نظر انجام نشد، دوباره تلاش کنید")


# Admin management
def admin_list_products(db, query: AdminProductQuery) -> dict:
    filter_q = {}
    if query.category:
        filter_q["category"] = query.category
    if query.status:
        filter_q["is_active"] = query.status == "active"
    if query.search:
        filter_q["$or"] = _text_match(query.search, ("name", "description"))
    products, meta = paginate(
        db["product"], filter_q, query.page, query.limit, sort=[("created_at", DESCENDING)]
    )
    return {"products": products, **meta}


def create_product(db, payload: ProductIn) -> dict:
    now = datetime.now(timezone.utc)
    doc = {
        **payload.model_dump(),
        "reviews": [],
        "average_rating": 0,
        "total_reviews": 0,
        "sold_count": 0,
        "view_count": 0,
        "created_at": now,
        "updated_at": now,
    }
    doc["_id"] = db["product"].insert_one(doc).inserted_id
    logger.info("Product %s created", doc["_id"])
    return serialize_doc(doc)


def update_product(db, product_id: str, payload: ProductUpdate) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    changes["updated_at"] = datetime.now(timezone.utc)
    product = db["product"].find_one_and_update(
        {"_id": to_object_id(product_id, PRODUCT_NOT_FOUND)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFoundError(PRODUCT_NOT_FOUND)
    return serialize_doc(product)


def deactivate_product(db, product_id: str):
    result = db["product"].update_one(
        {"_id": to_object_id(product_id, PRODUCT_NOT_FOUND)},
        {"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc)}},
    )
    if result.matched_count == 0:
        raise NotFoundError(PRODUCT_NOT_FOUND)
    logger.info("Product %s deactivated", product_id)


SAMPLE_PRODUCTS = [
    {
        "name": "شال نخی طرح‌دار",
        "description": "شال نخی سبک با طرح سنتی، مناسب فصل بهار و تابستان",
        "price": 250000,
        "category": "شال",
        "material": "نخ",
        "tags": ["نخی", "تابستانی"],
        "colors": [{"name": "کرم", "hex": "#f5f0e1", "stock": 10}, {"name": "آبی", "hex": "#3a6ea5", "stock": 8}],
        "stock": 18,
        "is_featured": True,
    },
    {
        "name": "روسری ابریشم مجلسی",
        "description": "روسری ابریشم با لبه دست‌دوز",
        "price": 680000,
        "category": "روسری",
        "material": "ابریشم",
        "tags": ["ابریشم", "مجلسی"],
        "sizes": [{"name": "بزرگ", "dimensions": "140x140", "stock": 6}],
        "stock": 6,
        "is_featured": True,
    },
    {
        "name": "شال پشمی زمستانی",
        "description": "شال پشمی گرم و ضخیم",
        "price": 420000,
        "category": "شال",
        "material": "پشم",
        "tags": ["پشمی", "زمستانی"],
        "stock": 12,
    },
    {
        "name": "گیره روسری",
        "description": "گیره فلزی تزئینی",
        "price": 45000,
        "category": "سایر",
        "stock": 40,
    },
]


def seed_products(db) -> int:
    """Insert the sample products that are not in the catalog yet."""
    inserted = 0
    for sample in SAMPLE_PRODUCTS:
        if db["product"].find_one({"name": sample["name"]}):
            continue
        create_product(db, ProductIn(**sample))
        inserted += 1
    return inserted
