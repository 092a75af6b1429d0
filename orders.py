"""
Order lifecycle and inventory bookkeeping.

Placing an order reserves stock on every product in the cart; cancelling it
hands the stock back. These writes span several documents and run without a
database transaction, so each step records what it already applied and
undoes it when a later step fails.
"""
import logging
import time
from datetime import datetime, timezone

from pymongo import DESCENDING, ReturnDocument

import config
from accounts import users_by_id
from database import paginate, serialize_doc, to_object_id
from errors import (
    ForbiddenError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from schemas import AdminOrderQuery, CANCELLABLE_STATUSES, OrderCreate, OrderStatusUpdate, Pagination

logger = logging.getLogger(__name__)

ORDER_NUMBER_COUNTER = "order_number"
ORDER_NOT_FOUND = "سفارش یافت نشد"


def next_order_number(db) -> str:
    counter = db["counter"].find_one_and_update(
        {"_id": ORDER_NUMBER_COUNTER},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return f"ORD-{int(time.time() * 1000)}-{counter['seq']:04d}"


def shipping_cost_for(total_amount: float) -> float:
    if total_amount >= config.FREE_SHIPPING_THRESHOLD:
        return 0
    return config.SHIPPING_FLAT_FEE


def _primary_image(product: dict):
    images = product.get("images") or []
    for image in images:
        if image.get("is_primary"):
            return image.get("url")
    return images[0].get("url") if images else None


def _load_cart_product(db, item) -> dict:
    missing = ValidationError(f"محصول {item.name or item.product_id} یافت نشد یا غیرفعال است")
    try:
        product_id = to_object_id(item.product_id)
    except NotFoundError:
        raise missing
    product = db["product"].find_one({"_id": product_id})
    if not product or not product.get("is_active", True):
        raise missing
    return product


def _take_stock(db, item: dict, guarded: bool = True) -> bool:
    query = {"_id": to_object_id(item["product_id"])}
    if guarded:
        query["stock"] = {"$gte": item["quantity"]}
    result = db["product"].update_one(
        query, {"$inc": {"stock": -item["quantity"], "sold_count": item["quantity"]}}
    )
    return result.matched_count == 1


def _return_stock(db, item: dict):
    db["product"].update_one(
        {"_id": to_object_id(item["product_id"])},
        {"$inc": {"stock": item["quantity"], "sold_count": -item["quantity"]}},
    )


def order_summary(order: dict) -> dict:
    return {
        "id": str(order["_id"]),
        "order_number": order["order_number"],
        "total_amount": order["total_amount"],
        "discount_amount": order.get("discount_amount", 0),
        "shipping_cost": order["shipping_cost"],
        "final_amount": order["final_amount"],
        "order_status": order["order_status"],
        "payment_status": order["payment_status"],
    }


def create_order(db, user: dict, payload: OrderCreate) -> dict:
    """Validate the cart against live stock, persist the order and reserve inventory.

    Item name, price and image are copied onto the order so later product
    edits do not change what the customer bought.
    """
    user_id = str(user["_id"])
    total_amount = 0
    order_items = []
    requested = {}

    for item in payload.items:
        product = _load_cart_product(db, item)
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        if product.get("stock", 0) < requested[item.product_id]:
            raise InsufficientStockError(f"موجودی کافی برای محصول {product['name']} وجود ندارد")

        total_amount += product["price"] * item.quantity
        order_items.append({
            "product_id": str(product["_id"]),
            "name": product["name"],
            "price": product["price"],
            "quantity": item.quantity,
            "color": item.color,
            "size": item.size,
            "image": _primary_image(product),
        })

    shipping_cost = shipping_cost_for(total_amount)
    discount_amount = 0
    now = datetime.now(timezone.utc)
    order_doc = {
        "user_id": user_id,
        "order_number": next_order_number(db),
        "items": order_items,
        "total_amount": total_amount,
        "discount_amount": discount_amount,
        "shipping_cost": shipping_cost,
        "final_amount": total_amount - discount_amount + shipping_cost,
        "shipping_address": payload.shipping_address.model_dump(),
        "payment_method": payload.payment_method,
        "payment_status": "pending",
        "payment_details": {},
        "order_status": "pending",
        "status_history": [],
        "notes": payload.notes,
        "created_at": now,
        "updated_at": now,
    }
    order_id = db["order"].insert_one(order_doc).inserted_id

    reserved = []
    try:
        for item in order_items:
            if not _take_stock(db, item):
                raise InsufficientStockError(f"موجودی کافی برای محصول {item['name']} وجود ندارد")
            reserved.append(item)
        db["user"].update_one({"_id": user["_id"]}, {"$push": {"order_history": str(order_id)}})
    except Exception:
        logger.warning("Checkout for order %s failed, releasing %d reserved item(s)", order_doc["order_number"], len(reserved))
        try:
            for item in reserved:
                _return_stock(db, item)
        finally:
            db["order"].delete_one({"_id": order_id})
        raise

    logger.info("Order %s created for user %s (final amount %s)", order_doc["order_number"], user_id, order_doc["final_amount"])
    return order_summary(order_doc)


def update_order_status(db, order_id: str, update: OrderStatusUpdate) -> dict:
    """Admin status change. Transitions are recorded, not restricted."""
    oid = to_object_id(order_id, ORDER_NOT_FOUND)
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise NotFoundError(ORDER_NOT_FOUND)

    now = datetime.now(timezone.utc)
    changes = {"order_status": update.status, "updated_at": now}
    if update.tracking_number:
        changes["tracking_number"] = update.tracking_number
    if update.status == "delivered":
        changes["delivered_at"] = now

    ops = {"$set": changes}
    if update.status != order.get("order_status") or update.note:
        entry = {"status": update.status, "date": now}
        if update.note:
            entry["note"] = update.note
        ops["$push"] = {"status_history": entry}

    updated = db["order"].find_one_and_update({"_id": oid}, ops, return_document=ReturnDocument.AFTER)
    logger.info("Order %s status %s -> %s", order["order_number"], order.get("order_status"), update.status)
    return serialize_doc(updated)


def cancel_order(db, order_id: str, user: dict, reason=None) -> dict:
    oid = to_object_id(order_id, ORDER_NOT_FOUND)
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise NotFoundError(ORDER_NOT_FOUND)
    if order["user_id"] != str(user["_id"]):
        raise ForbiddenError()
    if order["order_status"] not in CANCELLABLE_STATUSES:
        raise InvalidStateError()

    now = datetime.now(timezone.utc)
    entry = {"status": "cancelled", "date": now}
    if reason:
        entry["note"] = reason
    # the status guard makes a second concurrent cancel a no-op
    cancelled = db["order"].find_one_and_update(
        {"_id": oid, "order_status": {"$in": list(CANCELLABLE_STATUSES)}},
        {
            "$set": {"order_status": "cancelled", "cancelled_at": now, "cancel_reason": reason, "updated_at": now},
            "$push": {"status_history": entry},
        },
        return_document=ReturnDocument.AFTER,
    )
    if cancelled is None:
        raise InvalidStateError()

    restored = []
    try:
        for item in cancelled["items"]:
            _return_stock(db, item)
            restored.append(item)
    except Exception:
        logger.error("Restoring stock for cancelled order %s failed, reverting cancellation", order["order_number"])
        for item in restored:
            _take_stock(db, item, guarded=False)
        db["order"].update_one(
            {"_id": oid},
            {
                "$set": {"order_status": order["order_status"], "updated_at": datetime.now(timezone.utc)},
                "$unset": {"cancelled_at": "", "cancel_reason": ""},
                "$pop": {"status_history": 1},
            },
        )
        raise

    logger.info("Order %s cancelled by user %s", order["order_number"], order["user_id"])
    return {
        "id": str(oid),
        "order_number": cancelled["order_number"],
        "order_status": cancelled["order_status"],
        "cancelled_at": cancelled["cancelled_at"],
    }


def list_user_orders(db, user: dict, pagination: Pagination) -> dict:
    orders, meta = paginate(
        db["order"],
        {"user_id": str(user["_id"])},
        pagination.page,
        pagination.limit,
        sort=[("created_at", DESCENDING)],
    )
    return {"orders": orders, **meta}


def get_order_for_user(db, order_id: str, user: dict) -> dict:
    order = db["order"].find_one({"_id": to_object_id(order_id, ORDER_NOT_FOUND)})
    if not order:
        raise NotFoundError(ORDER_NOT_FOUND)
    if order["user_id"] != str(user["_id"]) and not user.get("is_admin"):
        raise ForbiddenError()

    result = serialize_doc(order)
    result["user"] = users_by_id(db, [order["user_id"]]).get(order["user_id"])
    return result


def track_order(db, order_id: str) -> dict:
    order = db["order"].find_one({"_id": to_object_id(order_id, ORDER_NOT_FOUND)})
    if not order:
        raise NotFoundError(ORDER_NOT_FOUND)
    return {
        "order_number": order["order_number"],
        "order_status": order["order_status"],
        "status_history": order.get("status_history", []),
        "tracking_number": order.get("tracking_number"),
        "estimated_delivery": order.get("estimated_delivery"),
        "delivered_at": order.get("delivered_at"),
    }


def admin_list_orders(db, query: AdminOrderQuery) -> dict:
    filter_q = {"order_status": query.status} if query.status else {}
    items, meta = paginate(db["order"], filter_q, query.page, query.limit, sort=[("created_at", DESCENDING)])
    owners = users_by_id(db, [o["user_id"] for o in items])
    for item in items:
        item["user"] = owners.get(item["user_id"])
    return {"orders": items, **meta}
