"""
Admin dashboard aggregations.

Revenue means the sum of final_amount over orders whose payment_status is
"paid". Both dashboard endpoints use this definition.
"""
from datetime import date, datetime, time, timedelta, timezone

from pymongo import DESCENDING

from accounts import users_by_id
from database import serialize_doc
from schemas import ORDER_STATUSES

RECENT_LIMIT = 5
SALES_DAYS = 30


def total_revenue(db) -> float:
    rows = list(db["order"].aggregate([
        {"$match": {"payment_status": "paid"}},
        {"$group": {"_id": None, "total": {"$sum": "$final_amount"}}},
    ]))
    return rows[0]["total"] if rows else 0


def orders_by_status(db) -> dict:
    counts = {status: 0 for status in ORDER_STATUSES}
    for row in db["order"].aggregate([{"$group": {"_id": "$order_status", "count": {"$sum": 1}}}]):
        counts[row["_id"]] = row["count"]
    return counts


def _recent_orders_with_users(db):
    orders = list(db["order"].find().sort([("created_at", DESCENDING)]).limit(RECENT_LIMIT))
    users = users_by_id(db, [o["user_id"] for o in orders])
    result = []
    for order in orders:
        item = serialize_doc(order)
        item["user"] = users.get(order["user_id"])
        result.append(item)
    return result


def dashboard(db) -> dict:
    return {
        "stats": {
            "total_products": db["product"].count_documents({"is_active": True}),
            "total_orders": db["order"].count_documents({}),
            "total_users": db["user"].count_documents({"is_active": True}),
            "pending_orders": db["order"].count_documents({"order_status": "pending"}),
            "total_revenue": total_revenue(db),
            "orders_by_status": orders_by_status(db),
        },
        "recent_orders": _recent_orders_with_users(db),
    }


def daily_sales(db, days: int = SALES_DAYS, now=None):
    """Paid revenue per calendar day (UTC) over the last `days` days, oldest first."""
    now = now or datetime.now(timezone.utc)
    first_day = (now - timedelta(days=days - 1)).date()
    # stored datetimes are naive UTC
    since = datetime.combine(first_day, time.min)
    rows = db["order"].aggregate([
        {"$match": {"payment_status": "paid", "created_at": {"$gte": since}}},
        {"$group": {
            "_id": {
                "year": {"$year": "$created_at"},
                "month": {"$month": "$created_at"},
                "day": {"$dayOfMonth": "$created_at"},
            },
            "revenue": {"$sum": "$final_amount"},
        }},
    ])
    totals = {first_day + timedelta(days=i): 0 for i in range(days)}
    for row in rows:
        day = date(row["_id"]["year"], row["_id"]["month"], row["_id"]["day"])
        if day in totals:
            totals[day] = row["revenue"]
    return [{"date": day.isoformat(), "revenue": amount} for day, amount in totals.items()]


def dashboard_stats(db) -> dict:
    recent_orders = db["order"].find(
        {}, {"order_number": 1, "order_status": 1, "final_amount": 1, "created_at": 1}
    ).sort([("created_at", DESCENDING)]).limit(RECENT_LIMIT)
    newest_products = db["product"].find(
        {"is_active": True}, {"name": 1, "category": 1, "price": 1}
    ).sort([("created_at", DESCENDING)]).limit(RECENT_LIMIT)
    return {
        "total_users": db["user"].count_documents({"is_admin": False}),
        "total_products": db["product"].count_documents({"is_active": True}),
        "total_orders": db["order"].count_documents({}),
        "total_revenue": total_revenue(db),
        "recent_orders": [serialize_doc(o) for o in recent_orders],
        "top_products": [serialize_doc(p) for p in newest_products],
        "sales_data": daily_sales(db),
    }
