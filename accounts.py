"""
Customer and admin accounts: registration, login, profile and moderation.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from database import paginate, serialize_doc, to_object_id
from errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from schemas import Address, ChangePasswordRequest, Pagination, ProfileUpdate, RegisterRequest
from security import get_password_hash, public_user, verify_password

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "کاربر یافت نشد"
DUPLICATE_USER = "کاربری با این ایمیل یا شماره تلفن قبلاً ثبت شده است"
BAD_CREDENTIALS = "ایمیل یا رمز عبور نادرست است"
NO_PASSWORD = {"password_hash": 0}


def register_user(db, payload: RegisterRequest, is_admin: bool = False, address: Optional[Address] = None) -> dict:
    email = payload.email.lower()
    if db["user"].find_one({"$or": [{"email": email}, {"phone": payload.phone}]}):
        raise ConflictError(DUPLICATE_USER)

    now = datetime.now(timezone.utc)
    doc = {
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "email": email,
        "phone": payload.phone,
        "password_hash": get_password_hash(payload.password),
        "address": (address or Address()).model_dump(),
        "is_admin": is_admin,
        "is_active": True,
        "order_history": [],
        "favorites": [],
        "created_at": now,
        "updated_at": now,
    }
    try:
        doc["_id"] = db["user"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise ConflictError(DUPLICATE_USER)
    logger.info("Registered user %s (admin=%s)", doc["_id"], is_admin)
    return doc


def authenticate(db, email: str, password: str) -> dict:
    user = db["user"].find_one({"email": email.lower()})
    if not user:
        raise UnauthorizedError(BAD_CREDENTIALS)
    if not user.get("is_active", True):
        raise UnauthorizedError("حساب کاربری غیرفعال است")
    if not verify_password(password, user.get("password_hash", "")):
        raise UnauthorizedError(BAD_CREDENTIALS)
    return user


def get_profile(db, user: dict) -> dict:
    order_ids = [to_object_id(oid) for oid in user.get("order_history", [])]
    favorite_ids = [to_object_id(pid) for pid in user.get("favorites", [])]
    orders = db["order"].find({"_id": {"$in": order_ids}}).sort([("created_at", DESCENDING)])
    favorites = db["product"].find({"_id": {"$in": favorite_ids}}, {"reviews": 0})

    profile = public_user(user)
    profile["order_history"] = [serialize_doc(o) for o in orders]
    profile["favorites"] = [serialize_doc(p) for p in favorites]
    profile["created_at"] = user.get("created_at")
    return profile


def update_profile(db, user: dict, payload: ProfileUpdate) -> dict:
    changes = {}
    if payload.first_name:
        changes["first_name"] = payload.first_name
    if payload.last_name:
        changes["last_name"] = payload.last_name
    if payload.phone and payload.phone != user.get("phone"):
        if db["user"].find_one({"phone": payload.phone, "_id": {"$ne": user["_id"]}}):
            raise ConflictError(DUPLICATE_USER)
        changes["phone"] = payload.phone
    if payload.address:
        merged = {**user.get("address", {}), **payload.address.model_dump(exclude_unset=True)}
        changes["address"] = merged
    if changes:
        changes["updated_at"] = datetime.now(timezone.utc)
        db["user"].update_one({"_id": user["_id"]}, {"$set": changes})
    return public_user({**user, **changes})


def change_password(db, user: dict, payload: ChangePasswordRequest):
    if not verify_password(payload.current_password, user.get("password_hash", "")):
        raise ValidationError("رمز عبور فعلی نادرست است")
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": get_password_hash(payload.new_password), "updated_at": datetime.now(timezone.utc)}},
    )


def toggle_favorite(db, user: dict, product_id: str) -> dict:
    oid = to_object_id(product_id, "محصول یافت نشد")
    if not db["product"].find_one({"_id": oid, "is_active": True}):
        raise NotFoundError("محصول یافت نشد")
    product_id = str(oid)
    if product_id in user.get("favorites", []):
        db["user"].update_one({"_id": user["_id"]}, {"$pull": {"favorites": product_id}})
        return {"product_id": product_id, "is_favorite": False}
    db["user"].update_one({"_id": user["_id"]}, {"$addToSet": {"favorites": product_id}})
    return {"product_id": product_id, "is_favorite": True}


def list_users(db, pagination: Pagination) -> dict:
    users, meta = paginate(
        db["user"], {}, pagination.page, pagination.limit,
        sort=[("created_at", DESCENDING)], projection=NO_PASSWORD,
    )
    return {"users": users, **meta}


def list_admins(db):
    return [serialize_doc(u) for u in db["user"].find({"is_admin": True}, NO_PASSWORD)]


def toggle_user_status(db, user_id: str) -> dict:
    oid = to_object_id(user_id, USER_NOT_FOUND)
    user = db["user"].find_one({"_id": oid})
    if not user:
        raise NotFoundError(USER_NOT_FOUND)
    is_active = not user.get("is_active", True)
    db["user"].update_one({"_id": oid}, {"$set": {"is_active": is_active, "updated_at": datetime.now(timezone.utc)}})
    logger.info("User %s is_active=%s", user_id, is_active)
    return {
        "id": str(oid),
        "first_name": user["first_name"],
        "last_name": user["last_name"],
        "email": user["email"],
        "is_active": is_active,
    }


def users_by_id(db, user_ids) -> dict:
    """Contact fields of the given users, keyed by id string."""
    ids = [to_object_id(uid) for uid in set(user_ids)]
    cursor = db["user"].find({"_id": {"$in": ids}}, {"first_name": 1, "last_name": 1, "email": 1, "phone": 1})
    return {str(u["_id"]): serialize_doc(u) for u in cursor}
