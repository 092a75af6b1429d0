import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import accounts
import catalog
import config
import dashboard
import database
import orders
from database import get_db
from errors import register_exception_handlers
from schemas import (
    AdminOrderQuery,
    AdminProductQuery,
    CancelRequest,
    ChangePasswordRequest,
    LoginRequest,
    OrderCreate,
    OrderStatusUpdate,
    Pagination,
    ProductIn,
    ProductQuery,
    ProductUpdate,
    ProfileUpdate,
    RegisterRequest,
    ReviewIn,
)
from security import create_access_token, get_current_user, get_optional_user, public_user, require_admin

logger = logging.getLogger(__name__)


def configure_logging():
    root = logging.getLogger()
    root.setLevel(config.LOG_LEVEL)
    if not any(getattr(h, "_shop_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s"))
        handler._shop_handler = True
        root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    db = database.connect()
    database.ensure_indexes(db)
    logger.info("Storefront API started (%s)", config.APP_ENV)
    yield
    database.close()


app = FastAPI(title="Shal & Roosari Shop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"],
)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")
register_exception_handlers(app)


def token_response(message: str, user: dict) -> dict:
    return {
        "message": message,
        "token": create_access_token({"sub": str(user["_id"])}),
        "user": public_user(user),
    }


# Routes
@app.get("/")
def root():
    return {"message": "سرور فروشگاه شال و روسری راه‌اندازی شد"}


@app.get("/health")
def health():
    connected = database.ping()
    body = {
        "status": "healthy" if connected else "error",
        "timestamp": datetime.now(timezone.utc),
        "database": "connected" if connected else "disconnected",
        "environment": config.APP_ENV,
    }
    code = status.HTTP_200_OK if connected else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=jsonable_encoder(body))


# Auth endpoints
@app.post("/auth/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest):
    user = accounts.register_user(get_db(), payload)
    return token_response("ثبت‌نام با موفقیت انجام شد", user)


@app.post("/auth/login")
def login(payload: LoginRequest):
    user = accounts.authenticate(get_db(), payload.email, payload.password)
    return token_response("ورود با موفقیت انجام شد", user)


@app.get("/auth/profile")
def profile(user=Depends(get_current_user)):
    return {"user": accounts.get_profile(get_db(), user)}


@app.put("/auth/profile")
def update_profile(payload: ProfileUpdate, user=Depends(get_current_user)):
    updated = accounts.update_profile(get_db(), user, payload)
    return {"message": "پروفایل با موفقیت به‌روزرسانی شد", "user": updated}


@app.put("/auth/change-password")
def change_password(payload: ChangePasswordRequest, user=Depends(get_current_user)):
    accounts.change_password(get_db(), user, payload)
    return {"message": "رمز عبور با موفقیت تغییر کرد"}


@app.put("/auth/favorites/{product_id}")
def toggle_favorite(product_id: str, user=Depends(get_current_user)):
    return accounts.toggle_favorite(get_db(), user, product_id)


# Product endpoints
@app.get("/products")
def list_products(query: Annotated[ProductQuery, Query()], viewer: Optional[dict] = Depends(get_optional_user)):
    return catalog.list_products(get_db(), query, viewer)


@app.get("/products/featured/list")
def featured_products():
    return {"products": catalog.featured_products(get_db())}


@app.get("/products/categories/list")
def list_categories():
    return {"categories": catalog.categories(get_db())}


@app.get("/products/search/{text}")
def search_products(text: str, pagination: Annotated[Pagination, Query()]):
    return catalog.search_products(get_db(), text, pagination)


@app.get("/products/{product_id}")
def get_product(product_id: str):
    return {"product": catalog.get_product(get_db(), product_id)}


@app.post("/products/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
def add_review(product_id: str, payload: ReviewIn, user=Depends(get_current_user)):
    rating = catalog.add_review(get_db(), product_id, user, payload.rating, payload.comment)
    return {"message": "نظر شما با موفقیت ثبت شد", **rating}


# Orders
@app.post("/orders", status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, user=Depends(get_current_user)):
    order = orders.create_order(get_db(), user, payload)
    return {"message": "سفارش با موفقیت ثبت شد", "order": order}


@app.get("/orders/my-orders")
def my_orders(pagination: Annotated[Pagination, Query()], user=Depends(get_current_user)):
    return orders.list_user_orders(get_db(), user, pagination)


@app.get("/orders/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user)):
    return {"order": orders.get_order_for_user(get_db(), order_id, user)}


@app.put("/orders/{order_id}/cancel")
def cancel_order(order_id: str, payload: Optional[CancelRequest] = None, user=Depends(get_current_user)):
    reason = payload.cancel_reason if payload else None
    order = orders.cancel_order(get_db(), order_id, user, reason)
    return {"message": "سفارش با موفقیت لغو شد", "order": order}


@app.get("/orders/{order_id}/track")
def track_order(order_id: str):
    return orders.track_order(get_db(), order_id)


# Admin
admin = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@admin.get("/dashboard")
def admin_dashboard():
    return dashboard.dashboard(get_db())


@admin.get("/dashboard-stats")
def admin_dashboard_stats():
    return {"success": True, "data": dashboard.dashboard_stats(get_db())}


@admin.get("/products")
def admin_products(query: Annotated[AdminProductQuery, Query()]):
    return {"success": True, "data": catalog.admin_list_products(get_db(), query)}


@admin.post("/products", status_code=status.HTTP_201_CREATED)
def admin_create_product(payload: ProductIn):
    product = catalog.create_product(get_db(), payload)
    return {"message": "محصول با موفقیت اضافه شد", "product": product}


@admin.put("/products/{product_id}")
def admin_update_product(product_id: str, payload: ProductUpdate):
    product = catalog.update_product(get_db(), product_id, payload)
    return {"message": "محصول با موفقیت به‌روزرسانی شد", "product": product}


@admin.delete("/products/{product_id}")
def admin_delete_product(product_id: str):
    catalog.deactivate_product(get_db(), product_id)
    return {"message": "محصول با موفقیت حذف شد"}


@admin.get("/orders")
def admin_orders(query: Annotated[AdminOrderQuery, Query()]):
    return orders.admin_list_orders(get_db(), query)


@admin.put("/orders/{order_id}/status")
def admin_update_order_status(order_id: str, payload: OrderStatusUpdate):
    order = orders.update_order_status(get_db(), order_id, payload)
    return {"message": "وضعیت سفارش با موفقیت به‌روزرسانی شد", "order": order}


@admin.get("/users")
def admin_users(pagination: Annotated[Pagination, Query()]):
    return accounts.list_users(get_db(), pagination)


@admin.put("/users/{user_id}/toggle-status")
def admin_toggle_user(user_id: str):
    user = accounts.toggle_user_status(get_db(), user_id)
    state = "فعال" if user["is_active"] else "غیرفعال"
    return {"message": f"کاربر با موفقیت {state} شد", "user": user}


# Simple seed endpoint to create the sample catalog
@admin.post("/seed")
def seed():
    inserted = catalog.seed_products(get_db())
    return {"status": "ok", "inserted": inserted}


app.include_router(admin)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
