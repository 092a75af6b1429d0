from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from database import get_db
from errors import ForbiddenError, UnauthorizedError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

PUBLIC_USER_FIELDS = ("first_name", "last_name", "email", "phone", "address", "is_admin", "is_active")


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=config.ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.ALGORITHM)


def public_user(user: dict) -> dict:
    """Project a user document onto the fields safe to return to clients."""
    out = {"id": str(user["_id"])}
    for field in PUBLIC_USER_FIELDS:
        out[field] = user.get(field)
    return out


def _user_from_token(token: Optional[str]) -> dict:
    if not token:
        raise UnauthorizedError()
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise UnauthorizedError("توکن نامعتبر است")
        user = get_db()["user"].find_one({"_id": ObjectId(user_id)})
    except (JWTError, InvalidId, TypeError):
        raise UnauthorizedError("توکن نامعتبر است")

    if not user:
        raise UnauthorizedError("کاربر یافت نشد")
    if not user.get("is_active", True):
        raise UnauthorizedError("حساب کاربری غیرفعال است")
    return user


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    return _user_from_token(token)


def get_optional_user(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[dict]:
    if not token:
        return None
    try:
        return _user_from_token(token)
    except UnauthorizedError:
        return None


# Admin guard
def require_admin(user=Depends(get_current_user)):
    if not user.get("is_admin"):
        raise ForbiddenError("دسترسی مدیر مورد نیاز است")
    return user
