import os

from dotenv import load_dotenv

load_dotenv()

# Database
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/shal-roosari-shop")
DATABASE_NAME = os.getenv("DATABASE_NAME")
DEFAULT_DATABASE_NAME = "shal-roosari-shop"

# Auth settings
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "30"))

# Server
PORT = int(os.getenv("PORT", "5000"))
CLIENT_URL = os.getenv("CLIENT_URL")
APP_ENV = os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development"
IS_DEVELOPMENT = APP_ENV == "development"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

# Checkout pricing (Toman)
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", "500000"))
SHIPPING_FLAT_FEE = float(os.getenv("SHIPPING_FLAT_FEE", "30000"))


def allowed_origins():
    origins = ["http://localhost:3000"]
    if CLIENT_URL:
        origins.append(CLIENT_URL)
    return origins
