"""
MongoDB access for the storefront.

One client per process, created lazily on first use and released explicitly
with close(). Collections are named after the lowercase model names in
schemas.py ("user", "product", "order").
"""
import logging
import math
import threading
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

import config
from errors import NotFoundError

logger = logging.getLogger(__name__)


class _Connection:
    def __init__(self):
        self.client = None
        self.db = None
        self._lock = threading.Lock()

    def connect(self, client=None, name: Optional[str] = None):
        with self._lock:
            if self.db is not None:
                return self.db
            if client is None:
                client = MongoClient(config.MONGO_URI, serverSelectionTimeoutMS=5000)
                db_name = name or config.DATABASE_NAME
                self.db = client[db_name] if db_name else client.get_default_database(config.DEFAULT_DATABASE_NAME)
            else:
                self.db = client[name or config.DATABASE_NAME or config.DEFAULT_DATABASE_NAME]
            self.client = client
            logger.info("Connected to MongoDB database %s", self.db.name)
            return self.db

    def close(self):
        with self._lock:
            if self.client is not None:
                self.client.close()
                logger.info("MongoDB connection closed")
            self.client = None
            self.db = None


_connection = _Connection()


def connect(client=None, name: Optional[str] = None):
    return _connection.connect(client=client, name=name)


def get_db():
    if _connection.db is not None:
        return _connection.db
    return _connection.connect()


def close():
    _connection.close()


def ping() -> bool:
    try:
        get_db().command("ping")
        return True
    except PyMongoError as e:
        logger.warning("Database ping failed: %s", e)
        return False


def ensure_indexes(db):
    db["user"].create_index("email", unique=True)
    db["user"].create_index("phone", unique=True)
    db["order"].create_index("order_number", unique=True)
    db["order"].create_index("user_id")
    db["order"].create_index([("created_at", DESCENDING)])
    db["product"].create_index([("category", ASCENDING), ("is_active", ASCENDING)])
    db["product"].create_index("price")
    db["product"].create_index([("sold_count", DESCENDING)])


def to_object_id(value: str, message: Optional[str] = None) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(message)


def serialize_doc(doc):
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def paginate(collection, filter_dict: dict, page: int, limit: int, sort=None, projection=None):
    """Return one page of serialized documents plus the page metadata."""
    cursor = collection.find(filter_dict, projection)
    if sort:
        cursor = cursor.sort(sort)
    items = [serialize_doc(d) for d in cursor.skip((page - 1) * limit).limit(limit)]
    total = collection.count_documents(filter_dict)
    return items, {"total_pages": math.ceil(total / limit), "current_page": page, "total": total}
