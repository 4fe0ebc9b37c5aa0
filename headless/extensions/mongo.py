import logging

from pymongo import ASCENDING, MongoClient
from pymongo.errors import ConfigurationError, PyMongoError

logger = logging.getLogger(__name__)

client = None
db = None


def init_mongo(app):
    """Connect when MONGO_URI is set and return the persistent cache collection (or None)."""
    global client, db
    uri = app.config.get("MONGO_URI")
    if not uri:
        return None
    client = MongoClient(uri, serverSelectionTimeoutMS=2000)  # SRV or standard URI
    try:
        db = client.get_default_database()
    except ConfigurationError:
        db = None
    if db is None:
        db = client["headless"]
    collection = db[app.config.get("PERSISTENT_CACHE_COLLECTION", "content_cache")]
    app.extensions["mongo"] = {"client": client, "db": db, "cache": collection}
    # Ensure indexes (best-effort)
    try:
        collection.create_index([("created_at", ASCENDING)])
    except PyMongoError as e:
        # Don't crash if index creation fails (e.g. permissions); the tier degrades to misses
        logger.warning("[warn] Could not ensure cache indexes: %s", e)
    return collection
