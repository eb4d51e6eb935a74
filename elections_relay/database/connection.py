import logging

from pymongo import MongoClient
from pymongo.database import Database

from ..config import Settings

logger = logging.getLogger(__name__)


def create_client(settings: Settings) -> MongoClient:
    # One pooled client is shared by request handlers and the reconciliation thread
    client = MongoClient(
        settings.mongo_uri,
        minPoolSize=1,
        maxPoolSize=5,
        serverSelectionTimeoutMS=5000,
    )
    logger.info(f"MongoDB client created for database: {settings.mongo_db}")
    return client


def get_database(client: MongoClient, settings: Settings) -> Database:
    return client[settings.mongo_db]
