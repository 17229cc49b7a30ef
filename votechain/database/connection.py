import logging

import motor.motor_asyncio

from votechain.config import MONGO_DB, MONGO_URI

logger = logging.getLogger(__name__)


def create_client(uri: str = MONGO_URI) -> motor.motor_asyncio.AsyncIOMotorClient:
    if not uri:
        raise ValueError("MONGO_URI is empty. Check your environment or .env file.")
    client = motor.motor_asyncio.AsyncIOMotorClient(uri)
    logger.info(f"MongoDB client created for {uri}")
    return client


def get_database(client: motor.motor_asyncio.AsyncIOMotorClient, name: str = MONGO_DB):
    return client[name]
