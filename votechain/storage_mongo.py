# storage_mongo.py
import logging
from typing import Any, AsyncIterator, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from votechain.config import BLOCKS_COLLECTION, VOTES_COLLECTION
from votechain.exceptions import BlockConflictError, ChainIntegrityError, StoreError
from votechain.models import Block, Vote

logger = logging.getLogger(__name__)

NO_ID = {"_id": False}


class MongoChainStore:
    """
    Chain store on top of two append-only collections: votes and blocks.

    Both collection handles are passed in, so the store works with any object
    that speaks the motor collection API.
    """

    def __init__(self, votes, blocks):
        self.votes = votes
        self.blocks = blocks

    @classmethod
    def from_database(cls, db) -> "MongoChainStore":
        return cls(db[VOTES_COLLECTION], db[BLOCKS_COLLECTION])

    async def ensure_indexes(self) -> None:
        """
        Create the unique index on blocks.index.

        With it in place two writers can never both store a block at the same
        index: the loser gets a duplicate key error instead of forking the chain.
        """
        try:
            await self.blocks.create_index([("index", ASCENDING)], unique=True, name="block_index_unique")
            await self.votes.create_index([("choice", ASCENDING)], name="vote_choice")
            logger.info("Chain store indexes ensured")
        except PyMongoError as e:
            raise StoreError("Failed to create indexes", original_error=e) from e

    async def insert_vote(self, vote: Vote) -> Any:
        try:
            result = await self.votes.insert_one(vote.model_dump())
        except PyMongoError as e:
            logger.error(f"Error saving vote from {vote.voter_id}: {e}")
            raise StoreError("Failed to insert vote", {"voter_id": vote.voter_id}, e) from e
        return result.inserted_id

    async def insert_block(self, block: Block) -> None:
        try:
            await self.blocks.insert_one(block.model_dump())
        except DuplicateKeyError as e:
            raise BlockConflictError("Block index already taken", {"index": block.index}, e) from e
        except PyMongoError as e:
            logger.error(f"Error saving block {block.index}: {e}")
            raise StoreError("Failed to insert block", {"index": block.index}, e) from e

    async def get_latest_block(self) -> Optional[Block]:
        """Return the chain tip (highest index), or None for an empty chain."""
        try:
            doc = await self.blocks.find_one({}, projection=NO_ID, sort=[("index", DESCENDING)])
        except PyMongoError as e:
            raise StoreError("Failed to read chain tip", original_error=e) from e
        if doc is None:
            return None
        return _parse_block(doc)

    async def count_by_choice(self) -> Dict[str, int]:
        pipeline = [{"$group": {"_id": "$choice", "count": {"$sum": 1}}}]
        try:
            rows = await self.votes.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            raise StoreError("Failed to aggregate votes", original_error=e) from e
        return {row["_id"]: int(row["count"]) for row in rows}

    async def iter_blocks(self) -> AsyncIterator[Block]:
        """Yield every stored block in ascending index order."""
        try:
            async for doc in self.blocks.find({}, projection=NO_ID, sort=[("index", ASCENDING)]):
                yield _parse_block(doc)
        except PyMongoError as e:
            raise StoreError("Failed to read blocks", original_error=e) from e

    async def iter_votes(self) -> AsyncIterator[Vote]:
        try:
            async for doc in self.votes.find({}, projection=NO_ID):
                yield Vote(**doc)
        except PyMongoError as e:
            raise StoreError("Failed to read votes", original_error=e) from e

    async def count_votes(self) -> int:
        try:
            return await self.votes.count_documents({})
        except PyMongoError as e:
            raise StoreError("Failed to count votes", original_error=e) from e


def _parse_block(doc: Dict[str, Any]) -> Block:
    try:
        return Block(**doc)
    except PydanticValidationError as e:
        raise ChainIntegrityError("Stored block is malformed", {"index": doc.get("index")}) from e
