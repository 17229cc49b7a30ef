"""
Read-back verification of the stored chain.

verify_chain walks every block in index order and re-derives what the chain
should look like: contiguous indices from 0, a hash that matches each block's
contents, and each prev_hash pointing at the previous block's hash.

reconcile matches stored votes against blocks by vote_hash, in both
directions. A vote with no block was stored but never chained, which happens
when the block append fails after the vote insert succeeded (votes whose
append is still in flight show up too, until it lands). A block with no vote
means the vote it was built from was deleted or rewritten.
"""

import logging
from collections import defaultdict
from typing import List, Optional

from pydantic import BaseModel

from votechain.chain import check_block_hash
from votechain.config import GENESIS_PREV_HASH
from votechain.exceptions import ChainIntegrityError
from votechain.hashing import hash_vote
from votechain.models import Block, Vote
from votechain.storage_mongo import MongoChainStore

logger = logging.getLogger(__name__)


class ChainReport(BaseModel):
    length: int
    tip_hash: Optional[str] = None
    votes: int = 0


class Reconciliation(BaseModel):
    orphaned_votes: List[Vote] = []
    unmatched_blocks: List[Block] = []


class ChainVerifier:
    def __init__(self, store: MongoChainStore):
        self._store = store

    async def verify_chain(self) -> ChainReport:
        expected_index = 0
        prev = None

        async for block in self._store.iter_blocks():
            if block.index != expected_index:
                raise ChainIntegrityError(
                    "Block index out of sequence",
                    {"expected": expected_index, "found": block.index},
                )

            check_block_hash(block)

            expected_prev = GENESIS_PREV_HASH if prev is None else prev.hash
            if block.prev_hash != expected_prev:
                raise ChainIntegrityError(
                    "Block is not linked to its predecessor",
                    {"index": block.index, "prev_hash": block.prev_hash, "expected": expected_prev},
                )

            prev = block
            expected_index += 1

        votes = await self._store.count_votes()
        report = ChainReport(length=expected_index, tip_hash=prev.hash if prev else None, votes=votes)
        if votes != report.length:
            logger.warning(f"Chain has {report.length} blocks for {votes} votes")
        logger.info(f"Chain verified: {report.length} blocks")
        return report

    async def reconcile(self) -> Reconciliation:
        # identical votes hash the same, so each vote claims one block of its hash
        unclaimed = defaultdict(list)
        async for block in self._store.iter_blocks():
            unclaimed[block.vote_hash].append(block)

        orphans = []
        async for vote in self._store.iter_votes():
            blocks = unclaimed.get(hash_vote(vote))
            if blocks:
                blocks.pop(0)
            else:
                orphans.append(vote)

        unmatched = sorted((b for blocks in unclaimed.values() for b in blocks), key=lambda b: b.index)

        if orphans:
            logger.warning(f"Found {len(orphans)} votes without a block")
        if unmatched:
            logger.error(f"Found {len(unmatched)} blocks whose vote is missing or altered")
        return Reconciliation(orphaned_votes=orphans, unmatched_blocks=unmatched)
