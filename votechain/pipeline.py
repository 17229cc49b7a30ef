import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from votechain.chain import BlockAppender
from votechain.exceptions import PartialIngestion, ValidationError, VoteChainError
from votechain.hashing import hash_vote
from votechain.metrics import metrics
from votechain.models import Block, Vote
from votechain.storage_mongo import MongoChainStore

logger = logging.getLogger(__name__)


def parse_vote(voter_id: Any, choice: Any, ts: Any) -> Vote:
    """Build a Vote or raise ValidationError naming the bad fields."""
    try:
        return Vote(voter_id=voter_id, choice=choice, ts=ts)
    except PydanticValidationError as e:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
        raise ValidationError(f"Invalid vote: {', '.join(fields)}", {"fields": ",".join(fields)}) from e


class VotePipeline:
    """Stores a vote and chains it into the ledger."""

    def __init__(self, store: MongoChainStore, appender: BlockAppender):
        self._store = store
        self._appender = appender

    async def submit_vote(self, voter_id: str, choice: str, ts: int) -> Block:
        """
        Persist a vote and append its block.

        Raises:
            ValidationError: the vote is malformed; nothing was written.
            StoreError: the vote could not be stored.
            PartialIngestion: the vote was stored but its block was not.
        """
        vote = parse_vote(voter_id, choice, ts)

        await self._store.insert_vote(vote)
        metrics.votes_received.inc()

        vote_hash = hash_vote(vote)
        try:
            block = await self._appender.append(vote_hash)
        except VoteChainError as e:
            logger.error(f"Vote from {vote.voter_id} stored without a block: {e}")
            raise PartialIngestion("Vote stored but block append failed", vote.model_dump(), e) from e

        logger.info(f"Vote from {vote.voter_id} chained at block {block.index}")
        return block
