import logging
from typing import Dict

from votechain.storage_mongo import MongoChainStore

logger = logging.getLogger(__name__)


class ResultsAggregator:
    def __init__(self, store: MongoChainStore):
        self._store = store

    async def tally(self) -> Dict[str, int]:
        """Count stored votes per choice. Choices with no votes are absent."""
        counts = await self._store.count_by_choice()
        logger.debug(f"Tallied {sum(counts.values())} votes over {len(counts)} choices")
        return counts
