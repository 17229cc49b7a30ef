"""
Block construction and the single-writer block appender.

Reading the chain tip and storing the next block are two separate store
calls. Run concurrently they let two writers link onto the same tip and fork
the chain, so every append for a chain goes through one BlockAppender: a
queue drained by a single worker task. Vote inserts never pass through it.

The unique index on blocks.index backs this up across processes. A writer
that loses the race gets BlockConflictError, re-reads the tip and tries again.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from votechain.config import APPEND_MAX_RETRIES, GENESIS_PREV_HASH, VERIFY_TIP
from votechain.exceptions import BlockConflictError, ChainIntegrityError, StoreError
from votechain.hashing import hash_block, seal_block
from votechain.metrics import metrics
from votechain.models import Block

logger = logging.getLogger(__name__)


def next_block(tip: Optional[Block], vote_hash: str, timestamp: int) -> Block:
    """Build and seal the block that follows `tip` (genesis when tip is None)."""
    if tip is None:
        prev_hash, index = GENESIS_PREV_HASH, 0
    else:
        prev_hash, index = tip.hash, tip.index + 1
    return seal_block(Block(index=index, vote_hash=vote_hash, prev_hash=prev_hash, timestamp=timestamp))


def _mark_retrieved(future: asyncio.Future) -> None:
    # a cancelled caller never reads the append error; the worker has logged it
    if not future.cancelled():
        future.exception()


def check_block_hash(block: Block) -> None:
    expected = hash_block(block)
    if block.hash != expected:
        raise ChainIntegrityError(
            "Block hash does not match its contents",
            {"index": block.index, "stored": block.hash, "computed": expected},
        )


class BlockAppender:
    """Serializes tip-read + block-insert for one chain."""

    def __init__(
        self,
        store,
        clock: Callable[[], float] = time.time,
        max_retries: int = APPEND_MAX_RETRIES,
        verify_tip: bool = VERIFY_TIP,
    ):
        self._store = store
        self._clock = clock
        self._max_retries = max_retries
        self._verify_tip = verify_tip
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._worker = asyncio.get_running_loop().create_task(self._run(), name="block-appender")
        logger.info("Block appender started")

    async def stop(self) -> None:
        """Wait for queued appends to finish, then stop the worker."""
        if not self.running:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Block appender stopped")

    async def append(self, vote_hash: str) -> Block:
        """
        Queue a block for `vote_hash` and wait until it is stored.

        The append itself runs in the worker task. If the caller goes away
        while waiting, the block is still written.
        """
        self.start()
        future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_mark_retrieved)
        self._queue.put_nowait((vote_hash, future))
        metrics.append_queue_size.set(self._queue.qsize())
        return await asyncio.shield(future)

    async def _run(self) -> None:
        while True:
            vote_hash, future = await self._queue.get()
            try:
                block = await self._append_one(vote_hash)
            except asyncio.CancelledError:
                if not future.done():
                    future.set_exception(StoreError("Block appender stopped mid-append", {"vote_hash": vote_hash}))
                raise
            except Exception as e:
                # handed to the waiting submit_vote, which reports the orphaned vote
                logger.error(f"Block append failed for vote_hash {vote_hash}: {e}")
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(block)
            finally:
                self._queue.task_done()
                metrics.append_queue_size.set(self._queue.qsize())

    async def _append_one(self, vote_hash: str) -> Block:
        with metrics.append_duration.time():
            for attempt in range(1, self._max_retries + 1):
                tip = await self._store.get_latest_block()
                if tip is not None and self._verify_tip:
                    check_block_hash(tip)

                block = next_block(tip, vote_hash, int(self._clock()))
                try:
                    await self._store.insert_block(block)
                except BlockConflictError:
                    metrics.append_conflicts.inc()
                    logger.warning(
                        f"Block index {block.index} taken by another writer, "
                        f"retrying ({attempt}/{self._max_retries})"
                    )
                    continue

                metrics.blocks_appended.inc()
                logger.debug(f"Appended block {block.index} ({block.hash[:12]})")
                return block

        raise BlockConflictError(
            "Gave up appending block after repeated index conflicts",
            {"vote_hash": vote_hash, "attempts": self._max_retries},
        )
