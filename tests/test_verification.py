"""Tests for chain read-back verification."""

import asyncio

import pytest

from votechain.chain import next_block
from votechain.exceptions import ChainIntegrityError
from votechain.hashing import seal_block
from votechain.models import Block, Vote
from votechain.verification import ChainVerifier


def ingest(pipeline, count):
    async def scenario():
        for i in range(count):
            await pipeline.submit_vote(f"v{i}", "A", i)

    asyncio.run(scenario())


class TestVerifyChain:
    def test_empty_chain(self, store):
        report = asyncio.run(ChainVerifier(store).verify_chain())
        assert report.length == 0
        assert report.tip_hash is None
        assert report.votes == 0

    def test_valid_chain(self, pipeline, store, db):
        ingest(pipeline, 3)
        report = asyncio.run(ChainVerifier(store).verify_chain())
        assert report.length == 3
        assert report.tip_hash == db["blocks"].docs[-1]["hash"]
        assert report.votes == 3

    def test_tampered_vote_hash(self, pipeline, store, db):
        ingest(pipeline, 3)
        db["blocks"].docs[1]["vote_hash"] = "forged"
        with pytest.raises(ChainIntegrityError, match="hash does not match"):
            asyncio.run(ChainVerifier(store).verify_chain())

    def test_relinked_block_with_valid_hash(self, pipeline, store, db):
        ingest(pipeline, 2)
        # self-consistent block that points at a parent outside the chain
        tip = next_block(None, "x", 1)
        forged = next_block(tip, "y", 2)
        db["blocks"].docs[1] = forged.model_dump()
        with pytest.raises(ChainIntegrityError, match="not linked"):
            asyncio.run(ChainVerifier(store).verify_chain())

    def test_index_gap(self, pipeline, store, db):
        ingest(pipeline, 3)
        del db["blocks"].docs[1]
        with pytest.raises(ChainIntegrityError, match="out of sequence") as info:
            asyncio.run(ChainVerifier(store).verify_chain())
        assert info.value.context == {"expected": 1, "found": 2}

    def test_genesis_needs_sentinel(self, store, db):
        genesis = seal_block(Block(index=0, vote_hash="vh", prev_hash="1", timestamp=1))
        db["blocks"].docs.append(genesis.model_dump())
        with pytest.raises(ChainIntegrityError, match="not linked"):
            asyncio.run(ChainVerifier(store).verify_chain())


class TestReconcile:
    def ingest_choices(self, pipeline, choices):
        async def scenario():
            for i, choice in enumerate(choices):
                await pipeline.submit_vote(f"v{i}", choice, i)

        asyncio.run(scenario())

    def test_clean_when_every_vote_is_chained(self, pipeline, store):
        ingest(pipeline, 3)
        result = asyncio.run(ChainVerifier(store).reconcile())
        assert result.orphaned_votes == []
        assert result.unmatched_blocks == []

    def test_duplicate_votes_counted_separately(self, pipeline, store):
        async def scenario():
            await pipeline.submit_vote("v1", "A", 1)
            await store.insert_vote(Vote(voter_id="v1", choice="A", ts=1))
            return await ChainVerifier(store).reconcile()

        result = asyncio.run(scenario())
        assert result.orphaned_votes == [Vote(voter_id="v1", choice="A", ts=1)]
        assert result.unmatched_blocks == []

    def test_deleted_vote_leaves_unmatched_block(self, pipeline, store, db):
        self.ingest_choices(pipeline, ["A", "A", "B"])
        del db["votes"].docs[0]

        verifier = ChainVerifier(store)
        assert asyncio.run(verifier.verify_chain()).votes == 2
        result = asyncio.run(verifier.reconcile())
        assert result.orphaned_votes == []
        assert [b.index for b in result.unmatched_blocks] == [0]

    def test_rewritten_vote_shows_both_sides(self, pipeline, store, db):
        self.ingest_choices(pipeline, ["A", "A", "B"])
        db["votes"].docs[2]["choice"] = "A"

        result = asyncio.run(ChainVerifier(store).reconcile())
        assert result.orphaned_votes == [Vote(voter_id="v2", choice="A", ts=2)]
        assert [b.index for b in result.unmatched_blocks] == [2]
