import asyncio

import pytest

from fakes import FakeDatabase
from votechain.chain import BlockAppender
from votechain.pipeline import VotePipeline
from votechain.storage_mongo import MongoChainStore


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def store(db):
    store = MongoChainStore.from_database(db)
    asyncio.run(store.ensure_indexes())
    return store


@pytest.fixture
def clock():
    return lambda: 1_700_000_000


@pytest.fixture
def appender(store, clock):
    return BlockAppender(store, clock=clock)


@pytest.fixture
def pipeline(store, appender):
    return VotePipeline(store, appender)
