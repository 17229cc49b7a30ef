"""
In-memory stand-in for the slice of the motor collection API the chain store uses.

Every call yields to the event loop once, so concurrent tasks interleave the
way they would against a real server.
"""

import asyncio
import copy

from bson import ObjectId
from pymongo.errors import AutoReconnect, DuplicateKeyError


class FakeInsertOneResult:
    def __init__(self, inserted_id):
        self.inserted_id = inserted_id


class FakeCursor:
    def __init__(self, docs):
        self._docs = list(docs)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._docs:
            await asyncio.sleep(0)
            yield doc

    async def to_list(self, length=None):
        await asyncio.sleep(0)
        return self._docs if length is None else self._docs[:length]


def _project(doc, projection):
    doc = copy.deepcopy(doc)
    if projection and projection.get("_id") is False:
        doc.pop("_id", None)
    return doc


def _sorted(docs, sort):
    for field, direction in reversed(sort or []):
        docs = sorted(docs, key=lambda d: d[field], reverse=direction < 0)
    return docs


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []
        self.unique_fields = set()
        self.failing = set()  # method names that raise AutoReconnect
        self.before_insert = None  # async hook run right before insert_one stores

    def _check(self, op):
        if op in self.failing:
            raise AutoReconnect(f"{self.name}.{op}: connection lost")

    async def create_index(self, keys, unique=False, name=None):
        self._check("create_index")
        if unique:
            self.unique_fields.update(field for field, _ in keys)
        return name

    async def insert_one(self, doc):
        await asyncio.sleep(0)
        self._check("insert_one")
        if self.before_insert is not None:
            await self.before_insert(doc)
        for field in self.unique_fields:
            if any(existing.get(field) == doc.get(field) for existing in self.docs):
                raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} {field}")
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return FakeInsertOneResult(doc["_id"])

    async def find_one(self, filter=None, projection=None, sort=None):
        await asyncio.sleep(0)
        self._check("find_one")
        docs = _sorted(self.docs, sort)
        return _project(docs[0], projection) if docs else None

    def find(self, filter=None, projection=None, sort=None):
        self._check("find")
        return FakeCursor(_project(d, projection) for d in _sorted(self.docs, sort))

    def aggregate(self, pipeline):
        self._check("aggregate")
        # only {"$group": {"_id": "$field", "count": {"$sum": 1}}}
        group = pipeline[0]["$group"]
        field = group["_id"].lstrip("$")
        counts = {}
        for doc in self.docs:
            counts[doc[field]] = counts.get(doc[field], 0) + 1
        return FakeCursor({"_id": key, "count": value} for key, value in counts.items())

    async def count_documents(self, filter):
        await asyncio.sleep(0)
        self._check("count_documents")
        return len(self.docs)


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


async def stored_blocks(store):
    return [block async for block in store.iter_blocks()]
