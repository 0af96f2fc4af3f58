"""
pytest configuration and shared fixtures

Provides an in-memory stand-in for the Motor collection API used by the
repository and identity manager, including change streams.
"""
import asyncio
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from bson import ObjectId

from commissionguard.config import Settings
from commissionguard.db import Database


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    async def to_list(self, length=None):
        return list(self.docs)


class FakeChangeStream:
    def __init__(self, collection):
        self.collection = collection
        self.queue = asyncio.Queue()

    async def __aenter__(self):
        if self.collection.fail_watch:
            raise RuntimeError("change streams unavailable")
        self.collection.streams.append(self)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self in self.collection.streams:
            self.collection.streams.remove(self)

    def __aiter__(self):
        return self

    async def __anext__(self):
        change = await self.queue.get()
        if change is None:
            raise StopAsyncIteration
        return change


def _matches(doc, query):
    return all(doc.get(key) == value for key, value in query.items())


class FakeCollection:
    def __init__(self):
        self.docs = {}
        self.streams = []
        self.fail = False
        self.fail_watch = False
        self.find_calls = 0
        self._clock = datetime(2025, 1, 1, 9, 0)

    def now(self):
        self._clock += timedelta(seconds=1)
        return self._clock

    def _check(self):
        if self.fail:
            raise RuntimeError("document store unavailable")

    def _broadcast(self, operation, doc_id):
        for stream in list(self.streams):
            stream.queue.put_nowait({"operationType": operation, "documentKey": {"_id": doc_id}})

    def watch(self, *args, **kwargs):
        return FakeChangeStream(self)

    def find(self, query=None):
        self._check()
        self.find_calls += 1
        query = query or {}
        return FakeCursor([dict(d) for d in self.docs.values() if _matches(d, query)])

    async def find_one(self, query):
        self._check()
        for doc in self.docs.values():
            if _matches(doc, query):
                return dict(doc)
        return None

    async def insert_one(self, doc):
        self._check()
        doc = dict(doc)
        doc.setdefault("_id", ObjectId())
        self.docs[doc["_id"]] = doc
        self._broadcast("insert", doc["_id"])
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query, update, upsert=False):
        self._check()
        target = next((d for d in self.docs.values() if _matches(d, query)), None)
        upserted_id = None
        if target is None:
            if not upsert:
                return SimpleNamespace(matched_count=0, upserted_id=None)
            target = dict(query)
            target.update(update.get("$setOnInsert", {}))
            self.docs[target["_id"]] = target
            upserted_id = target["_id"]
        target.update(update.get("$set", {}))
        for field in update.get("$currentDate", {}):
            target[field] = self.now()
        self._broadcast("insert" if upserted_id else "update", target["_id"])
        return SimpleNamespace(matched_count=0 if upserted_id else 1, upserted_id=upserted_id)

    async def delete_one(self, query):
        self._check()
        for doc_id, doc in list(self.docs.items()):
            if _matches(doc, query):
                del self.docs[doc_id]
                self._broadcast("delete", doc_id)
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())


class FakeMotorClient:
    def __init__(self):
        self.databases = {}
        self.closed = False

    def __getitem__(self, name):
        return self.databases.setdefault(name, FakeDatabase())

    def close(self):
        self.closed = True


async def wait_for(predicate, timeout=2.0):
    """Poll ``predicate`` until it is true, yielding to the event loop."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def settings():
    return Settings(mongodb_uri="mongodb://test", app_id="test-app", jwt_secret="test-secret")


@pytest.fixture
def database(settings):
    return Database(settings, client=FakeMotorClient())


@pytest.fixture
def tickets_collection(database):
    return database.tickets


@pytest.fixture
def users_collection(database):
    return database.users
