import asyncio
import copy
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import InvalidOperation, PyMongoError

import main
from database import ConnectionManager
from mongo_api import LocalMongoApi
from repositories import BlogRepository, ContactRepository

_MISSING = object()


def _matches(doc, query):
    for key, cond in (query or {}).items():
        value = doc.get(key, _MISSING)
        if isinstance(cond, dict) and cond and all(op.startswith("$") for op in cond):
            for op, arg in cond.items():
                if op == "$ne" and value == arg:
                    return False
                if op == "$in" and value not in arg:
                    return False
        elif value is _MISSING or value != cond:
            return False
    return True


def _project(doc, projection):
    if not projection:
        return doc
    keep = {key for key, flag in projection.items() if flag}
    return {key: value for key, value in doc.items() if key == "_id" or key in keep}


class FakeWriteResult:
    """Like pymongo write results: counts raise on an unacknowledged write."""

    def __init__(self, acknowledged, **counts):
        self.acknowledged = acknowledged
        self._counts = counts

    def __getattr__(self, name):
        if name.startswith("_") or name not in self._counts:
            raise AttributeError(name)
        if not self.acknowledged:
            raise InvalidOperation(f"Cannot read {name} on an unacknowledged write")
        return self._counts[name]


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    """Just enough of AsyncCollection for the dispatcher."""

    def __init__(self, server):
        self.server = server
        self.docs = []

    def _check(self):
        self.server.operations += 1
        if self.server.fail_ops:
            raise PyMongoError(self.server.fail_ops)

    def _select(self, query, sort=None, skip=None, limit=None):
        docs = [doc for doc in self.docs if _matches(doc, query)]
        for key, direction in reversed(sort or []):
            docs.sort(key=lambda doc: doc.get(key) or "", reverse=direction < 0)
        if skip:
            docs = docs[skip:]
        if limit:
            docs = docs[:limit]
        return docs

    def find(self, query=None, projection=None, sort=None, skip=None, limit=None):
        self._check()
        docs = self._select(query, sort, skip, limit)
        return FakeCursor([_project(copy.deepcopy(doc), projection) for doc in docs])

    async def find_one(self, query=None, projection=None, sort=None):
        self._check()
        docs = self._select(query, sort)
        return _project(copy.deepcopy(docs[0]), projection) if docs else None

    async def insert_one(self, doc):
        self._check()
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(acknowledged=True, inserted_id=doc["_id"])

    async def update_one(self, query, update, upsert=False):
        self._check()
        docs = self._select(query)
        acked = self.server.acknowledge_writes
        if not docs:
            return FakeWriteResult(acked, matched_count=0, modified_count=0, upserted_id=None)
        target = docs[0]
        changes = {key: value for key, value in update["$set"].items() if target.get(key, _MISSING) != value}
        target.update(changes)
        return FakeWriteResult(acked, matched_count=1, modified_count=1 if changes else 0, upserted_id=None)

    async def delete_one(self, query):
        self._check()
        docs = self._select(query)
        if docs:
            self.docs.remove(docs[0])
        return FakeWriteResult(self.server.acknowledge_writes, deleted_count=len(docs[:1]))

    async def count_documents(self, query, limit=None, skip=None):
        self._check()
        return len(self._select(query, skip=skip, limit=limit))


class FakeDatabase:
    def __init__(self, server, name):
        self.server = server
        self.name = name
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(self.server)
        return self.collections[name]

    async def list_collection_names(self):
        return list(self.collections)


class FakeClient:
    def __init__(self, server, uri, options):
        self.server = server
        self.uri = uri
        self.options = options
        self.closed = False
        self.admin = SimpleNamespace(command=self._command)

    async def _command(self, name):
        # let concurrent callers pile up on the same attempt
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        if self.server.fail_connects > 0:
            self.server.fail_connects -= 1
            raise PyMongoError("connection refused")
        return {"ok": 1}

    def __getitem__(self, name):
        return self.server.database(name)

    async def close(self):
        self.closed = True


class FakeServer:
    """Stands in for a MongoDB deployment; data survives reconnects."""

    def __init__(self):
        self.databases = {}
        self.clients = []
        self.fail_connects = 0
        self.fail_ops = None
        self.acknowledge_writes = True
        self.operations = 0

    @property
    def connects(self):
        return len(self.clients)

    def connect(self, uri, **options):
        client = FakeClient(self, uri, options)
        self.clients.append(client)
        return client

    def database(self, name):
        if name not in self.databases:
            self.databases[name] = FakeDatabase(self, name)
        return self.databases[name]


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def manager(server):
    return ConnectionManager("mongodb://fake-host", "testdb", client_factory=server.connect)


@pytest.fixture
def api(manager):
    return LocalMongoApi(manager)


@pytest.fixture
def blogs(api):
    return BlogRepository(api)


@pytest.fixture
def contacts(api):
    return ContactRepository(api)


@pytest.fixture
def client(manager, monkeypatch):
    monkeypatch.delenv("MONGODB_API_URL", raising=False)
    main.app.dependency_overrides[main.get_connection_manager] = lambda: manager
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()