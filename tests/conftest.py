import copy
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import pytest

from auth import AuthService, hash_password
from database import DocumentStore
from errors import NOT_FOUND, StoreError
from schemas import COLL_ADMINS

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "s3cret-pass"


class TickingClock:
    """Each call is one second later than the previous one."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        self.current = self.current + self.step
        return self.current


class MemoryDocumentStore(DocumentStore):
    """In-process DocumentStore double with call tracking and failure injection."""

    def __init__(self, clock=None):
        self.collections = defaultdict(dict)
        self.clock = clock or TickingClock()
        self.calls = []
        self.failures = {}

    def fail(self, op, code, message=""):
        self.failures[op] = StoreError(code, message)

    def _check(self, op, collection):
        self.calls.append((op, collection))
        if op in self.failures:
            raise self.failures.pop(op)

    @staticmethod
    def _out(doc_id, doc):
        out = copy.deepcopy(doc)
        out["id"] = doc_id
        return out

    def _sorted(self, items, field, direction):
        return sorted(
            items,
            key=lambda pair: (pair[1].get(field) is None, pair[1].get(field)),
            reverse=(direction == "desc"),
        )

    def create(self, collection, fields):
        self._check("create", collection)
        now = self.clock()
        doc_id = uuid.uuid4().hex
        doc = copy.deepcopy({k: v for k, v in fields.items() if k != "id"})
        doc.update({"created_at": now, "updated_at": now})
        self.collections[collection][doc_id] = doc
        return doc_id

    def get_by_id(self, collection, doc_id):
        self._check("get_by_id", collection)
        doc = self.collections[collection].get(doc_id)
        return self._out(doc_id, doc) if doc is not None else None

    def get_all(self, collection, order_field="created_at", direction="desc", limit=None):
        self._check("get_all", collection)
        items = self._sorted(self.collections[collection].items(), order_field, direction)
        if limit:
            items = items[:limit]
        return [self._out(i, d) for i, d in items]

    def get_by_status(self, collection, status):
        self._check("get_by_status", collection)
        items = [(i, d) for i, d in self.collections[collection].items() if d.get("status") == status]
        return [self._out(i, d) for i, d in self._sorted(items, "created_at", "desc")]

    def get_by_field(self, collection, field, value):
        self._check("get_by_field", collection)
        return [self._out(i, d) for i, d in self.collections[collection].items() if d.get(field) == value]

    def update(self, collection, doc_id, fields):
        self._check("update", collection)
        doc = self.collections[collection].get(doc_id)
        if doc is None:
            raise StoreError(NOT_FOUND, f"No document with id {doc_id!r}")
        doc.update(copy.deepcopy({k: v for k, v in fields.items() if k not in ("id", "created_at")}))
        doc["updated_at"] = self.clock()

    def delete(self, collection, doc_id):
        self._check("delete", collection)
        if self.collections[collection].pop(doc_id, None) is None:
            raise StoreError(NOT_FOUND, f"No document with id {doc_id!r}")

    def search(self, collection, field, prefix):
        self._check("search", collection)
        return [
            self._out(i, d)
            for i, d in self.collections[collection].items()
            if isinstance(d.get(field), str) and d[field].startswith(prefix)
        ]

    def list_collection_names(self):
        return [name for name, docs in self.collections.items() if docs]

    def network_calls(self, collection=None):
        return [c for c in self.calls if collection is None or c[1] == collection]


@pytest.fixture(scope="session")
def admin_password_hash():
    return hash_password(ADMIN_PASSWORD)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def store(clock):
    return MemoryDocumentStore(clock)


@pytest.fixture
def seeded_store(store, admin_password_hash):
    store.create(COLL_ADMINS, {
        "email": ADMIN_EMAIL,
        "password_hash": admin_password_hash,
        "display_name": "Admin",
    })
    store.calls.clear()
    return store


@pytest.fixture
def auth_service(seeded_store):
    return AuthService(seeded_store, secret="test-secret")


def book_fields(**overrides):
    fields = {
        "title": "X",
        "title_tamil": "Y",
        "cover_image_url": "http://img/1.png",
        "buy_link": "http://buy/1",
        "status": "draft",
    }
    fields.update(overrides)
    return fields


def contact_fields(**overrides):
    fields = {
        "name": "Kavya",
        "email": "kavya@example.com",
        "phone": "",
        "subject": "Event invitation",
        "message": "Would you speak at our college?",
        "status": "unread",
        "replied": False,
    }
    fields.update(overrides)
    return fields
