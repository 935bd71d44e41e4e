"""
Document store access

`DocumentStore` is the collection-based CRUD surface the rest of the app talks
to. `MongoDocumentStore` implements it on top of pymongo. The module-level `db`
and `store` are None when DATABASE_URL / DATABASE_NAME are not configured.
"""
import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from errors import (
    ALREADY_EXISTS,
    NOT_FOUND,
    PERMISSION_DENIED,
    UNAVAILABLE,
    StoreError,
)

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Mongo error code for "not authorized on <db> to execute command"
UNAUTHORIZED_CODE = 13

PREFIX_SENTINEL = "\uf8ff"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore(ABC):
    """Collection-based CRUD over a remote document database.

    Documents go in and come out as plain dicts; outgoing dicts carry the
    store-assigned `id` as a string. Failures raise StoreError.
    """

    @abstractmethod
    def create(self, collection: str, fields: Dict[str, Any]) -> str:
        """Insert a document, stamping `created_at` == `updated_at`; return its id."""

    @abstractmethod
    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_all(
        self,
        collection: str,
        order_field: str = "created_at",
        direction: str = "desc",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_by_status(self, collection: str, status: str) -> List[Dict[str, Any]]:
        """Documents whose `status` equals the given value, newest first."""

    @abstractmethod
    def get_by_field(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into an existing document and refresh `updated_at`."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        ...

    @abstractmethod
    def search(self, collection: str, field: str, prefix: str) -> List[Dict[str, Any]]:
        """Prefix match on a string field via a lexicographic range query."""

    def list_collection_names(self) -> List[str]:
        return []


class MongoDocumentStore(DocumentStore):
    def __init__(self, database, clock: Callable[[], datetime] = _now):
        self.db = database
        self.clock = clock

    @contextmanager
    def _translate(self, collection: str, action: str):
        try:
            yield
        except StoreError:
            raise
        except DuplicateKeyError as e:
            logger.error("Error %s document in %s: %s", action, collection, e)
            raise StoreError(ALREADY_EXISTS, str(e))
        except (ServerSelectionTimeoutError, ConnectionFailure) as e:
            logger.error("Error %s document in %s: %s", action, collection, e)
            raise StoreError(UNAVAILABLE, str(e))
        except OperationFailure as e:
            logger.error("Error %s document in %s: %s", action, collection, e)
            if e.code == UNAUTHORIZED_CODE:
                raise StoreError(PERMISSION_DENIED, str(e))
            raise StoreError("unknown", str(e))
        except PyMongoError as e:
            logger.error("Error %s document in %s: %s", action, collection, e)
            raise StoreError("unknown", str(e))

    @staticmethod
    def _oid(doc_id: str) -> ObjectId:
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            raise StoreError(NOT_FOUND, f"No document with id {doc_id!r}")

    @staticmethod
    def _out(doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    def create(self, collection, fields):
        now = self.clock()
        doc = {**fields, "created_at": now, "updated_at": now}
        doc.pop("id", None)
        with self._translate(collection, "creating"):
            inserted_id = self.db[collection].insert_one(doc).inserted_id
        return str(inserted_id)

    def get_by_id(self, collection, doc_id):
        try:
            oid = ObjectId(doc_id)
        except (InvalidId, TypeError):
            return None
        with self._translate(collection, "getting"):
            doc = self.db[collection].find_one({"_id": oid})
        return self._out(doc) if doc else None

    def get_all(self, collection, order_field="created_at", direction="desc", limit=None):
        order = DESCENDING if direction == "desc" else ASCENDING
        with self._translate(collection, "listing"):
            cursor = self.db[collection].find({}).sort(order_field, order)
            if limit:
                cursor = cursor.limit(limit)
            return [self._out(d) for d in cursor]

    def get_by_status(self, collection, status):
        with self._translate(collection, "filtering"):
            cursor = self.db[collection].find({"status": status}).sort("created_at", DESCENDING)
            return [self._out(d) for d in cursor]

    def get_by_field(self, collection, field, value):
        with self._translate(collection, "filtering"):
            return [self._out(d) for d in self.db[collection].find({field: value})]

    def update(self, collection, doc_id, fields):
        changes = {k: v for k, v in fields.items() if k not in ("id", "_id", "created_at")}
        changes["updated_at"] = self.clock()
        oid = self._oid(doc_id)
        with self._translate(collection, "updating"):
            res = self.db[collection].update_one({"_id": oid}, {"$set": changes})
        if res.matched_count == 0:
            raise StoreError(NOT_FOUND, f"No document with id {doc_id!r}")

    def delete(self, collection, doc_id):
        oid = self._oid(doc_id)
        with self._translate(collection, "deleting"):
            res = self.db[collection].delete_one({"_id": oid})
        if res.deleted_count == 0:
            raise StoreError(NOT_FOUND, f"No document with id {doc_id!r}")

    def search(self, collection, field, prefix):
        query = {field: {"$gte": prefix, "$lte": prefix + PREFIX_SENTINEL}}
        with self._translate(collection, "searching"):
            return [self._out(d) for d in self.db[collection].find(query)]

    def list_collection_names(self):
        with self._translate("*", "listing collections of"):
            return self.db.list_collection_names()


def _connect():
    if not (DATABASE_URL and DATABASE_NAME):
        return None
    client = MongoClient(DATABASE_URL, tz_aware=True, serverSelectionTimeoutMS=5000)
    return client[DATABASE_NAME]


db = _connect()
store: Optional[DocumentStore] = MongoDocumentStore(db) if db is not None else None
