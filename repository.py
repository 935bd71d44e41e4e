"""
Generic repository over one collection of the document store.

A Repository mirrors what a management screen needs: the last loaded list
(`data`), a `loading` flag and a displayable `error` string. Mutations never
raise; they report failure through their return value plus `error`, and on
success re-fetch the whole collection so `data` reflects the write before the
call returns.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from database import DocumentStore
from errors import error_code, normalize_error
from schemas import (
    COLL_BLOGS,
    COLL_BOOKS,
    COLL_CONTACTS,
    COLL_NEWSLETTER,
    COLL_SPEECHES,
    COLL_TESTIMONIALS,
    COLL_UPDATES,
    SYSTEM_FIELDS,
    BlogPost,
    Book,
    ContactMessage,
    NewsletterSubscription,
    Speech,
    Testimonial,
    Update,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

Fields = Union[Dict[str, Any], BaseModel]

TIMESTAMP_FIELDS = ("created_at", "updated_at", "reply_date", "subscribed_at")


class RepositoryError(Exception):
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


def to_timestamp(value: Any) -> Any:
    """Coerce a stored timestamp into an aware UTC datetime."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def writable_fields(fields: Fields, partial: bool = False) -> Dict[str, Any]:
    if isinstance(fields, BaseModel):
        data = fields.model_dump(exclude_unset=partial)
    else:
        data = dict(fields)
    return {k: v for k, v in data.items() if k not in SYSTEM_FIELDS}


class Repository(Generic[T]):
    def __init__(self, store: DocumentStore, collection: str, model: Type[T]):
        self.store = store
        self.collection = collection
        self.model = model
        self.data: List[T] = []
        self.loading = False
        self.error: Optional[str] = None
        self.error_code: Optional[str] = None

    # State helpers

    def _begin(self):
        self.loading = True
        self.clear_error()

    def _fail(self, exc: Exception, action: str):
        logger.error("Error %s %s: %s", action, self.collection, exc)
        self.error = normalize_error(exc)
        self.error_code = error_code(exc)

    def _entity(self, doc: Dict[str, Any]) -> T:
        doc = dict(doc)
        for key in TIMESTAMP_FIELDS:
            if doc.get(key) is not None:
                doc[key] = to_timestamp(doc[key])
        return self.model.model_validate(doc)

    def _query(self, action: str, fetch) -> List[T]:
        self._begin()
        try:
            return [self._entity(d) for d in fetch()]
        except Exception as e:
            self._fail(e, action)
            raise RepositoryError(self.error, self.error_code) from e
        finally:
            self.loading = False

    # Reads

    def list(self, order_by: str = "created_at", direction: str = "desc", limit: Optional[int] = None) -> List[T]:
        """Fetch the whole collection, newest first unless told otherwise.

        Replaces `data` on success. On failure `data` keeps what it held, the
        error is recorded and RepositoryError is raised.
        """
        items = self._query(
            "listing",
            lambda: self.store.get_all(self.collection, order_by, direction, limit),
        )
        self.data = items
        return items

    def refresh(self) -> bool:
        try:
            self.list()
        except RepositoryError:
            return False
        return True

    def by_status(self, status: str) -> List[T]:
        return self._query("filtering", lambda: self.store.get_by_status(self.collection, status))

    def by_field(self, field: str, value: Any) -> List[T]:
        return self._query("filtering", lambda: self.store.get_by_field(self.collection, field, value))

    def search(self, field: str, prefix: str) -> List[T]:
        return self._query("searching", lambda: self.store.search(self.collection, field, prefix))

    def get_by_id(self, doc_id: str) -> Optional[T]:
        self._begin()
        try:
            doc = self.store.get_by_id(self.collection, doc_id)
            return self._entity(doc) if doc is not None else None
        except Exception as e:
            self._fail(e, "getting")
            return None
        finally:
            self.loading = False

    # Mutations

    def create(self, fields: Fields) -> Optional[str]:
        self._begin()
        try:
            doc_id = self.store.create(self.collection, writable_fields(fields))
        except Exception as e:
            self._fail(e, "creating in")
            return None
        finally:
            self.loading = False
        logger.info("Created %s/%s", self.collection, doc_id)
        self.refresh()
        return doc_id

    def update(self, doc_id: str, fields: Fields) -> bool:
        self._begin()
        try:
            self.store.update(self.collection, doc_id, writable_fields(fields, partial=True))
        except Exception as e:
            self._fail(e, "updating")
            return False
        finally:
            self.loading = False
        logger.info("Updated %s/%s", self.collection, doc_id)
        self.refresh()
        return True

    def delete(self, doc_id: str) -> bool:
        self._begin()
        try:
            self.store.delete(self.collection, doc_id)
        except Exception as e:
            self._fail(e, "deleting from")
            return False
        finally:
            self.loading = False
        logger.info("Deleted %s/%s", self.collection, doc_id)
        self.refresh()
        return True

    def clear_error(self):
        self.error = None
        self.error_code = None


# Per-collection repositories

MODELS = {
    COLL_BOOKS: Book,
    COLL_SPEECHES: Speech,
    COLL_BLOGS: BlogPost,
    COLL_CONTACTS: ContactMessage,
    COLL_UPDATES: Update,
    COLL_TESTIMONIALS: Testimonial,
    COLL_NEWSLETTER: NewsletterSubscription,
}


def repository_for(store: DocumentStore, collection: str) -> Repository:
    return Repository(store, collection, MODELS[collection])


def books(store: DocumentStore) -> Repository[Book]:
    return Repository(store, COLL_BOOKS, Book)


def speeches(store: DocumentStore) -> Repository[Speech]:
    return Repository(store, COLL_SPEECHES, Speech)


def blogs(store: DocumentStore) -> Repository[BlogPost]:
    return Repository(store, COLL_BLOGS, BlogPost)


def contact_messages(store: DocumentStore) -> Repository[ContactMessage]:
    return Repository(store, COLL_CONTACTS, ContactMessage)


def updates(store: DocumentStore) -> Repository[Update]:
    return Repository(store, COLL_UPDATES, Update)


def testimonials(store: DocumentStore) -> Repository[Testimonial]:
    return Repository(store, COLL_TESTIMONIALS, Testimonial)


def newsletter_subscriptions(store: DocumentStore) -> Repository[NewsletterSubscription]:
    return Repository(store, COLL_NEWSLETTER, NewsletterSubscription)
