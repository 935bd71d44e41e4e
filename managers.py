"""
Management screens for the admin dashboard, one controller per tab.

A controller validates the form first and only then calls its repository, so
a form with a missing field never reaches the store. Every action returns an
Outcome carrying the toast text the screen should show.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from errors import MESSAGES, NOT_FOUND
from repository import Repository, writable_fields
from schemas import (
    COLL_BLOGS,
    COLL_BOOKS,
    COLL_CONTACTS,
    COLL_NEWSLETTER,
    COLL_SPEECHES,
    COLL_TESTIMONIALS,
    COLL_UPDATES,
    CONTACT_STATUSES,
    SUBSCRIPTION_STATUSES,
)
from validation import validate_email, validate_entity

YOUTUBE_RE = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")

UPDATE_ICONS = {
    "announcement": "Megaphone",
    "achievement": "Award",
    "event": "Calendar",
    "media": "Tv",
    "policy": "FileText",
}

CONTACT_FORM_MESSAGES = {
    "en": {
        "success": "Thank you for your message! We will get back to you soon.",
        "error": "Failed to send message. Please try again.",
    },
    "ta": {
        "success": "உங்கள் செய்திக்கு நன்றி! நாங்கள் விரைவில் உங்களைத் தொடர்பு கொள்வோம்.",
        "error": "செய்தி அனுப்ப முடியவில்லை. மீண்டும் முயற்சிக்கவும்.",
    },
}

NEWSLETTER_MESSAGES = {
    "en": {
        "success": "Successfully subscribed to newsletter!",
        "error": "Failed to subscribe. Please try again.",
    },
    "ta": {
        "success": "செய்திமடலுக்கு வெற்றிகரமாக சந்தா செலுத்தப்பட்டது!",
        "error": "சந்தா செலுத்த முடியவில்லை. மீண்டும் முயற்சிக்கவும்.",
    },
}


@dataclass
class Outcome:
    ok: bool
    message: str = ""
    id: Optional[str] = None
    errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    code: Optional[str] = None


def youtube_thumbnail(video_url: str) -> Optional[str]:
    match = YOUTUBE_RE.match(video_url or "")
    if match and len(match.group(2)) == 11:
        return f"https://img.youtube.com/vi/{match.group(2)}/maxresdefault.jpg"
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def field_errors(exc: ValidationError) -> Dict[str, str]:
    return {str(err["loc"][0]) if err["loc"] else "__all__": err["msg"] for err in exc.errors()}


class Manager:
    collection = ""
    label = "Item"

    def __init__(self, repo: Repository):
        self.repo = repo

    @property
    def items(self) -> List[Any]:
        return self.repo.data

    def load(self) -> List[Any]:
        self.repo.refresh()
        return self.repo.data

    def prepare(self, fields: Dict[str, Any], editing_id: Optional[str]) -> Dict[str, Any]:
        return fields

    def _complete(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        # fill model defaults and coerce types for a brand-new document
        entity = self.repo.model.model_validate(fields)
        return writable_fields(entity)

    def _changes(self, current: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        # validated as a whole document; only model fields are written back
        entity = self.repo.model.model_validate({**writable_fields(current), **fields})
        return {k: getattr(entity, k) for k in fields if k in self.repo.model.model_fields}

    def _failed(self, verb: str, error: Optional[str] = None, code: Optional[str] = None) -> Outcome:
        return Outcome(
            False,
            f"Failed to {verb} {self.label.lower()}. Please try again.",
            error=error or self.repo.error,
            code=code or self.repo.error_code,
        )

    def submit(self, form: Dict[str, Any], editing_id: Optional[str] = None) -> Outcome:
        fields = self.prepare(writable_fields(form), editing_id)
        errors = validate_entity(self.collection, fields, partial=editing_id is not None)
        if errors:
            return Outcome(False, "Please correct the highlighted fields.", errors=errors)

        if editing_id is not None:
            current = self.repo.get_by_id(editing_id)
            if current is None:
                if self.repo.error:
                    return self._failed("save")
                return self._failed("save", MESSAGES[NOT_FOUND], NOT_FOUND)
            try:
                changes = self._changes(current, fields)
            except ValidationError as e:
                return Outcome(False, "Please correct the highlighted fields.", errors=field_errors(e))
            if not self.repo.update(editing_id, changes):
                return self._failed("save")
            return Outcome(True, f"{self.label} updated successfully!", id=editing_id)

        try:
            fields = self._complete(fields)
        except ValidationError as e:
            return Outcome(False, "Please correct the highlighted fields.", errors=field_errors(e))
        doc_id = self.repo.create(fields)
        if doc_id is None:
            return self._failed("save")
        return Outcome(True, f"{self.label} added successfully!", id=doc_id)

    def remove(self, doc_id: str) -> Outcome:
        if not self.repo.delete(doc_id):
            return self._failed("delete")
        return Outcome(True, f"{self.label} deleted successfully!", id=doc_id)


class BookManager(Manager):
    collection = COLL_BOOKS
    label = "Book"


class SpeechManager(Manager):
    collection = COLL_SPEECHES
    label = "Speech"

    def prepare(self, fields, editing_id):
        if not fields.get("thumbnail_url") and fields.get("video_url"):
            fields["thumbnail_url"] = youtube_thumbnail(fields["video_url"]) or ""
        return fields


class BlogManager(Manager):
    collection = COLL_BLOGS
    label = "Blog post"

    def prepare(self, fields, editing_id):
        tags = fields.get("tags")
        if isinstance(tags, str):
            fields["tags"] = [t.strip() for t in tags.split(",") if t.strip()]
        return fields


class UpdatesManager(Manager):
    collection = COLL_UPDATES
    label = "Update"

    def prepare(self, fields, editing_id):
        if not fields.get("icon") and fields.get("type") in UPDATE_ICONS:
            fields["icon"] = UPDATE_ICONS[fields["type"]]
        return fields


class TestimonialManager(Manager):
    collection = COLL_TESTIMONIALS
    label = "Testimonial"


class ContactManager(Manager):
    collection = COLL_CONTACTS
    label = "Message"

    def filter(self, status: Optional[str] = None) -> List[Any]:
        if not status or status == "all":
            return list(self.repo.data)
        return [c for c in self.repo.data if c.status == status]

    def counts(self) -> Dict[str, int]:
        data = self.repo.data
        return {
            "total": len(data),
            "unread": sum(1 for c in data if c.status == "unread"),
            "replied": sum(1 for c in data if c.replied),
        }

    def set_status(self, doc_id: str, status: str) -> Outcome:
        if status not in CONTACT_STATUSES:
            return Outcome(False, "Invalid status", errors={"status": f"Invalid status: {status!r}"})
        if not self.repo.update(doc_id, {"status": status}):
            return self._failed("update")
        return Outcome(True, "Message status updated successfully!", id=doc_id)

    def reply(self, doc_id: str, reply_message: str) -> Outcome:
        if not (reply_message or "").strip():
            return Outcome(False, "Reply message is required", errors={"reply_message": "Reply message is required"})
        changes = {
            "status": "replied",
            "replied": True,
            "reply_message": reply_message,
            "reply_date": _now(),
        }
        if not self.repo.update(doc_id, changes):
            return self._failed("send reply for")
        return Outcome(True, "Reply sent successfully!", id=doc_id)


class EmailManager(Manager):
    collection = COLL_NEWSLETTER
    label = "Subscriber"

    def counts(self) -> Dict[str, int]:
        data = self.repo.data
        return {
            "total": len(data),
            "active": sum(1 for s in data if s.status == "active"),
            "unsubscribed": sum(1 for s in data if s.status == "unsubscribed"),
        }

    def set_status(self, doc_id: str, status: str) -> Outcome:
        if status not in SUBSCRIPTION_STATUSES:
            return Outcome(False, "Invalid status", errors={"status": f"Invalid status: {status!r}"})
        if not self.repo.update(doc_id, {"status": status}):
            return self._failed("update")
        return Outcome(True, "Subscription updated successfully!", id=doc_id)


MANAGERS = {
    "books": BookManager,
    "speeches": SpeechManager,
    "blogs": BlogManager,
    "contacts": ContactManager,
    "emails": EmailManager,
    "testimonials": TestimonialManager,
    "updates": UpdatesManager,
}


# Public forms

def submit_contact(repo: Repository, form: Dict[str, Any], lang: str = "en") -> Outcome:
    texts = CONTACT_FORM_MESSAGES.get(lang, CONTACT_FORM_MESSAGES["en"])
    fields = {
        "name": form.get("name"),
        "email": form.get("email"),
        "phone": form.get("phone") or "",
        "subject": form.get("subject"),
        "message": form.get("message"),
        "status": "unread",
        "replied": False,
    }
    errors = validate_entity(COLL_CONTACTS, fields)
    if not errors:
        try:
            fields = writable_fields(repo.model.model_validate(fields))
        except ValidationError as e:
            errors = field_errors(e)
    if errors:
        return Outcome(False, texts["error"], errors=errors)
    doc_id = repo.create(fields)
    if doc_id is None:
        return Outcome(False, texts["error"], error=repo.error, code=repo.error_code)
    return Outcome(True, texts["success"], id=doc_id)


def subscribe(repo: Repository, email: str, lang: str = "en") -> Outcome:
    texts = NEWSLETTER_MESSAGES.get(lang, NEWSLETTER_MESSAGES["en"])
    email = (email or "").strip()
    problem = validate_email(email)
    if problem:
        return Outcome(False, texts["error"], errors={"email": problem})
    try:
        entity = repo.model.model_validate({"email": email, "status": "active", "subscribed_at": _now()})
    except ValidationError as e:
        return Outcome(False, texts["error"], errors=field_errors(e))
    doc_id = repo.create(entity)
    if doc_id is None:
        return Outcome(False, texts["error"], error=repo.error, code=repo.error_code)
    return Outcome(True, texts["success"], id=doc_id)
