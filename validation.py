"""
Form checks that run before anything touches the network.

Every validator returns a dict of field name -> message; an empty dict means
the form may be submitted.
"""
import re
from typing import Any, Dict, Optional

from schemas import (
    COLL_BLOGS,
    COLL_BOOKS,
    COLL_CONTACTS,
    COLL_NEWSLETTER,
    COLL_SPEECHES,
    COLL_TESTIMONIALS,
    COLL_UPDATES,
    CONTACT_STATUSES,
    PUBLICATION_STATUSES,
    SUBSCRIPTION_STATUSES,
    UPDATE_TYPES,
)

EMAIL_RE = re.compile(r"^\S+@\S+$", re.IGNORECASE)
MIN_PASSWORD_LENGTH = 6

MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_VIDEO_BYTES = 100 * 1024 * 1024

REQUIRED_FIELDS = {
    COLL_BOOKS: {
        "title": "Title is required",
        "title_tamil": "Tamil title is required",
        "cover_image_url": "Please upload a cover image",
    },
    COLL_SPEECHES: {
        "title": "Title is required",
        "title_tamil": "Tamil title is required",
        "video_url": "Video URL is required",
    },
    COLL_BLOGS: {
        "title": "Title is required",
        "title_tamil": "Tamil title is required",
        "slug": "Slug is required",
        "publish_date": "Publish date is required",
        "excerpt": "Excerpt is required",
        "excerpt_tamil": "Tamil excerpt is required",
        "content": "Content is required",
        "content_tamil": "Tamil content is required",
        "reading_time": "Reading time is required",
    },
    COLL_UPDATES: {
        "type": "Type is required",
        "text": "English text is required",
        "text_tamil": "Tamil text is required",
    },
    COLL_TESTIMONIALS: {
        "name": "Name is required",
        "designation": "Designation is required",
        "content": "Content is required",
    },
    COLL_CONTACTS: {
        "name": "Name is required",
        "email": "Email is required",
        "subject": "Subject is required",
        "message": "Message is required",
    },
    COLL_NEWSLETTER: {
        "email": "Email is required",
    },
}

ENUM_FIELDS = {
    COLL_BOOKS: {"status": PUBLICATION_STATUSES},
    COLL_SPEECHES: {"status": PUBLICATION_STATUSES},
    COLL_BLOGS: {"status": PUBLICATION_STATUSES},
    COLL_CONTACTS: {"status": CONTACT_STATUSES},
    COLL_UPDATES: {"type": UPDATE_TYPES},
    COLL_NEWSLETTER: {"status": SUBSCRIPTION_STATUSES},
}


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def validate_email(value: Any) -> Optional[str]:
    if is_blank(value):
        return "Email is required"
    if not EMAIL_RE.match(str(value)):
        return "Invalid email address"
    return None


def validate_login(email: Any, password: Any) -> Dict[str, str]:
    errors = {}
    email_error = validate_email(email)
    if email_error:
        errors["email"] = email_error
    if is_blank(password):
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return errors


def validate_entity(collection: str, fields: Dict[str, Any], partial: bool = False) -> Dict[str, str]:
    """Presence, enum and email checks for one entity form.

    With `partial`, only the fields actually present are checked, which is
    what an edit that touches a subset of fields needs.
    """
    errors: Dict[str, str] = {}
    for name, message in REQUIRED_FIELDS.get(collection, {}).items():
        if partial and name not in fields:
            continue
        if is_blank(fields.get(name)):
            errors[name] = message
    for name, allowed in ENUM_FIELDS.get(collection, {}).items():
        if name in fields and name not in errors and fields[name] not in allowed:
            errors[name] = f"Invalid {name}: {fields[name]!r}"
    if "email" in fields and "email" not in errors:
        email_error = validate_email(fields["email"])
        if email_error:
            errors["email"] = email_error
    return errors


def validate_upload(content_type: Optional[str], size: int, kind: str = "image") -> Optional[str]:
    if kind == "video":
        if not (content_type or "").startswith("video/"):
            return "Please select a valid video file"
        if size > MAX_VIDEO_BYTES:
            return "Video file size must be less than 100MB"
        return None
    if not (content_type or "").startswith("image/"):
        return "Please select a valid image file"
    if size > MAX_IMAGE_BYTES:
        return "Image file size must be less than 10MB"
    return None
