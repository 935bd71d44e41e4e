"""
Database Schemas for the bilingual (English/Tamil) public site

Each Pydantic model maps to one document collection. Bilingual content is
stored as independent field pairs: `title` / `title_tamil`, `text` /
`text_tamil` and so on. Nothing keeps the two halves of a pair in sync.

Collections:
- books
- speeches
- blogs
- contacts
- updates
- testimonials
- newsletter_subscriptions
- admins (principals for the back-office, never listed publicly)

`id`, `created_at` and `updated_at` are assigned by the store and are never
accepted from callers.
"""
from datetime import datetime
from typing import Optional, List, Literal

from pydantic import BaseModel, Field, EmailStr

COLL_BOOKS = "books"
COLL_SPEECHES = "speeches"
COLL_BLOGS = "blogs"
COLL_CONTACTS = "contacts"
COLL_UPDATES = "updates"
COLL_TESTIMONIALS = "testimonials"
COLL_NEWSLETTER = "newsletter_subscriptions"
COLL_ADMINS = "admins"

SYSTEM_FIELDS = ("id", "created_at", "updated_at")

PUBLICATION_STATUSES = ("draft", "published")
CONTACT_STATUSES = ("unread", "read", "replied")
UPDATE_TYPES = ("announcement", "achievement", "event", "media", "policy")
SUBSCRIPTION_STATUSES = ("active", "unsubscribed")

PublicationStatus = Literal["draft", "published"]


class Entity(BaseModel):
    """Fields every stored document carries"""
    id: Optional[str] = Field(None, description="Opaque id assigned by the store")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Books
class Book(Entity):
    title: str
    title_tamil: str
    cover_image_url: str = Field(..., description="Media CDN URL of the cover")
    buy_link: str = ""
    status: PublicationStatus = "draft"


# Speeches
class Speech(Entity):
    title: str
    title_tamil: str
    video_url: str
    thumbnail_url: str = Field("", description="Explicit upload or derived from the video URL")
    status: PublicationStatus = "draft"


# Blog posts
class BlogPost(Entity):
    title: str
    title_tamil: str
    excerpt: str
    excerpt_tamil: str
    content: str
    content_tamil: str
    featured_image_url: str = ""
    publish_date: str = Field(..., description="Date string as entered by the editor")
    status: PublicationStatus = "draft"
    category: str = ""
    category_tamil: str = ""
    tags: List[str] = []
    reading_time: int = Field(0, description="Estimated minutes")
    slug: str
    views: int = 0
    comments: int = 0


# Contact form messages
class ContactMessage(Entity):
    name: str
    email: EmailStr
    phone: Optional[str] = None
    subject: str
    message: str
    status: Literal["unread", "read", "replied"] = "unread"
    replied: bool = False
    reply_message: Optional[str] = None
    reply_date: Optional[datetime] = None


# Announcement ticker items
class Update(Entity):
    type: Literal["announcement", "achievement", "event", "media", "policy"]
    icon: str = ""
    text: str
    text_tamil: str


class Testimonial(Entity):
    name: str
    designation: str
    photo: str = ""
    content: str


class NewsletterSubscription(Entity):
    email: EmailStr
    status: Literal["active", "unsubscribed"] = "active"
    subscribed_at: Optional[datetime] = None


# Back-office principals (pre-seeded; no signup route)
class Admin(Entity):
    email: EmailStr
    password_hash: str
    display_name: str = "Admin"
