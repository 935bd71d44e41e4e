"""
Admin shell: decides whether the back-office shows a loading indicator, the
login form or the dashboard, and tracks which dashboard tab is open.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import repository
from auth import AuthSession
from database import DocumentStore
from managers import MANAGERS
from validation import validate_login

TABS = ("stats", "books", "speeches", "blogs", "contacts", "emails", "testimonials", "updates")
DEFAULT_TAB = "stats"

LOADING = "loading"
LOGIN = "login"
DASHBOARD = "dashboard"

RECENT_COUNT = 5


@dataclass
class LoginForm:
    email: str = ""
    password: str = ""
    errors: Dict[str, str] = field(default_factory=dict)


@dataclass
class View:
    kind: str
    active_tab: Optional[str] = None
    user_email: Optional[str] = None
    error: Optional[str] = None
    form: Optional[LoginForm] = None
    content: Any = None


class AdminShell:
    def __init__(self, session: AuthSession, screens: Optional[Callable[[str], Any]] = None):
        self.session = session
        self.screens = screens
        self.active_tab = DEFAULT_TAB
        self.form = LoginForm()

    def render(self) -> View:
        if self.session.loading:
            return View(LOADING)
        if not self.session.is_authenticated:
            return View(LOGIN, error=self.session.error, form=self.form)
        content = self.screens(self.active_tab) if self.screens else None
        return View(
            DASHBOARD,
            active_tab=self.active_tab,
            user_email=self.session.user.email,
            content=content,
        )

    def select_tab(self, tab: str):
        if tab not in TABS:
            raise ValueError(f"Unknown tab: {tab!r}")
        self.active_tab = tab

    def submit_login(self, email: str, password: str) -> bool:
        """Validate locally, then hand the credentials to the session.

        Invalid input never leaves the form. Whatever happens, the password
        field is cleared and the email is kept for another attempt.
        """
        self.session.clear_error()
        self.form.email = email or ""
        self.form.errors = validate_login(email, password)
        self.form.password = ""
        if self.form.errors:
            return False
        return self.session.sign_in(email, password)

    def sign_out(self):
        self.session.sign_out()


def dashboard_stats(store: DocumentStore) -> Dict[str, Any]:
    books = repository.books(store)
    speeches = repository.speeches(store)
    blogs = repository.blogs(store)
    contacts = repository.contact_messages(store)
    for repo in (books, speeches, blogs, contacts):
        repo.refresh()
    return {
        "totals": {
            "books": len(books.data),
            "speeches": len(speeches.data),
            "blogs": len(blogs.data),
            "new_messages": sum(1 for c in contacts.data if c.status == "unread"),
        },
        "recent": {
            "books": books.data[:RECENT_COUNT],
            "speeches": speeches.data[:RECENT_COUNT],
            "blogs": blogs.data[:RECENT_COUNT],
            "contacts": contacts.data[:RECENT_COUNT],
        },
        "errors": [r.error for r in (books, speeches, blogs, contacts) if r.error],
    }


def tab_content(store: DocumentStore, tab: str) -> Dict[str, Any]:
    """What the dashboard shows for one tab, freshly fetched."""
    if tab == "stats":
        return dashboard_stats(store)
    manager_cls = MANAGERS[tab]
    manager = manager_cls(repository.repository_for(store, manager_cls.collection))
    content: Dict[str, Any] = {"items": manager.load(), "error": manager.repo.error}
    if hasattr(manager, "counts"):
        content["counts"] = manager.counts()
    return content
