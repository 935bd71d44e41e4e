import os
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException, Depends, Request, Query, Body, File, Form, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr

import database
from admin_shell import AdminShell, LOGIN, TABS, tab_content
from auth import AuthService, AuthSession, Principal
from errors import (
    ALREADY_EXISTS,
    NOT_FOUND,
    PERMISSION_DENIED,
    UNAVAILABLE,
    AuthError,
)
from managers import MANAGERS, ContactManager, EmailManager, Outcome, submit_contact, subscribe
from media import CloudinaryClient, MediaFile, MediaUploader
from preferences import LANGUAGE_KEY, THEME_KEY, localize, preferences
from repository import RepositoryError, repository_for
from schemas import (
    COLL_ADMINS,
    COLL_BLOGS,
    COLL_BOOKS,
    COLL_CONTACTS,
    COLL_NEWSLETTER,
    COLL_SPEECHES,
    COLL_TESTIMONIALS,
    COLL_UPDATES,
)

logger = logging.getLogger(__name__)

# App and CORS
app = FastAPI(title="Jawahirullah Site API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

STATUS_BY_CODE = {
    PERMISSION_DENIED: 403,
    NOT_FOUND: 404,
    ALREADY_EXISTS: 409,
    UNAVAILABLE: 503,
}

# Tabs managed through the generic CRUD routes
CRUD_TABS = ("books", "speeches", "blogs", "testimonials", "updates", "emails")


# Helpers
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginPayload(BaseModel):
    email: str = ""
    password: str = ""


class ContactPayload(BaseModel):
    name: str = ""
    email: EmailStr
    phone: Optional[str] = None
    subject: str = ""
    message: str = ""


class NewsletterPayload(BaseModel):
    email: EmailStr


class StatusPayload(BaseModel):
    status: str


class ReplyPayload(BaseModel):
    reply_message: str


class PreferencesPayload(BaseModel):
    language: Optional[str] = None
    theme: Optional[str] = None


# Rate limiting (simple in-memory per-IP, for auth endpoints)
RATE_LIMIT_WINDOW = 60  # seconds
RATE_LIMIT_MAX = 10
_rate_counters = {}


def rate_limit(request: Request):
    ip = request.client.host if request.client else "unknown"
    now = datetime.now(timezone.utc).timestamp()
    window = int(now // RATE_LIMIT_WINDOW)
    key = f"{ip}:{window}"
    if key not in _rate_counters:
        for stale in [k for k in _rate_counters if not k.endswith(f":{window}")]:
            del _rate_counters[stale]
    count = _rate_counters.get(key, 0)
    if count >= RATE_LIMIT_MAX:
        raise HTTPException(status_code=429, detail="Too many requests. Try again later.")
    _rate_counters[key] = count + 1


# Dependencies

def get_store():
    if database.store is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return database.store


def get_optional_store():
    return database.store


def get_auth_service(store=Depends(get_store)) -> AuthService:
    return AuthService(store)


def get_media_client() -> CloudinaryClient:
    return CloudinaryClient()


def _bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1]


def _restore_admin(service: AuthService, token: str) -> Principal:
    """Resume the token's session, as long as its admin still exists."""
    principal = service.restore(token)
    if service.store.get_by_id(COLL_ADMINS, principal.uid) is None:
        service.sign_out()
        raise AuthError("user-not-found", "User not found")
    return principal


async def require_admin(request: Request, service: AuthService = Depends(get_auth_service)) -> Principal:
    token = _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return _restore_admin(service, token)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=e.message)


def _lang(lang: Optional[str]) -> str:
    return lang if lang in ("en", "ta") else preferences.get(LANGUAGE_KEY)


def _raise_for(outcome: Outcome):
    if outcome.errors:
        raise HTTPException(status_code=422, detail=outcome.errors)
    status = STATUS_BY_CODE.get(outcome.code, 500)
    raise HTTPException(status_code=status, detail=outcome.error or outcome.message)


def _public_items(store, collection: str, lang: str, published_only: bool = True) -> List[Dict[str, Any]]:
    if store is None:
        return []
    repo = repository_for(store, collection)
    try:
        items = repo.by_status("published") if published_only else repo.list()
    except RepositoryError as e:
        raise HTTPException(status_code=STATUS_BY_CODE.get(e.code, 500), detail=e.message)
    return [localize(item.model_dump(), lang) for item in items]


def _manager(tab: str, store):
    if tab not in MANAGERS:
        raise HTTPException(status_code=404, detail=f"Unknown section: {tab}")
    manager_cls = MANAGERS[tab]
    return manager_cls(repository_for(store, manager_cls.collection))


# Admin bootstrap (optional via env)
if database.store is not None and ADMIN_EMAIL and ADMIN_PASSWORD:
    AuthService(database.store).ensure_admin(ADMIN_EMAIL, ADMIN_PASSWORD)


# Error boundary
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Something went wrong."})


@app.get("/")
def read_root():
    return {"message": "Jawahirullah Site API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        if database.store is not None:
            response["database"] = "✅ Connected"
            response["connection_status"] = "Connected"
            response["collections"] = database.store.list_collection_names()[:10]
    except Exception as e:
        response["database"] = f"⚠️ Error: {str(e)[:80]}"
    return response


# Preferences
@app.get("/preferences")
def get_preferences():
    return {"language": preferences.get(LANGUAGE_KEY), "theme": preferences.get(THEME_KEY)}


@app.put("/preferences")
def update_preferences(payload: PreferencesPayload):
    try:
        if payload.language is not None:
            preferences.set(LANGUAGE_KEY, payload.language)
        if payload.theme is not None:
            preferences.set(THEME_KEY, payload.theme)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return get_preferences()


# Public data endpoints
@app.get("/books")
def list_books(lang: Optional[str] = None, store=Depends(get_optional_store)):
    return _public_items(store, COLL_BOOKS, _lang(lang))


@app.get("/speeches")
def list_speeches(lang: Optional[str] = None, store=Depends(get_optional_store)):
    return _public_items(store, COLL_SPEECHES, _lang(lang))


@app.get("/blog")
def list_blog_posts(q: Optional[str] = Query(None, min_length=1), lang: Optional[str] = None, store=Depends(get_optional_store)):
    lang = _lang(lang)
    if not q:
        return _public_items(store, COLL_BLOGS, lang)
    if store is None:
        return []
    repo = repository_for(store, COLL_BLOGS)
    try:
        items = repo.search("title", q)
    except RepositoryError as e:
        raise HTTPException(status_code=STATUS_BY_CODE.get(e.code, 500), detail=e.message)
    return [localize(i.model_dump(), lang) for i in items if i.status == "published"]


@app.get("/blog/{slug}")
def get_blog_post(slug: str, lang: Optional[str] = None, store=Depends(get_optional_store)):
    if store is None:
        raise HTTPException(status_code=404, detail="Post not found")
    repo = repository_for(store, COLL_BLOGS)
    try:
        matches = [p for p in repo.by_field("slug", slug) if p.status == "published"]
    except RepositoryError as e:
        raise HTTPException(status_code=STATUS_BY_CODE.get(e.code, 500), detail=e.message)
    if not matches:
        raise HTTPException(status_code=404, detail="Post not found")
    return localize(matches[0].model_dump(), _lang(lang))


@app.get("/updates")
def list_updates(lang: Optional[str] = None, store=Depends(get_optional_store)):
    return _public_items(store, COLL_UPDATES, _lang(lang), published_only=False)


@app.get("/testimonials")
def list_testimonials(store=Depends(get_optional_store)):
    return _public_items(store, COLL_TESTIMONIALS, "en", published_only=False)


@app.post("/contact", status_code=201)
def create_contact_message(payload: ContactPayload, lang: Optional[str] = None, store=Depends(get_store)):
    outcome = submit_contact(repository_for(store, COLL_CONTACTS), payload.model_dump(), _lang(lang))
    if not outcome.ok:
        _raise_for(outcome)
    return {"id": outcome.id, "message": outcome.message}


@app.post("/newsletter", status_code=201)
def subscribe_newsletter(payload: NewsletterPayload, lang: Optional[str] = None, store=Depends(get_store)):
    outcome = subscribe(repository_for(store, COLL_NEWSLETTER), str(payload.email), _lang(lang))
    if not outcome.ok:
        _raise_for(outcome)
    return {"id": outcome.id, "message": outcome.message}


# Auth routes
@app.post("/auth/admin/login", response_model=Token)
def admin_login(payload: LoginPayload, request: Request, service: AuthService = Depends(get_auth_service)):
    rate_limit(request)
    with AuthSession(service) as session:
        shell = AdminShell(session)
        ok = shell.submit_login(payload.email, payload.password)
        if shell.form.errors:
            raise HTTPException(status_code=422, detail=shell.form.errors)
        if not ok or session.user is None:
            raise HTTPException(status_code=401, detail=session.error or "Invalid credentials")
        return Token(access_token=session.user.token)


@app.post("/auth/admin/logout")
def admin_logout(service: AuthService = Depends(get_auth_service)):
    # tokens are stateless; the client drops its copy
    with AuthSession(service) as session:
        session.sign_out()
        return {"ok": session.error is None, "status": session.status}


# Admin shell
@app.get("/admin")
def admin_home(request: Request, tab: str = "stats", service: AuthService = Depends(get_auth_service)):
    if tab not in TABS:
        raise HTTPException(status_code=400, detail=f"Unknown tab: {tab}")
    token = _bearer_token(request)
    with AuthSession(service) as session:
        if token:
            try:
                _restore_admin(service, token)
            except AuthError as e:
                session.error = e.message
        shell = AdminShell(session, screens=lambda name: tab_content(service.store, name))
        shell.select_tab(tab)
        view = jsonable_encoder(shell.render())
    if view["kind"] == LOGIN:
        return JSONResponse(status_code=401, content=view)
    return view


# Admin media
@app.post("/admin/media/{kind}", status_code=201)
async def upload_media(
    kind: str,
    file: UploadFile = File(...),
    folder: Optional[str] = Form(None),
    admin=Depends(require_admin),
    client: CloudinaryClient = Depends(get_media_client),
):
    if kind not in ("image", "video"):
        raise HTTPException(status_code=404, detail=f"Unknown media kind: {kind}")
    media = MediaFile(filename=file.filename or "upload", content_type=file.content_type or "", data=await file.read())
    uploader = MediaUploader(client)
    result = uploader.upload_video(media, folder) if kind == "video" else uploader.upload_image(media, folder)
    if result is None:
        raise HTTPException(status_code=400, detail=uploader.upload_error)
    return result.model_dump()


@app.delete("/admin/media/{kind}/{public_id:path}")
def delete_media(kind: str, public_id: str, admin=Depends(require_admin), client: CloudinaryClient = Depends(get_media_client)):
    if kind not in ("image", "video"):
        raise HTTPException(status_code=404, detail=f"Unknown media kind: {kind}")
    uploader = MediaUploader(client)
    if not uploader.delete_resource(public_id, kind):
        raise HTTPException(status_code=502, detail=uploader.upload_error)
    return {"ok": True}


# Admin contact messages
@app.get("/admin/contacts")
def list_contact_messages(status: Optional[str] = None, admin=Depends(require_admin), store=Depends(get_store)):
    manager = ContactManager(repository_for(store, COLL_CONTACTS))
    manager.load()
    if manager.repo.error:
        raise HTTPException(status_code=STATUS_BY_CODE.get(manager.repo.error_code, 500), detail=manager.repo.error)
    return {"items": manager.filter(status), "counts": manager.counts()}


@app.patch("/admin/contacts/{doc_id}/status")
def update_contact_status(doc_id: str, payload: StatusPayload, admin=Depends(require_admin), store=Depends(get_store)):
    outcome = ContactManager(repository_for(store, COLL_CONTACTS)).set_status(doc_id, payload.status)
    if not outcome.ok:
        _raise_for(outcome)
    return {"ok": True, "message": outcome.message}


@app.post("/admin/contacts/{doc_id}/reply")
def reply_contact(doc_id: str, payload: ReplyPayload, admin=Depends(require_admin), store=Depends(get_store)):
    outcome = ContactManager(repository_for(store, COLL_CONTACTS)).reply(doc_id, payload.reply_message)
    if not outcome.ok:
        _raise_for(outcome)
    return {"ok": True, "message": outcome.message}


@app.delete("/admin/contacts/{doc_id}")
def delete_contact(doc_id: str, admin=Depends(require_admin), store=Depends(get_store)):
    outcome = ContactManager(repository_for(store, COLL_CONTACTS)).remove(doc_id)
    if not outcome.ok:
        _raise_for(outcome)
    return {"ok": True, "message": outcome.message}


@app.patch("/admin/emails/{doc_id}/status")
def update_subscription_status(doc_id: str, payload: StatusPayload, admin=Depends(require_admin), store=Depends(get_store)):
    outcome = EmailManager(repository_for(store, COLL_NEWSLETTER)).set_status(doc_id, payload.status)
    if not outcome.ok:
        _raise_for(outcome)
    return {"ok": True, "message": outcome.message}


# Admin CRUD
def _crud_manager(tab: str, store):
    if tab not in CRUD_TABS:
        raise HTTPException(status_code=404, detail=f"Unknown section: {tab}")
    return _manager(tab, store)


@app.get("/admin/{tab}")
def admin_list(tab: str, admin=Depends(require_admin), store=Depends(get_store)):
    manager = _crud_manager(tab, store)
    items = manager.load()
    if manager.repo.error:
        raise HTTPException(status_code=STATUS_BY_CODE.get(manager.repo.error_code, 500), detail=manager.repo.error)
    content: Dict[str, Any] = {"items": items}
    if hasattr(manager, "counts"):
        content["counts"] = manager.counts()
    return content


@app.get("/admin/{tab}/{doc_id}")
def admin_get(tab: str, doc_id: str, admin=Depends(require_admin), store=Depends(get_store)):
    manager = _crud_manager(tab, store)
    item = manager.repo.get_by_id(doc_id)
    if item is None:
        status = STATUS_BY_CODE.get(manager.repo.error_code, 500) if manager.repo.error else 404
        raise HTTPException(status_code=status, detail=manager.repo.error or "Not found")
    return item


@app.post("/admin/{tab}", status_code=201)
def admin_create(tab: str, payload: Dict[str, Any] = Body(...), admin=Depends(require_admin), store=Depends(get_store)):
    outcome = _crud_manager(tab, store).submit(payload)
    if not outcome.ok:
        _raise_for(outcome)
    return {"id": outcome.id, "message": outcome.message}


@app.put("/admin/{tab}/{doc_id}")
def admin_update(tab: str, doc_id: str, payload: Dict[str, Any] = Body(...), admin=Depends(require_admin), store=Depends(get_store)):
    outcome = _crud_manager(tab, store).submit(payload, editing_id=doc_id)
    if not outcome.ok:
        _raise_for(outcome)
    return {"id": outcome.id, "message": outcome.message}


@app.delete("/admin/{tab}/{doc_id}")
def admin_delete(tab: str, doc_id: str, admin=Depends(require_admin), store=Depends(get_store)):
    outcome = _crud_manager(tab, store).remove(doc_id)
    if not outcome.ok:
        _raise_for(outcome)
    return {"ok": True, "message": outcome.message}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
