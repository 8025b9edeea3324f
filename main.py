import logging
import secrets
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

import config
import dispatcher
from database import ConnectionManager, get_manager
from errors import AppError, ConfigurationError, ContactValidationError, MethodNotAllowed, NotFoundError, Unauthorized
from mongo_api import HttpMongoApi, LocalMongoApi, MongoApi
from repositories import BlogRepository, ContactRepository, utc_now_iso
from schemas import Blog, BlogIn, BlogUpdate, ContactSubmission, parse_contact
from sitemap import build_sitemap, fallback_sitemap
from youtube import YouTubeClient

logger = logging.getLogger(__name__)

OTHER_THAN_POST = ["GET", "PUT", "PATCH", "DELETE"]
OTHER_THAN_GET = ["POST", "PUT", "PATCH", "DELETE"]

SITEMAP_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=86400"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await get_manager().invalidate()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    headers = {"Allow": exc.allow} if isinstance(exc, MethodNotAllowed) else None
    return JSONResponse({"success": False, "error": exc.message}, status_code=exc.status_code, headers=headers)


# -----------------------------
# Dependencies
# -----------------------------

def get_connection_manager() -> ConnectionManager:
    return get_manager()


def get_mongo_api(manager: ConnectionManager = Depends(get_connection_manager)) -> MongoApi:
    # A configured remote endpoint takes precedence over the in-process dispatcher
    if config.mongodb_api_url():
        return HttpMongoApi()
    return LocalMongoApi(manager)


def get_blog_repository(api: MongoApi = Depends(get_mongo_api)) -> BlogRepository:
    return BlogRepository(api)


def get_contact_repository(api: MongoApi = Depends(get_mongo_api)) -> ContactRepository:
    return ContactRepository(api)


def get_youtube_client() -> YouTubeClient:
    return YouTubeClient()


def require_admin(x_admin_password: Optional[str] = Header(None)):
    expected = config.admin_password()
    if not expected:
        raise ConfigurationError("ADMIN_PASSWORD is not set")
    if not x_admin_password or not secrets.compare_digest(x_admin_password.encode(), expected.encode()):
        raise Unauthorized("Invalid admin password")


async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


def _blog_out(blog: Blog) -> dict:
    return {**blog.model_dump(), "image_src": blog.image_src}


# -----------------------------
# Base routes
# -----------------------------

@app.get("/")
def read_root():
    return {"message": "FastAPI backend running"}


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/test")
async def test_database(manager: ConnectionManager = Depends(get_connection_manager)):
    """Report whether the database is configured and reachable"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if manager.uri else "❌ Not Set",
        "database_name": "✅ Set" if manager.db_name else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        db = await manager.get_database()
        response["database"] = "✅ Available"
        response["database_name"] = db.name if hasattr(db, 'name') else "✅ Connected"
        response["connection_status"] = "Connected"
        try:
            collections = await db.list_collection_names()
            response["collections"] = collections[:10]
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


@app.post("/test")
async def write_test_document(api: MongoApi = Depends(get_mongo_api)):
    """Insert a throwaway document and count the collection, end to end through the dispatcher"""
    inserted = await api.insert_one("test_documents", {"message": "connection test", "createdAt": utc_now_iso()})
    total = await api.count("test_documents")
    return {"success": True, "inserted": inserted, "count": total}


# -----------------------------
# Generic MongoDB endpoint
# -----------------------------

@app.post("/mongodb-api")
@app.post("/api/mongodb-api")
async def mongodb_api(request: Request, manager: ConnectionManager = Depends(get_connection_manager)):
    status, envelope = await dispatcher.execute(manager, await _json_body(request))
    return JSONResponse(envelope, status_code=status)


@app.api_route("/mongodb-api", methods=OTHER_THAN_POST, include_in_schema=False)
@app.api_route("/api/mongodb-api", methods=OTHER_THAN_POST, include_in_schema=False)
def mongodb_api_wrong_method():
    raise MethodNotAllowed("Method not allowed", allow=["POST"])


# -----------------------------
# YouTube
# -----------------------------

@app.get("/youtube")
@app.get("/api/youtube")
async def youtube_videos(client: YouTubeClient = Depends(get_youtube_client)):
    try:
        videos = await client.fetch_videos()
    except AppError as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except Exception:
        logger.exception("YouTube API server error")
        return JSONResponse(
            {"error": "Failed to load YouTube videos. Please try again later or contact support if the issue persists."},
            status_code=500,
        )
    return {"videos": [video.model_dump() for video in videos]}


@app.api_route("/youtube", methods=OTHER_THAN_GET, include_in_schema=False)
@app.api_route("/api/youtube", methods=OTHER_THAN_GET, include_in_schema=False)
def youtube_wrong_method():
    return JSONResponse(
        {"error": "Method not allowed. Use GET /api/youtube"}, status_code=405, headers={"Allow": "GET"}
    )


# -----------------------------
# Contact form
# -----------------------------

@app.post("/contact")
@app.post("/api/contact")
async def submit_contact(request: Request, contacts: ContactRepository = Depends(get_contact_repository)):
    try:
        payload = parse_contact(await _json_body(request))
    except ContactValidationError as e:
        return JSONResponse({"success": False, "error": e.message, "errors": e.errors}, status_code=400)

    try:
        submission = await contacts.create(payload)
    except AppError as e:
        logger.error(f"Contact submission failed: {e}")
        message = "MongoDB is not configured" if isinstance(e, ConfigurationError) else (
            "An unexpected error occurred. Please try again later."
        )
        return JSONResponse({"success": False, "error": message}, status_code=500)

    return {
        "success": True,
        "message": "Your message has been received. We'll get back to you soon!",
        "id": submission.id,
    }


@app.api_route("/contact", methods=OTHER_THAN_POST, include_in_schema=False)
@app.api_route("/api/contact", methods=OTHER_THAN_POST, include_in_schema=False)
def contact_wrong_method():
    raise MethodNotAllowed("Method not allowed. Use POST /api/contact", allow=["POST"])


# -----------------------------
# Sitemap
# -----------------------------

@app.get("/sitemap.xml")
@app.get("/api/sitemap.xml")
async def sitemap_xml(blogs: BlogRepository = Depends(get_blog_repository)):
    site_url = config.site_url()
    try:
        xml = build_sitemap(site_url, await blogs.sitemap_entries())
    except Exception:
        logger.exception("Error generating sitemap")
        return Response(fallback_sitemap(site_url), media_type="application/xml")
    return Response(xml, media_type="application/xml", headers={"Cache-Control": SITEMAP_CACHE_CONTROL})


# -----------------------------
# Blog endpoints
# -----------------------------

@app.get("/api/blogs")
async def list_blogs(
    limit: Optional[int] = Query(None, ge=1, le=100),
    blogs: BlogRepository = Depends(get_blog_repository),
) -> List[dict]:
    return [_blog_out(blog) for blog in await blogs.list_published(limit)]


@app.get("/api/blogs/{slug}")
async def get_blog(slug: str, blogs: BlogRepository = Depends(get_blog_repository)):
    blog = await blogs.get_by_slug(slug)
    if blog is None:
        raise NotFoundError("Blog post not found")
    return _blog_out(blog)


# -----------------------------
# Admin endpoints
# -----------------------------

admin = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


@admin.get("/blogs")
async def admin_list_blogs(blogs: BlogRepository = Depends(get_blog_repository)):
    return [_blog_out(blog) for blog in await blogs.list_all()]


@admin.post("/blogs", status_code=201)
async def admin_create_blog(payload: BlogIn, blogs: BlogRepository = Depends(get_blog_repository)):
    return _blog_out(await blogs.create(payload))


@admin.patch("/blogs/{blog_id}")
async def admin_update_blog(blog_id: str, payload: BlogUpdate, blogs: BlogRepository = Depends(get_blog_repository)):
    await blogs.update(blog_id, payload)
    return {"success": True}


@admin.delete("/blogs/{blog_id}")
async def admin_delete_blog(
    blog_id: str,
    hard: bool = False,
    blogs: BlogRepository = Depends(get_blog_repository),
):
    if hard:
        await blogs.hard_delete(blog_id)
    else:
        await blogs.soft_delete(blog_id)
    return {"success": True}


@admin.get("/contacts")
async def admin_list_contacts(contacts: ContactRepository = Depends(get_contact_repository)):
    submissions: List[ContactSubmission] = await contacts.list_all()
    return {
        "submissions": [submission.model_dump() for submission in submissions],
        "unread": await contacts.unread_count(),
    }


@admin.post("/contacts/{contact_id}/read")
async def admin_mark_read(contact_id: str, contacts: ContactRepository = Depends(get_contact_repository)):
    await contacts.mark_read(contact_id)
    return {"success": True}


@admin.post("/contacts/{contact_id}/unread")
async def admin_mark_unread(contact_id: str, contacts: ContactRepository = Depends(get_contact_repository)):
    await contacts.mark_unread(contact_id)
    return {"success": True}


@admin.delete("/contacts/{contact_id}")
async def admin_delete_contact(contact_id: str, contacts: ContactRepository = Depends(get_contact_repository)):
    await contacts.hard_delete(contact_id)
    return {"success": True}


app.include_router(admin)


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    port = config.port()
    uvicorn.run(app, host="0.0.0.0", port=port)
