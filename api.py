import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from cache_manager import CacheManager
from config import Settings, settings as default_settings
from cover_service import CoverService
from database import ConnectionPool, StorageError, initialize_database
from http_client import OptimizedHTTPClient
from library import Library

logging.basicConfig(level=default_settings.log_level)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

router = APIRouter()


# --- Models ---
class HealthModel(BaseModel):
    status: str
    timestamp: str
    db: bool
    cover_cache: Dict[str, Any]


# --- Dependencies ---
def get_library(request: Request) -> Library:
    """The Library created for this application at startup."""
    return request.app.state.library


def get_cover_service(request: Request) -> CoverService:
    """The cover lookup service created for this application at startup."""
    return request.app.state.cover_service


# --- Helper Functions ---
async def _read_cover(cover: Optional[UploadFile]) -> Optional[bytes]:
    """Bytes of the uploaded cover, or None when no file was chosen."""
    if cover is None:
        return None
    data = await cover.read()
    return data or None


def _image_media_type(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if data.startswith(b"GIF8"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"


def _parse_book_id(raw: str) -> Optional[int]:
    """Integer id from the path, or None when it can't name a stored book."""
    try:
        return int(raw)
    except ValueError:
        return None


def _redirect_home() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=302)


# --- Routes ---
@router.get("/", response_class=HTMLResponse)
async def list_books(request: Request,
                     library: Library = Depends(get_library),
                     covers: CoverService = Depends(get_cover_service)):
    """List all books with a best-effort cover URL for each."""
    try:
        books = await run_in_threadpool(library.list_books)
    except StorageError:
        logger.exception("Error fetching books")
        return PlainTextResponse("Internal Server Error", status_code=500)

    cover_urls = await covers.fetch_cover_urls(book.title for book in books)
    for book, cover_url in zip(books, cover_urls):
        book.cover_url = cover_url

    return templates.TemplateResponse(request, "index.html", {
        "list_title": request.app.state.settings.app_name,
        "books": books,
    })


@router.get("/new", response_class=HTMLResponse)
async def new_book_form(request: Request):
    return templates.TemplateResponse(request, "new.html", {"book": None, "is_edit": False})


@router.post("/new")
async def add_book(title: str = Form(""), author: str = Form(""), description: str = Form(""),
                   cover: Optional[UploadFile] = File(None),
                   library: Library = Depends(get_library)):
    cover_bytes = await _read_cover(cover)
    try:
        await run_in_threadpool(library.insert_book, title, author, description, cover_bytes)
    except StorageError:
        logger.exception("Error adding new book")
        return PlainTextResponse("Error saving book to database", status_code=500)
    return _redirect_home()


@router.get("/edit/{book_id}", response_class=HTMLResponse)
async def edit_book_form(request: Request, book_id: str, library: Library = Depends(get_library)):
    parsed_id = _parse_book_id(book_id)
    if parsed_id is None:
        return PlainTextResponse("Book not found", status_code=404)
    try:
        book = await run_in_threadpool(library.get_book, parsed_id)
    except StorageError:
        logger.exception("Error fetching book %s", book_id)
        return PlainTextResponse("Error fetching book from database", status_code=500)
    if book is None:
        return PlainTextResponse("Book not found", status_code=404)
    return templates.TemplateResponse(request, "new.html", {"book": book, "is_edit": True})


@router.post("/edit/{book_id}")
async def edit_book(book_id: str, title: str = Form(""), author: str = Form(""),
                    description: str = Form(""), cover: Optional[UploadFile] = File(None),
                    library: Library = Depends(get_library)):
    parsed_id = _parse_book_id(book_id)
    if parsed_id is None:
        # No row can match, same as editing a missing id
        return _redirect_home()
    # Only replace the stored cover when a new file is uploaded
    cover_bytes = await _read_cover(cover)
    try:
        await run_in_threadpool(library.update_book, parsed_id, title, author, description, cover_bytes)
    except StorageError:
        logger.exception("Error updating book %s", book_id)
        return PlainTextResponse("Error updating book in database", status_code=500)
    return _redirect_home()


@router.post("/delete/{book_id}")
async def delete_book(book_id: str, library: Library = Depends(get_library)):
    parsed_id = _parse_book_id(book_id)
    if parsed_id is None:
        return _redirect_home()
    try:
        await run_in_threadpool(library.delete_book, parsed_id)
    except StorageError:
        logger.exception("Error deleting book %s", book_id)
        return PlainTextResponse("Error deleting book from database", status_code=500)
    return _redirect_home()


@router.get("/covers/{book_id}")
async def get_uploaded_cover(book_id: str, library: Library = Depends(get_library)):
    """Serve the cover image uploaded with the book, if any."""
    parsed_id = _parse_book_id(book_id)
    if parsed_id is None:
        return PlainTextResponse("Cover not found", status_code=404)
    try:
        book = await run_in_threadpool(library.get_book, parsed_id)
    except StorageError:
        logger.exception("Error fetching cover for book %s", book_id)
        return PlainTextResponse("Error fetching book from database", status_code=500)
    if book is None or not book.has_cover:
        return PlainTextResponse("Cover not found", status_code=404)
    return Response(
        content=book.cover,
        media_type=_image_media_type(book.cover),
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/health", response_model=HealthModel)
async def health(request: Request,
                 library: Library = Depends(get_library),
                 covers: CoverService = Depends(get_cover_service)):
    """Lightweight health endpoint: database reachability and cover cache stats."""
    db_ok = await run_in_threadpool(library.ping)
    cache_stats = covers.cache.get_stats() if covers.cache is not None else {}
    return HealthModel(
        status="healthy" if db_ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        db=db_ok,
        cover_cache=cache_stats,
    )


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the web application around one set of settings."""
    app_settings = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        pool = ConnectionPool(
            app_settings.database_file,
            size=app_settings.database_pool_size,
            timeout=app_settings.database_pool_timeout,
        )
        # A database that is down at startup must not keep the server from starting
        try:
            await run_in_threadpool(initialize_database, pool)
        except StorageError:
            logger.exception("Database connection error")

        http_client = OptimizedHTTPClient(timeout=app_settings.openlibrary_timeout)
        app.state.library = Library(pool)
        app.state.cover_service = CoverService(
            http_client,
            cache=CacheManager(
                max_entries=app_settings.cover_cache_max_entries,
                default_ttl=app_settings.cover_cache_ttl,
            ),
            search_url=app_settings.openlibrary_search_url,
            cover_url_template=app_settings.openlibrary_cover_url,
            cache_ttl=app_settings.cover_cache_ttl,
        )
        logger.info("%s ready on http://%s:%s", app_settings.app_name,
                    app_settings.api_host, app_settings.api_port)
        try:
            yield
        finally:
            await http_client.close()
            pool.close()

    app = FastAPI(title=app_settings.app_name, debug=app_settings.debug, lifespan=lifespan)
    app.state.settings = app_settings
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "public")), name="static")
    app.include_router(router)
    return app


app = create_app()
