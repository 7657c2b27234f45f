import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authors import router as authors_router
from books import router as books_router
from core import db, migrations, settings
from core.errors import register_exception_handlers
from core.log import configure_logging
from reservations import router as reservations_router
from search import router as search_router

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

OPENAPI_TAGS = [
    {"name": "authors", "description": "Author management operations"},
    {"name": "books", "description": "Book management operations"},
    {"name": "reservations", "description": "Book reservations with concurrency control"},
    {"name": "search", "description": "Full-text search across books and authors"},
    {"name": "health", "description": "Liveness and readiness probes"},
]


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    if settings.migrate_on_startup():
        await migrations.migrate()
    # Initialize the DB pool once per process.
    await db.init_pool()
    logger.info("startup_complete version=%s", API_VERSION)
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(
    title="Library Catalog API",
    description=(
        "REST API for managing a library catalog with books, authors, "
        "full-text search, and a reservation system with concurrency control."
    ),
    version=API_VERSION,
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

# Allow local frontend dev servers to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(authors_router.router, tags=["authors"])
app.include_router(books_router.router, tags=["books"])
app.include_router(reservations_router.router, tags=["reservations"])
app.include_router(search_router.router, tags=["search"])


@app.get("/health", tags=["health"])
def health() -> dict:
    return {"status": "ok"}


@app.get("/health/ready", tags=["health"])
async def ready():
    try:
        ok = await db.ping()
    except Exception as exc:
        logger.warning("readiness_check_failed error=%s", exc)
        ok = False

    if not ok:
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
    return {"status": "ok", "database": "up"}


@app.get("/", include_in_schema=False)
def root() -> dict:
    return {"message": "library-catalog api", "docs": "/docs"}


def run() -> None:
    """
    Local dev server. APP_RELOAD=true restarts on source changes.
    """
    configure_logging()
    uvicorn.run(
        "main:app",
        host=settings.app_host(),
        port=settings.app_port(),
        reload=settings.app_reload(),
        log_config=None,
    )


if __name__ == "__main__":
    run()
