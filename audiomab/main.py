"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from audiomab.backend import InvalidInput
from audiomab.catalog import CatalogFetchError, NoSongsExtracted
from audiomab.config import get_settings
from audiomab.db import close_db, init_db
from audiomab.deps import get_engine, reset_state
from audiomab.engine import AllBackendsUnavailable
from audiomab.lyrics import LyricsFetchError, LyricsNotFound


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    await init_db()
    print(f"[startup] DB ready at {settings.db_abs_path}")
    print(f"[startup] Backends: {', '.join(get_engine().backend_names) or '(none)'}")
    yield
    await reset_state()
    await close_db()
    print("[shutdown] DB closed")


app = FastAPI(
    title="audiomab",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Source", "Accept-Ranges", "Content-Length"],
)


# ---------------------------------------------------------------------------
# Domain errors → {"error": message}
# ---------------------------------------------------------------------------

@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(AllBackendsUnavailable)
async def backends_unavailable_handler(request: Request, exc: AllBackendsUnavailable):
    if exc.timed_out:
        return JSONResponse({"error": "Request timed out. All backends unavailable."}, status_code=504)
    return JSONResponse({"error": "All backends unavailable."}, status_code=503)


@app.exception_handler(NoSongsExtracted)
async def no_songs_handler(request: Request, exc: NoSongsExtracted):
    return JSONResponse(
        {
            "error": str(exc),
            "hint": "Try entering song names manually or sharing individual songs.",
            "playlistTitle": exc.playlist_title,
        },
        status_code=422,
    )


@app.exception_handler(CatalogFetchError)
async def catalog_fetch_handler(request: Request, exc: CatalogFetchError):
    return JSONResponse({"error": "Failed to fetch Apple Music page"}, status_code=502)


@app.exception_handler(LyricsNotFound)
async def lyrics_not_found_handler(request: Request, exc: LyricsNotFound):
    return JSONResponse({"error": "No lyrics found"}, status_code=404)


@app.exception_handler(LyricsFetchError)
async def lyrics_fetch_handler(request: Request, exc: LyricsFetchError):
    return JSONResponse({"error": "Could not load lyrics"}, status_code=502)


# Routers
from audiomab.routes_cache import router as cache_router  # noqa: E402
from audiomab.routes_library import router as library_router  # noqa: E402
from audiomab.routes_lyrics import router as lyrics_router  # noqa: E402
from audiomab.routes_player import router as player_router  # noqa: E402
from audiomab.routes_resolve import router as resolve_router  # noqa: E402

app.include_router(resolve_router)
app.include_router(cache_router)
app.include_router(library_router)
app.include_router(player_router)
app.include_router(lyrics_router)


@app.get("/health")
async def health():
    """Simple health-check endpoint."""
    return JSONResponse({"status": "ok", "version": app.version})
