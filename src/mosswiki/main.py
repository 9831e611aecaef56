"""MossWiki FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from mosswiki.config import TEMPLATES_DIR, settings
from mosswiki.core.bundler import BundleCache, needed_scripts
from mosswiki.core.exceptions import MossWikiError, PageFilteredError, PageNotFoundError
from mosswiki.core.plugins import EncryptionCache
from mosswiki.core.renderer import Engine
from mosswiki.core.styles import StylesCache, google_font_href

logger = logging.getLogger(__name__)

# Long-lived caches shared by all requests
encryption_cache = EncryptionCache()
bundles = BundleCache(settings.scripts_dir)
styles = StylesCache(settings.styles_dir)
engine = Engine(settings, encryption_cache=encryption_cache)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: prebuild every page into the cache."""
    try:
        slugs = await run_in_threadpool(engine.prebuild_all)
        logger.info("Serving %d prebuilt pages", len(slugs))
    except Exception:
        logger.exception("Prebuild failed; pages will render on demand")
    yield


app = FastAPI(
    title=settings.page_title,
    debug=settings.debug,
    lifespan=lifespan,
)

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def date_filter(value: datetime | None) -> str:
    """Format a datetime for display."""
    if value is None:
        return ""
    return value.strftime("%b %d, %Y")


templates.env.filters["date"] = date_filter


def canonical_slug(raw: str) -> str:
    """Map a request path to a slug: `/` is index, `dir/` is dir/index."""
    trimmed = raw.strip("/")
    if not trimmed:
        return "index"
    if raw.endswith("/"):
        return f"{trimmed}/index"
    return trimmed


def get_context(request: Request, **kwargs) -> dict:
    """Create base context for templates."""
    return {
        "request": request,
        "app_title": settings.page_title,
        "font_href": google_font_href(settings.theme),
        **kwargs,
    }


@app.get("/api/health")
async def healthcheck():
    return {"message": "pong"}


@app.get("/{slug:path}", response_class=HTMLResponse)
async def view_page(request: Request, slug: str):
    """Render a content page."""
    slug = canonical_slug(slug)
    if not engine.page_exists(slug):
        raise HTTPException(status_code=404, detail="Page not found")

    try:
        page = await run_in_threadpool(engine.render_page, slug)
    except (PageNotFoundError, PageFilteredError):
        raise HTTPException(status_code=404, detail="Page not found")
    except MossWikiError:
        logger.exception("Failed to render page %s", slug)
        raise HTTPException(status_code=500, detail="Failed to render page")

    backlinks = await run_in_threadpool(engine.backlinks, slug)
    scripts = bundles.inline_scripts(needed_scripts(page.html, bool(page.meta.encrypted)))
    css = styles.compiled_styles(settings.theme)

    return templates.TemplateResponse(
        request,
        "page.html",
        get_context(
            request,
            page=page.context(),
            backlinks=backlinks,
            styles=css,
            scripts=scripts,
        ),
    )
