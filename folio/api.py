"""
api.py — API local del editor de folio (FastAPI).

Solo corre en la máquina de quien edita (127.0.0.1): no hay
autenticación. El sitio público es estático y nunca incluye esto.

Endpoints:
    GET    /health                    — Health check
    GET    /api/admin/content         — content.json actual
    PUT    /api/admin/content         — Save (escribe + snapshot)
    GET    /api/admin/session         — Estado de la sesión (flags, mensajes)
    GET    /api/admin/lighthouse      — Últimos puntajes de Lighthouse (o null)
    POST   /api/admin/publish         — Publish: git + arranca el monitor
    DELETE /api/admin/publish/watch   — Deja de esperar el deploy
    GET    /api/admin/deploy-status   — Estado de GitHub Actions para ?sha=
    GET    /api/admin/blog            — Lista de posts
    POST   /api/admin/blog            — Crear post
    GET    /api/admin/blog/{slug}     — Leer post
    PUT    /api/admin/blog/{slug}     — Actualizar post
    DELETE /api/admin/blog/{slug}     — Borrar post

Uso:
    python -m folio serve
    python -m folio serve --port 8080
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from folio.config import AppConfig, load_config
from folio.content.store import BlogPost, BlogStore, ContentStore, validate_slug
from folio.coordinator import EditorSession
from folio.errors import (
    ContentStoreError,
    DeployStatusAPIError,
    FolioError,
    PostExistsError,
    PostNotFoundError,
    PublishRejectedError,
)
from folio.publishing.deploy_monitor import DeployStatus
from folio.utils.logger import get_logger

logger = get_logger("folio.api")


class PostRequest(BaseModel):
    slug: str = ""
    title: str = ""
    date: str = ""
    excerpt: str = ""
    tags: list[str] = Field(default_factory=list)
    content: str = ""


# ================================================================
# App factory
# ================================================================

_start_time: float = 0.0


def create_app(
    config: AppConfig | None = None,
    session: EditorSession | None = None,
    blog: BlogStore | None = None,
    fetch_status: Callable[[str], DeployStatus] | None = None,
) -> FastAPI:
    """
    Crea la app FastAPI del editor.

    Args:
        config: Configuración. None → load_config().
        session: Sesión de edición. None → se arma desde config.
        blog: Store de posts. None → config.blog_path.
        fetch_status: sha → DeployStatus para /deploy-status.
            None → el mismo que usa la sesión.

    Returns:
        FastAPI app lista para servir.
    """
    global _start_time
    _start_time = time.time()

    config = config or load_config()
    if session is None:
        session = EditorSession.from_config(config)
    if fetch_status is None:
        fetch_status = session.fetch_status

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Cerrar la sesión cancela el polling pendiente
        app.state.session.close()

    app = FastAPI(
        title="folio admin",
        description="Editor local de contenido + publish a GitHub Pages",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.session = session
    app.state.blog = blog or BlogStore(config.blog_path)
    app.state.fetch_status = fetch_status

    _register_routes(app)

    return app


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(content={"error": message}, status_code=status_code)


# ================================================================
# Routes
# ================================================================


def _register_routes(app: FastAPI) -> None:
    """Registra todos los endpoints."""

    @app.get("/health")
    async def health():
        session: EditorSession = app.state.session
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - _start_time),
            "publishing": session.publishing,
        }

    # --- contenido ---

    @app.get("/api/admin/content")
    async def get_content():
        session: EditorSession = app.state.session
        try:
            return session.load()
        except ContentStoreError as e:
            logger.error(str(e))
            return _error("Failed to read content.json", 500)

    @app.put("/api/admin/content")
    async def put_content(request: Request):
        session: EditorSession = app.state.session
        try:
            data = await request.json()
        except ValueError:
            return _error("Invalid JSON body", 400)
        if not isinstance(data, dict):
            return _error("Content must be a JSON object", 400)

        try:
            result = await session.save(data)
        except ContentStoreError:
            return _error("Failed to write content.json", 500)

        return {
            "ok": True,
            "changed": result.changed,
            "message": result.message,
            "unpublished": session.unpublished,
        }

    @app.get("/api/admin/session")
    async def get_session():
        session: EditorSession = app.state.session
        return session.status()

    @app.get("/api/admin/lighthouse")
    async def get_lighthouse():
        # Solo lectura: el workflow de Lighthouse es quien lo escribe
        config: AppConfig = app.state.config
        if not config.lighthouse_path.exists():
            return None
        try:
            return ContentStore(config.lighthouse_path).read()
        except ContentStoreError as e:
            logger.error(str(e))
            return _error("Failed to read lighthouse.json", 500)

    # --- publish ---

    @app.post("/api/admin/publish")
    async def publish(request: Request):
        session: EditorSession = app.state.session
        # Body opcional: sin body o JSON inválido → mensaje por defecto
        try:
            payload = await request.json()
        except ValueError:
            payload = {}
        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, str):
            message = None

        try:
            commit_hash = await session.publish(message)
        except PublishRejectedError as e:
            return _error(str(e), 409)
        except (FolioError, OSError) as e:
            return _error(str(e) or "Publish failed", 500)

        return {"hash": commit_hash, "message": session.publish_message}

    @app.delete("/api/admin/publish/watch")
    async def cancel_watch():
        session: EditorSession = app.state.session
        return {"cancelled": session.cancel_deploy_watch()}

    @app.get("/api/admin/deploy-status")
    async def deploy_status(sha: str | None = None):
        if not sha:
            return _error("Missing sha parameter", 400)
        try:
            status = await asyncio.to_thread(app.state.fetch_status, sha)
        except DeployStatusAPIError as e:
            return _error(str(e), 502)
        except Exception as e:
            logger.error(f"Status check failed: {e}")
            return _error(str(e) or "Status check failed", 500)
        return {"status": status.value}

    # --- blog ---

    @app.get("/api/admin/blog")
    async def list_posts():
        blog: BlogStore = app.state.blog
        try:
            return blog.list_posts()
        except ContentStoreError as e:
            logger.error(str(e))
            return _error("Failed to list blog posts", 500)

    @app.post("/api/admin/blog")
    async def create_post(body: PostRequest):
        blog: BlogStore = app.state.blog
        if not body.slug or not body.title:
            return _error("slug and title are required", 400)
        try:
            blog.create_post(BlogPost(**body.model_dump()))
        except PostExistsError as e:
            return _error(str(e), 409)
        except ContentStoreError as e:
            return _error(str(e), 400)
        return JSONResponse(content={"ok": True, "slug": body.slug}, status_code=201)

    @app.get("/api/admin/blog/{slug}")
    async def get_post(slug: str):
        blog: BlogStore = app.state.blog
        try:
            validate_slug(slug)
        except ContentStoreError as e:
            return _error(str(e), 400)
        try:
            post = blog.read_post(slug)
        except ContentStoreError as e:
            logger.error(str(e))
            return _error(f'Failed to read post "{slug}"', 500)
        if post is None:
            return _error(f'Post "{slug}" not found', 404)
        return _post_dict(post)

    @app.put("/api/admin/blog/{slug}")
    async def update_post(slug: str, body: PostRequest):
        blog: BlogStore = app.state.blog
        datos = body.model_dump()
        datos["slug"] = slug
        try:
            blog.update_post(slug, BlogPost(**datos))
        except PostNotFoundError as e:
            return _error(str(e), 404)
        except ContentStoreError as e:
            return _error(str(e), 400)
        return {"ok": True}

    @app.delete("/api/admin/blog/{slug}")
    async def delete_post(slug: str):
        blog: BlogStore = app.state.blog
        try:
            blog.delete_post(slug)
        except PostNotFoundError as e:
            return _error(str(e), 404)
        except ContentStoreError as e:
            return _error(str(e), 400)
        return {"ok": True}


def _post_dict(post: BlogPost) -> dict[str, Any]:
    return {
        "slug": post.slug,
        "title": post.title,
        "date": post.date,
        "excerpt": post.excerpt,
        "tags": post.tags,
        "content": post.content,
    }
