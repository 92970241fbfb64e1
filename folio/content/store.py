"""
store.py — Lectura y escritura del contenido plano del sitio.

El sitio no tiene base de datos: todo vive en archivos del repo.

    content/content.json      ← home, about, cv, proyectos, config del sitio
    content/blog/{slug}.md    ← posts con front matter YAML

El editor escribe aquí; después publish() commitea y pushea.

Formato de un post:

    ---
    title: Mi Post
    date: '2026-03-01'
    excerpt: Resumen corto
    tags:
    - python
    ---

    Contenido en markdown...

Uso:
    from folio.content.store import ContentStore, BlogStore
    store = ContentStore(Path("content/content.json"))
    data = store.read()
    store.write(data)
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from folio.errors import ContentStoreError, PostExistsError, PostNotFoundError
from folio.utils.logger import get_logger

logger = get_logger("folio.content")

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_FRONT_MATTER_RE = re.compile(r"^---[ \t]*\n(.*?)\n---[ \t]*\n(.*)$", re.DOTALL)


def clean_content(data: dict[str, Any]) -> dict[str, Any]:
    """
    Limpia el contenido antes de guardarlo.

    Hoy solo quita skills con nombre vacío (filas nuevas que el
    usuario agregó en el editor y nunca llenó). No modifica `data`.
    """
    limpio = copy.deepcopy(data)
    skills = limpio.get("cv", {}).get("skills")
    if isinstance(skills, dict):
        for categoria, lista in skills.items():
            if isinstance(lista, list):
                skills[categoria] = [
                    s for s in lista
                    if not (isinstance(s, dict) and not str(s.get("name", "")).strip())
                ]
    return limpio


class ContentStore:
    """
    content.json del sitio.

    Args:
        path: Ruta al archivo JSON.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> dict[str, Any]:
        """
        Lee y parsea el JSON.

        Raises:
            ContentStoreError: Si el archivo no existe o está corrupto.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
            return json.loads(raw)
        except (OSError, json.JSONDecodeError) as e:
            raise ContentStoreError(f"Failed to read {self._path.name}: {e}") from e

    def write(self, data: dict[str, Any]) -> None:
        """
        Escribe el JSON con indentación de 2 espacios y newline final,
        igual que lo dejaría un humano (diffs limpios en git).

        Raises:
            ContentStoreError: Si no se puede escribir.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except (OSError, TypeError, ValueError) as e:
            raise ContentStoreError(f"Failed to write {self._path.name}: {e}") from e
        logger.info(f"Contenido guardado: {self._path}")


# ============================================================
# Blog
# ============================================================

@dataclass
class BlogPost:
    """Un post del blog (metadata + contenido markdown)."""
    slug: str
    title: str = ""
    date: str = ""
    excerpt: str = ""
    tags: list[str] = field(default_factory=list)
    content: str = ""

    def metadata(self) -> dict[str, Any]:
        """Todo menos el contenido (para listados)."""
        data = asdict(self)
        data.pop("content")
        return data


def validate_slug(slug: str) -> str:
    """Slugs en minúsculas con guiones; evita rutas tipo ../"""
    if not _SLUG_RE.match(slug or ""):
        raise ContentStoreError(f"Invalid slug: {slug!r}")
    return slug


def parse_post(slug: str, raw: str) -> BlogPost:
    """Separa front matter YAML y contenido."""
    match = _FRONT_MATTER_RE.match(raw)
    if match:
        try:
            meta = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError as e:
            raise ContentStoreError(f"Invalid front matter in {slug}.md: {e}") from e
        # render_post deja una línea en blanco después del front matter
        content = match.group(2).lstrip("\n")
    else:
        meta, content = {}, raw

    if not isinstance(meta, dict):
        meta = {}
    tags = meta.get("tags") or []
    if not isinstance(tags, list):
        tags = [tags]

    return BlogPost(
        slug=slug,
        title=str(meta.get("title") or slug),
        date=str(meta.get("date") or ""),
        excerpt=str(meta.get("excerpt") or ""),
        tags=[str(t) for t in tags],
        content=content,
    )


def render_post(post: BlogPost) -> str:
    """BlogPost → markdown con front matter."""
    front_matter = yaml.safe_dump(
        {
            "title": post.title,
            "date": post.date,
            "excerpt": post.excerpt,
            "tags": list(post.tags),
        },
        sort_keys=False,
        allow_unicode=True,
    )
    return f"---\n{front_matter}---\n\n{post.content or ''}"


class BlogStore:
    """
    Directorio de posts markdown.

    Args:
        directory: content/blog del sitio.
    """

    def __init__(self, directory: str | Path):
        self._dir = Path(directory)

    def _path_for(self, slug: str) -> Path:
        return self._dir / f"{validate_slug(slug)}.md"

    def _load(self, path: Path) -> BlogPost:
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ContentStoreError(f"Failed to read {path.name}: {e}") from e
        return parse_post(path.stem, raw)

    def list_posts(self) -> list[dict[str, Any]]:
        """Metadata de todos los posts, más reciente primero."""
        if not self._dir.exists():
            return []

        posts = [self._load(path).metadata() for path in self._dir.glob("*.md")]
        # Fechas ISO: el orden lexicográfico es el cronológico
        return sorted(posts, key=lambda p: p["date"], reverse=True)

    def read_post(self, slug: str) -> BlogPost | None:
        """Un post por slug, o None si no existe."""
        path = self._path_for(slug)
        if not path.exists():
            return None
        return self._load(path)

    def create_post(self, post: BlogPost) -> None:
        """
        Raises:
            PostExistsError: Si ya hay un post con ese slug.
        """
        path = self._path_for(post.slug)
        if path.exists():
            raise PostExistsError(f'Post "{post.slug}" already exists')
        self._dir.mkdir(parents=True, exist_ok=True)
        path.write_text(render_post(post), encoding="utf-8")
        logger.info(f"Post creado: {post.slug}")

    def update_post(self, slug: str, post: BlogPost) -> None:
        """
        Raises:
            PostNotFoundError: Si el post no existe.
        """
        path = self._path_for(slug)
        if not path.exists():
            raise PostNotFoundError(f'Post "{slug}" not found')
        post.slug = slug
        path.write_text(render_post(post), encoding="utf-8")
        logger.info(f"Post actualizado: {slug}")

    def delete_post(self, slug: str) -> None:
        """
        Raises:
            PostNotFoundError: Si el post no existe.
        """
        path = self._path_for(slug)
        if not path.exists():
            raise PostNotFoundError(f'Post "{slug}" not found')
        path.unlink()
        logger.info(f"Post eliminado: {slug}")
