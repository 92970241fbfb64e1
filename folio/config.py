"""
config.py — Carga y gestiona la configuración de folio.

Se encarga de:
1. Cargar config.yaml (configuración general, se sube a Git)
2. Cargar .env (secretos: GITHUB_TOKEN)
3. Resolver ${VARIABLES} en los valores de config
4. Convertir cada sección a su dataclass

¿Por qué el token solo en .env?
    config.yaml vive en el mismo repo que se publica. Un token
    commiteado terminaría en GitHub con el siguiente publish.

Uso:
    from folio.config import load_config
    config = load_config()
    print(config.deploy.poll_interval_seconds)  # 6
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


# ============================================================
# Dataclasses de configuración
# ============================================================

@dataclass
class SiteConfig:
    """Dónde vive el contenido del sitio."""
    repo_path: str = "."
    content_file: str = "content/content.json"
    blog_dir: str = "content/blog"
    lighthouse_file: str = "content/lighthouse.json"


@dataclass
class PublishConfig:
    """Secuencia git de publish."""
    default_commit_message: str = "Update content via admin"
    remote: str = "origin"


@dataclass
class DeployConfig:
    """Polling de GitHub Actions después del push."""
    host: str = "github.com"
    api_base: str = "https://api.github.com"
    poll_interval_seconds: float = 6.0
    timeout_seconds: float = 300.0
    max_runs: int = 5
    request_timeout: float = 30.0
    user_agent: str = "folio-admin"


@dataclass
class ServerConfig:
    """API local del editor. Solo localhost: no hay autenticación."""
    host: str = "127.0.0.1"
    port: int = 3001


@dataclass
class AppConfig:
    """Configuración completa de la aplicación."""
    site: SiteConfig = field(default_factory=SiteConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    # Valores del .env (no están en config.yaml)
    github_token: str = ""

    @property
    def repo_path(self) -> Path:
        return Path(self.site.repo_path)

    @property
    def content_path(self) -> Path:
        return self.repo_path / self.site.content_file

    @property
    def blog_path(self) -> Path:
        return self.repo_path / self.site.blog_dir

    @property
    def lighthouse_path(self) -> Path:
        return self.repo_path / self.site.lighthouse_file


# ============================================================
# Funciones de carga
# ============================================================

def _resolve_env_vars(value: str) -> str:
    """
    Resuelve variables de entorno en un string.

    Ejemplo:
        "${SITE_REPO}" → "/home/user/site"

    Si la variable no existe se deja el placeholder tal cual.
    """
    patron = re.compile(r"\$\{(\w+)\}")

    def reemplazar(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    return patron.sub(reemplazar, value)


def _resolve_env_recursive(data: Any) -> Any:
    """Resuelve ${VARIABLES} recursivamente en dicts y listas."""
    if isinstance(data, str):
        return _resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_recursive(item) for item in data]
    return data


def _dict_to_dataclass(data: dict, cls: type) -> Any:
    """
    Convierte un diccionario a una dataclass, ignorando keys desconocidas.

    Un config.yaml con una key nueva (o vieja) no debe tumbar el editor.
    """
    campos_validos = {f.name for f in cls.__dataclass_fields__.values()}
    datos_filtrados = {k: v for k, v in data.items() if k in campos_validos}
    return cls(**datos_filtrados)


def _find_config_dir() -> Path:
    """
    Busca config.yaml desde el directorio actual hacia arriba.

    Si no lo encuentra, usa el directorio actual.
    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        if (parent / "config.yaml").exists():
            return parent
    return current


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Carga la configuración completa de folio.

    Pasos:
    1. Carga .env para tener las variables de entorno disponibles
    2. Lee config.yaml (si no existe, valores por defecto)
    3. Resuelve ${VARIABLES}
    4. Convierte cada sección a su dataclass
    5. Agrega GITHUB_TOKEN del entorno

    Args:
        config_path: Ruta al config.yaml. Si es None, busca automáticamente.

    Returns:
        AppConfig lista para usar.
    """
    proyecto_dir = _find_config_dir()
    env_path = proyecto_dir / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        config_path = proyecto_dir / "config.yaml"

    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}
        config_resuelto = _resolve_env_recursive(raw_config)
        app_config = AppConfig(
            site=_dict_to_dataclass(config_resuelto.get("site", {}), SiteConfig),
            publish=_dict_to_dataclass(
                config_resuelto.get("publish", {}), PublishConfig
            ),
            deploy=_dict_to_dataclass(config_resuelto.get("deploy", {}), DeployConfig),
            server=_dict_to_dataclass(config_resuelto.get("server", {}), ServerConfig),
        )
    else:
        app_config = AppConfig()

    app_config.github_token = os.environ.get("GITHUB_TOKEN", "")

    return app_config
