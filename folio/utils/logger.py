"""
logger.py — Logging de folio usando Rich + archivo rotativo.

Dual output:
- Rich console: colores para el editor local y el CLI
- Archivo rotativo: logs/folio.log para revisar un publish fallido

Uso:
    from folio.utils.logger import get_logger, console
    logger = get_logger("folio.publishing")
    logger.step(1, 6, "git pull --rebase")
    logger.success("Push exitoso")
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

# En pytest no escribimos archivos de log
_in_pytest = "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ

folio_theme = Theme({
    "info": "cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "step": "bold magenta",
})

console = Console(theme=folio_theme)

_file_logger: logging.Logger | None = None


def _setup_file_logger() -> logging.Logger:
    """Configura el logger de archivo con rotacion."""
    global _file_logger
    if _file_logger is not None:
        return _file_logger

    if _in_pytest:
        _file_logger = logging.getLogger("folio.null")
        _file_logger.addHandler(logging.NullHandler())
        return _file_logger

    log_dir = Path(os.environ.get("FOLIO_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    _file_logger = logging.getLogger("folio.file")
    _file_logger.setLevel(logging.DEBUG)

    if not _file_logger.handlers:
        handler = RotatingFileHandler(
            log_dir / "folio.log",
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=5,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        _file_logger.addHandler(handler)

    return _file_logger


class FolioLogger:
    """
    Logger con salida Rich + archivo.

    Cada módulo crea el suyo con un nombre para saber de dónde
    viene cada mensaje (ej: "folio.publishing.git").

    Args:
        name: Nombre del módulo.
    """

    def __init__(self, name: str):
        self._name = name
        self._file = _setup_file_logger()

    def info(self, message: str) -> None:
        """Mensaje informativo (cyan)."""
        console.print(f"[info]i  {escape(message)}[/info]", highlight=False)
        self._file.info(f"[{self._name}] {message}")

    def success(self, message: str) -> None:
        """Mensaje de éxito (verde)."""
        console.print(f"[success][OK] {escape(message)}[/success]", highlight=False)
        self._file.info(f"[{self._name}] OK: {message}")

    def warning(self, message: str) -> None:
        """Mensaje de advertencia (amarillo)."""
        console.print(f"[warning][!] {escape(message)}[/warning]", highlight=False)
        self._file.warning(f"[{self._name}] {message}")

    def error(self, message: str) -> None:
        """Mensaje de error (rojo)."""
        console.print(f"[error][X] {escape(message)}[/error]", highlight=False)
        self._file.error(f"[{self._name}] {message}")

    def step(self, number: int, total: int, message: str) -> None:
        """Paso numerado de un proceso (ej: la secuencia de publish)."""
        console.print(f"[step]  [{number}/{total}] {escape(message)}[/step]", highlight=False)
        self._file.info(f"[{self._name}] [{number}/{total}] {message}")


def get_logger(name: str = "folio") -> FolioLogger:
    """
    Obtiene un logger para el módulo especificado.

    Ejemplo:
        logger = get_logger("folio.deploy")
        logger.info("Esperando a GitHub Actions...")
    """
    return FolioLogger(name)
