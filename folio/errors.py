"""
errors.py — Taxonomía de errores de folio.

Cada error corresponde a una forma distinta de fallar:

- GitStepError: un comando git terminó con código != 0.
  Se propaga tal cual (conflictos, auth, push rechazado) — sin retry,
  porque necesita que un humano intervenga.
- DeployStatusAPIError: GitHub respondió algo que no es 2xx.
  El estado del deploy es desconocido, NO es un workflow fallido.
- RemoteURLError: el remote de git no apunta a GitHub.
  Falla antes de cualquier llamada de red.
- PublishRejectedError: publish() llamado sin cambios pendientes
  o con otro publish en vuelo.
- ContentStoreError (+ PostNotFoundError, PostExistsError): lectura o
  escritura de archivos de contenido.

"Sin cambios" al publicar NO es un error: es el valor "no-changes".
"""

from __future__ import annotations


class FolioError(Exception):
    """Base de todos los errores de folio."""


class GitStepError(FolioError):
    """
    Un paso de la secuencia git falló.

    Attributes:
        command: El comando ejecutado (ej: "git push").
        output: Salida de git, sin modificar.
        status: Código de salida.
    """

    def __init__(self, command: str, output: str, status: int | None = None):
        self.command = command
        self.output = output
        self.status = status
        super().__init__(f"{command} failed: {output}" if output else f"{command} failed")


class DeployStatusAPIError(FolioError):
    """GitHub API respondió con un status no-2xx."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"GitHub API returned {status_code}")


class RemoteURLError(FolioError):
    """El remote de git no se puede interpretar como repo de GitHub."""


class PublishRejectedError(FolioError):
    """publish() no está permitido en el estado actual de la sesión."""


class ContentStoreError(FolioError):
    """Error leyendo o escribiendo archivos de contenido."""


class PostNotFoundError(ContentStoreError):
    """El post pedido no existe."""


class PostExistsError(ContentStoreError):
    """Ya existe un post con ese slug."""
