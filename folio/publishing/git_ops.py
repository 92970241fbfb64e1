"""
git_ops.py — La secuencia git que publica el contenido.

Después de que el editor guardó los archivos, publish() hace:

    1. git pull --rebase --autostash (aterrizar encima del remoto)
    2. git add -A                 (stage de todo)
    3. git status --porcelain     (vacío → "no-changes", se detiene)
    4. git commit -m <mensaje>
    5. git push
    6. git rev-parse --short HEAD

El orden es fijo. pull va antes de add para nunca producir una rama
divergente, y el chequeo de cambios mira el working tree (no el flag
en memoria del editor): otros procesos también pueden ensuciarlo.

Si cualquier paso falla, los siguientes NO se ejecutan y el error de
git se propaga tal cual. Sin reintentos: un conflicto o un push
rechazado los tiene que resolver una persona.

Usamos GitPython (git.cmd.Git) como wrapper del binario git. Pedimos
la salida extendida sin excepciones para poder reportar el stderr de
git sin el formato que GitCommandError le agrega.

Uso:
    from folio.publishing.git_ops import GitCLI, PublishOrchestrator
    orchestrator = PublishOrchestrator(GitCLI(repo_path))
    resultado = orchestrator.publish("Update CV")
    if resultado == NO_CHANGES: ...
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from git.cmd import Git
from git.exc import GitCommandNotFound

from folio.errors import GitStepError
from folio.utils.logger import get_logger

logger = get_logger("folio.publishing.git")

# Centinela de "no había nada que commitear"
NO_CHANGES = "no-changes"

DEFAULT_COMMIT_MESSAGE = "Update content via admin"

PUBLISH_STEPS = 6


class GitRunner(Protocol):
    """Ejecuta un comando git y devuelve su stdout."""

    def run(self, *args: str) -> str:
        """Lanza GitStepError si git termina con código != 0."""
        ...


class GitCLI:
    """
    GitRunner real: ejecuta git dentro del repo del sitio.

    Args:
        repo_path: Ruta al repositorio local del sitio.
    """

    def __init__(self, repo_path: str | Path):
        self._repo_path = Path(repo_path)
        self._git: Git | None = None

    def _get_git(self) -> Git:
        if self._git is None:
            if not self._repo_path.exists():
                raise FileNotFoundError(
                    f"No se encontró el repositorio en: {self._repo_path}\n"
                    "Verifica site.repo_path en config.yaml."
                )
            self._git = Git(str(self._repo_path))
        return self._git

    def run(self, *args: str) -> str:
        command = "git " + " ".join(args)
        try:
            status, stdout, stderr = self._get_git().execute(
                ["git", *args],
                with_extended_output=True,
                with_exceptions=False,
            )
        except GitCommandNotFound as e:
            raise GitStepError(command, f"git no encontrado en PATH: {e}") from e

        if status != 0:
            output = (stderr or stdout or "").strip()
            raise GitStepError(command, output, status)
        return stdout


class PublishOrchestrator:
    """
    Secuencia pull → add → status → commit → push → rev-parse.

    Args:
        runner: Quien ejecuta git (GitCLI en producción, un fake en tests).
        default_message: Mensaje de commit cuando no se da uno.
    """

    def __init__(
        self,
        runner: GitRunner,
        default_message: str = DEFAULT_COMMIT_MESSAGE,
    ):
        self._runner = runner
        self._default_message = default_message

    def publish(self, commit_message: str | None = None) -> str:
        """
        Publica lo que haya en el working tree.

        Args:
            commit_message: Mensaje del commit. Vacío → mensaje por defecto.

        Returns:
            Hash corto del commit, o NO_CHANGES si el working tree
            estaba limpio (no se commitea ni se pushea nada).

        Raises:
            GitStepError: Si cualquier paso falla. Los pasos siguientes
                no se ejecutan.
        """
        mensaje = commit_message if commit_message and commit_message.strip() else self._default_message

        # --autostash: después de un save el working tree tiene cambios sin stagear
        self._run_step(1, "pull", "--rebase", "--autostash")
        self._run_step(2, "add", "-A")
        cambios = self._run_step(3, "status", "--porcelain")

        if not cambios.strip():
            logger.info("Working tree limpio — nada que publicar")
            return NO_CHANGES

        self._run_step(4, "commit", "-m", mensaje)
        self._run_step(5, "push")
        commit_hash = self._run_step(6, "rev-parse", "--short", "HEAD").strip()

        logger.success(f"Publicado: {commit_hash} — {mensaje}")
        return commit_hash

    def remote_url(self, remote: str = "origin") -> str:
        """URL del remote (git remote get-url origin)."""
        return self._runner.run("remote", "get-url", remote).strip()

    def _run_step(self, number: int, *args: str) -> str:
        comando = "git " + " ".join(args[:2])
        logger.step(number, PUBLISH_STEPS, comando)
        try:
            return self._runner.run(*args)
        except GitStepError as e:
            logger.error(f"Falló {e.command}: {e.output}")
            raise
