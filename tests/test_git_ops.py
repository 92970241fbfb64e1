"""
test_git_ops.py — Tests para la secuencia git de publish.

Verifica:
- Orden exacto: pull, add, status, commit, push, rev-parse
- Idempotencia: working tree limpio → "no-changes" sin commit ni push
- Un paso que falla aborta los siguientes y propaga el error verbatim
- Mensaje de commit por defecto
- GitCLI contra un repo real con remoto bare (si hay git instalado)
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from folio.errors import GitStepError
from folio.publishing.git_ops import (
    DEFAULT_COMMIT_MESSAGE,
    GitCLI,
    NO_CHANGES,
    PublishOrchestrator,
)


class FakeGit:
    """GitRunner que registra los comandos y devuelve respuestas fijas."""

    def __init__(self, status: str = " M content/content.json\n", fail_on: str | None = None):
        self.calls: list[tuple[str, ...]] = []
        self.status = status
        self.fail_on = fail_on

    def run(self, *args: str) -> str:
        self.calls.append(args)
        if args[0] == self.fail_on:
            raise GitStepError("git " + " ".join(args), f"fatal: {args[0]} exploded", 1)
        if args[0] == "status":
            return self.status
        if args[0] == "rev-parse":
            return "abc1234\n"
        if args[0] == "remote":
            return "git@github.com:acme/site.git\n"
        return ""

    @property
    def commands(self) -> list[str]:
        return [c[0] for c in self.calls]


# ================================================================
# Orden y resultado
# ================================================================

class TestPublishSequence:
    def test_orden_exacto(self):
        """Un publish exitoso ejecuta los 6 pasos en orden."""
        git = FakeGit()
        PublishOrchestrator(git).publish("Update CV")
        assert git.calls == [
            ("pull", "--rebase", "--autostash"),
            ("add", "-A"),
            ("status", "--porcelain"),
            ("commit", "-m", "Update CV"),
            ("push",),
            ("rev-parse", "--short", "HEAD"),
        ]

    def test_devuelve_hash_corto(self):
        assert PublishOrchestrator(FakeGit()).publish("x") == "abc1234"

    def test_mensaje_por_defecto(self):
        git = FakeGit()
        PublishOrchestrator(git).publish()
        assert ("commit", "-m", DEFAULT_COMMIT_MESSAGE) in git.calls

    def test_mensaje_en_blanco_usa_el_default(self):
        git = FakeGit()
        PublishOrchestrator(git, default_message="Publicar").publish("   ")
        assert ("commit", "-m", "Publicar") in git.calls

    def test_remote_url(self):
        git = FakeGit()
        assert PublishOrchestrator(git).remote_url() == "git@github.com:acme/site.git"
        assert git.calls == [("remote", "get-url", "origin")]


class TestNoChanges:
    def test_working_tree_limpio(self):
        """status vacío → "no-changes", sin commit ni push."""
        git = FakeGit(status="")
        assert PublishOrchestrator(git).publish("x") == NO_CHANGES
        assert git.commands == ["pull", "add", "status"]

    def test_status_solo_con_espacios(self):
        git = FakeGit(status="\n  \n")
        assert PublishOrchestrator(git).publish("x") == NO_CHANGES

    def test_segundo_publish_es_noop(self):
        """Publicar dos veces sin editar: el segundo no commitea."""
        git = FakeGit()
        orchestrator = PublishOrchestrator(git)
        assert orchestrator.publish("x") == "abc1234"

        git.calls.clear()
        git.status = ""
        assert orchestrator.publish("x") == NO_CHANGES
        assert "commit" not in git.commands
        assert "push" not in git.commands


class TestFailures:
    @pytest.mark.parametrize(
        "paso, ejecutados",
        [
            ("pull", ["pull"]),
            ("add", ["pull", "add"]),
            ("commit", ["pull", "add", "status", "commit"]),
            ("push", ["pull", "add", "status", "commit", "push"]),
        ],
    )
    def test_fallo_aborta_los_pasos_siguientes(self, paso, ejecutados):
        git = FakeGit(fail_on=paso)
        with pytest.raises(GitStepError):
            PublishOrchestrator(git).publish("x")
        assert git.commands == ejecutados

    def test_error_verbatim(self):
        git = FakeGit(fail_on="push")
        with pytest.raises(GitStepError) as exc_info:
            PublishOrchestrator(git).publish("x")
        assert exc_info.value.output == "fatal: push exploded"
        assert "fatal: push exploded" in str(exc_info.value)
        assert exc_info.value.command == "git push"


# ================================================================
# GitCLI contra git real
# ================================================================

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git no instalado")


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


@pytest.fixture
def sitio(tmp_path):
    """Clon local de un remoto bare con un commit inicial."""
    remoto = tmp_path / "remoto.git"
    local = tmp_path / "sitio"
    _git(tmp_path, "init", "--bare", str(remoto))
    _git(tmp_path, "clone", str(remoto), str(local))
    _git(local, "config", "user.email", "editor@example.com")
    _git(local, "config", "user.name", "Editor")
    _git(local, "config", "commit.gpgsign", "false")

    contenido = local / "content" / "content.json"
    contenido.parent.mkdir(parents=True)
    contenido.write_text('{"home": {"title": "Hola"}}\n', encoding="utf-8")
    _git(local, "add", "-A")
    _git(local, "commit", "-m", "init")
    _git(local, "push", "-u", "origin", "HEAD")
    return local


@requires_git
class TestGitCLI:
    def test_publish_real(self, sitio):
        (sitio / "content" / "content.json").write_text(
            '{"home": {"title": "Hello"}}\n', encoding="utf-8"
        )
        orchestrator = PublishOrchestrator(GitCLI(sitio))

        commit_hash = orchestrator.publish("Update home")

        assert commit_hash == _git(sitio, "rev-parse", "--short", "HEAD")
        remoto = sitio.parent / "remoto.git"
        assert _git(remoto, "log", "-1", "--format=%s") == "Update home"

    def test_publish_con_commit_nuevo_en_el_remoto(self, sitio):
        """Otro clon pushea mientras editamos un archivo trackeado."""
        otro = sitio.parent / "otro"
        _git(sitio.parent, "clone", str(sitio.parent / "remoto.git"), str(otro))
        _git(otro, "config", "user.email", "otro@example.com")
        _git(otro, "config", "user.name", "Otro")
        _git(otro, "config", "commit.gpgsign", "false")
        (otro / "README.md").write_text("# sitio\n", encoding="utf-8")
        _git(otro, "add", "-A")
        _git(otro, "commit", "-m", "readme")
        _git(otro, "push")

        (sitio / "content" / "content.json").write_text(
            '{"home": {"title": "Hello"}}\n', encoding="utf-8"
        )
        PublishOrchestrator(GitCLI(sitio)).publish("Update home")

        assert (sitio / "README.md").exists()
        remoto = sitio.parent / "remoto.git"
        assert _git(remoto, "log", "-2", "--format=%s").splitlines() == ["Update home", "readme"]

    def test_publish_real_idempotente(self, sitio):
        (sitio / "nuevo.md").write_text("# nuevo\n", encoding="utf-8")
        orchestrator = PublishOrchestrator(GitCLI(sitio))
        assert orchestrator.publish("Add post") != NO_CHANGES
        assert orchestrator.publish("Add post") == NO_CHANGES

    def test_remote_url_real(self, sitio):
        url = PublishOrchestrator(GitCLI(sitio)).remote_url()
        assert url.endswith("remoto.git")

    def test_fuera_de_un_repo(self, tmp_path):
        with pytest.raises(GitStepError) as exc_info:
            GitCLI(tmp_path).run("status", "--porcelain")
        assert exc_info.value.status != 0
        assert "git" in exc_info.value.output.lower()

    def test_ruta_inexistente(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            GitCLI(tmp_path / "no-existe").run("status")
