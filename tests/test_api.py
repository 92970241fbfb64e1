"""
test_api.py — Tests para la API local del editor.

Verifica:
- Health check
- GET/PUT de content.json (save con y sin cambios, body inválido)
- Publish: 409 sin cambios pendientes, "no-changes", hash real, error de git
- deploy-status: falta sha, error de la API de GitHub, status OK
- CRUD de posts del blog (y posts con front matter roto)
- Lighthouse: null sin archivo, puntajes, JSON corrupto
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from folio.api import create_app
from folio.config import AppConfig
from folio.content.store import ContentStore
from folio.coordinator import EditorSession
from folio.errors import DeployStatusAPIError, GitStepError
from folio.publishing.deploy_monitor import DeployStatus
from folio.publishing.git_ops import PublishOrchestrator


class FakeGit:
    def __init__(self, status: str = " M content/content.json", fail_on: str | None = None):
        self.calls: list[tuple[str, ...]] = []
        self.status = status
        self.fail_on = fail_on

    def run(self, *args: str) -> str:
        self.calls.append(args)
        if args[0] == self.fail_on:
            raise GitStepError("git " + args[0], "fatal: could not read from remote", 128)
        if args[0] == "status":
            return self.status
        if args[0] == "rev-parse":
            return "abc1234\n"
        return ""


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config(tmp_path):
    cfg = AppConfig()
    cfg.site.repo_path = str(tmp_path)
    cfg.content_path.parent.mkdir(parents=True)
    cfg.content_path.write_text(
        json.dumps({"home": {"title": "Hola"}}), encoding="utf-8"
    )
    return cfg


def _client(config, git=None, fetch_status=None) -> TestClient:
    clock = FakeClock()
    session = EditorSession(
        ContentStore(config.content_path),
        PublishOrchestrator(git or FakeGit()),
        lambda sha: DeployStatus.SUCCESS,
        clock=clock,
        sleep=clock.sleep,
    )
    app = create_app(config=config, session=session, fetch_status=fetch_status)
    return TestClient(app)


@pytest.fixture
def client(config):
    with _client(config) as c:
        yield c


# ================================================================
# Health
# ================================================================

class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["publishing"] is False
        assert "uptime_seconds" in data


# ================================================================
# Contenido
# ================================================================

class TestContent:
    def test_get_content(self, client):
        resp = client.get("/api/admin/content")
        assert resp.status_code == 200
        assert resp.json() == {"home": {"title": "Hola"}}

    def test_put_con_cambios(self, client, config):
        client.get("/api/admin/content")
        resp = client.put("/api/admin/content", json={"home": {"title": "Hello"}})
        assert resp.status_code == 200
        data = resp.json()
        assert data["changed"] is True
        assert data["message"] == "Saved!"
        assert data["unpublished"] is True
        assert json.loads(config.content_path.read_text())["home"]["title"] == "Hello"

    def test_put_sin_cambios(self, client):
        client.get("/api/admin/content")
        resp = client.put("/api/admin/content", json={"home": {"title": "Hola"}})
        data = resp.json()
        assert data["changed"] is False
        assert data["message"] == "No changes to save."
        assert data["unpublished"] is False

    def test_put_json_invalido(self, client):
        resp = client.put(
            "/api/admin/content",
            content="{roto",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_put_no_objeto(self, client):
        resp = client.put("/api/admin/content", json=[1, 2, 3])
        assert resp.status_code == 400

    def test_get_sin_archivo(self, client, config):
        config.content_path.unlink()
        resp = client.get("/api/admin/content")
        assert resp.status_code == 500
        assert "error" in resp.json()


# ================================================================
# Publish
# ================================================================

class TestPublish:
    def test_sin_cambios_pendientes(self, client):
        resp = client.post("/api/admin/publish")
        assert resp.status_code == 409

    def test_publish_con_hash(self, client):
        client.get("/api/admin/content")
        client.put("/api/admin/content", json={"home": {"title": "Hello"}})

        resp = client.post("/api/admin/publish", json={"message": "Update home"})

        assert resp.status_code == 200
        assert resp.json()["hash"] == "abc1234"
        sesion = client.get("/api/admin/session").json()
        assert sesion["unpublished"] is False
        assert sesion["last_commit"] == "abc1234"

    def test_no_changes(self, config):
        with _client(config, git=FakeGit(status="")) as client:
            client.get("/api/admin/content")
            client.put("/api/admin/content", json={"home": {"title": "Hello"}})
            resp = client.post("/api/admin/publish")

        assert resp.status_code == 200
        assert resp.json() == {"hash": "no-changes", "message": "Nothing to publish."}

    def test_error_de_git(self, config):
        with _client(config, git=FakeGit(fail_on="push")) as client:
            client.get("/api/admin/content")
            client.put("/api/admin/content", json={"home": {"title": "Hello"}})
            resp = client.post("/api/admin/publish")
            sesion = client.get("/api/admin/session").json()

        assert resp.status_code == 500
        assert "fatal: could not read from remote" in resp.json()["error"]
        assert sesion["unpublished"] is True
        assert sesion["publishing"] is False

    def test_cancelar_sin_monitor(self, client):
        resp = client.delete("/api/admin/publish/watch")
        assert resp.json() == {"cancelled": False}


# ================================================================
# deploy-status
# ================================================================

class TestDeployStatus:
    def test_falta_sha(self, client):
        resp = client.get("/api/admin/deploy-status")
        assert resp.status_code == 400

    def test_status_ok(self, config):
        with _client(config, fetch_status=lambda sha: DeployStatus.PENDING) as client:
            resp = client.get("/api/admin/deploy-status", params={"sha": "abc1234"})
        assert resp.status_code == 200
        assert resp.json() == {"status": "pending"}

    def test_error_de_la_api(self, config):
        def fetch(sha):
            raise DeployStatusAPIError(403)

        with _client(config, fetch_status=fetch) as client:
            resp = client.get("/api/admin/deploy-status", params={"sha": "abc1234"})
        assert resp.status_code == 502
        assert resp.json() == {"error": "GitHub API returned 403"}

    def test_error_inesperado(self, config):
        def fetch(sha):
            raise ValueError("Unexpected response body")

        with _client(config, fetch_status=fetch) as client:
            resp = client.get("/api/admin/deploy-status", params={"sha": "abc1234"})
        assert resp.status_code == 500


# ================================================================
# Blog
# ================================================================

_POST = {
    "slug": "hola-mundo",
    "title": "Hola Mundo",
    "date": "2026-03-01",
    "excerpt": "Primer post",
    "tags": ["python"],
    "content": "# Hola\n",
}


class TestBlog:
    def test_lista_vacia(self, client):
        assert client.get("/api/admin/blog").json() == []

    def test_crear_y_leer(self, client):
        resp = client.post("/api/admin/blog", json=_POST)
        assert resp.status_code == 201

        resp = client.get("/api/admin/blog/hola-mundo")
        assert resp.status_code == 200
        assert resp.json() == _POST

        listado = client.get("/api/admin/blog").json()
        assert [p["slug"] for p in listado] == ["hola-mundo"]

    def test_crear_duplicado(self, client):
        client.post("/api/admin/blog", json=_POST)
        resp = client.post("/api/admin/blog", json=_POST)
        assert resp.status_code == 409

    def test_crear_sin_titulo(self, client):
        resp = client.post("/api/admin/blog", json={"slug": "x"})
        assert resp.status_code == 400

    def test_slug_invalido(self, client):
        resp = client.post("/api/admin/blog", json={**_POST, "slug": "Con Espacios"})
        assert resp.status_code == 400

    def test_leer_inexistente(self, client):
        assert client.get("/api/admin/blog/no-existe").status_code == 404

    def test_actualizar(self, client):
        client.post("/api/admin/blog", json=_POST)
        resp = client.put(
            "/api/admin/blog/hola-mundo", json={**_POST, "title": "Nuevo título"}
        )
        assert resp.status_code == 200
        assert client.get("/api/admin/blog/hola-mundo").json()["title"] == "Nuevo título"

    def test_actualizar_inexistente(self, client):
        resp = client.put("/api/admin/blog/no-existe", json=_POST)
        assert resp.status_code == 404

    def test_borrar(self, client):
        client.post("/api/admin/blog", json=_POST)
        assert client.delete("/api/admin/blog/hola-mundo").status_code == 200
        assert client.delete("/api/admin/blog/hola-mundo").status_code == 404

    def test_post_con_front_matter_roto(self, client, config):
        config.blog_path.mkdir(parents=True)
        (config.blog_path / "roto.md").write_text(
            "---\ntitle: [sin cerrar\n---\n\nHola\n", encoding="utf-8"
        )

        resp = client.get("/api/admin/blog")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to list blog posts"}

        resp = client.get("/api/admin/blog/roto")
        assert resp.status_code == 500
        assert "error" in resp.json()

    def test_slug_invalido_al_leer(self, client):
        assert client.get("/api/admin/blog/Mayus").status_code == 400


# ================================================================
# Lighthouse
# ================================================================

class TestLighthouse:
    def test_sin_archivo_devuelve_null(self, client):
        resp = client.get("/api/admin/lighthouse")
        assert resp.status_code == 200
        assert resp.json() is None

    def test_lee_los_puntajes(self, client, config):
        config.lighthouse_path.write_text(
            json.dumps({"performance": 98, "accessibility": 100}), encoding="utf-8"
        )
        resp = client.get("/api/admin/lighthouse")
        assert resp.json() == {"performance": 98, "accessibility": 100}

    def test_json_corrupto(self, client, config):
        config.lighthouse_path.write_text("{roto", encoding="utf-8")
        resp = client.get("/api/admin/lighthouse")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to read lighthouse.json"}
