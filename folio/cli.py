"""
cli.py — Punto de entrada de folio.

Comandos disponibles:
    python -m folio serve                      → API local del editor
    python -m folio publish -m "Update CV"     → git + espera el deploy
    python -m folio publish --no-watch         → git, sin esperar el deploy
    python -m folio deploy-status abc1234      → Estado en GitHub Actions
    python -m folio config --show              → Muestra configuración

Uso desde código (testing):
    from click.testing import CliRunner
    from folio.cli import main
    CliRunner().invoke(main, ["config", "--show"])
"""

from __future__ import annotations

import asyncio
import sys

import click
import requests
from rich.table import Table

from folio import __version__
from folio.config import AppConfig, load_config
from folio.errors import FolioError, GitStepError
from folio.publishing.deploy_monitor import (
    DeployMonitor,
    DeployState,
    GitHubActionsClient,
)
from folio.publishing.git_ops import GitCLI, NO_CHANGES, PublishOrchestrator
from folio.utils.logger import get_logger, console as rich_console

logger = get_logger("folio.cli")


@click.group()
@click.version_option(version=__version__, prog_name="folio")
def main():
    """Editor local de contenido + publish del sitio."""
    pass


@main.command()
@click.option("--host", default=None, help="Host (por defecto server.host de config.yaml)")
@click.option("--port", default=None, type=int, help="Puerto (por defecto server.port)")
def serve(host: str | None, port: int | None):
    """Levanta la API local del editor."""
    import uvicorn

    from folio.api import create_app

    cfg = load_config()
    host = host or cfg.server.host
    port = port or cfg.server.port
    if host not in ("127.0.0.1", "localhost", "::1"):
        logger.warning(f"Sirviendo en {host}: la API no tiene autenticación")

    logger.info(f"Editor en http://{host}:{port}")
    uvicorn.run(create_app(cfg), host=host, port=port)


@main.command()
@click.option("--message", "-m", default=None, help="Mensaje del commit")
@click.option(
    "--no-watch",
    is_flag=True,
    default=False,
    help="No esperar a que GitHub Actions termine el deploy",
)
def publish(message: str | None, no_watch: bool):
    """Commitea y pushea el contenido, y espera el deploy."""
    cfg = load_config()
    orchestrator = PublishOrchestrator(
        GitCLI(cfg.repo_path),
        default_message=cfg.publish.default_commit_message,
    )

    try:
        resultado = orchestrator.publish(message)
    except (GitStepError, OSError) as e:
        logger.error(f"Publish failed: {e}")
        sys.exit(1)

    if resultado == NO_CHANGES:
        logger.info("Nothing to publish.")
        return

    logger.success(f"Push exitoso: {resultado}")
    if no_watch:
        return

    client = GitHubActionsClient.from_config(
        cfg, lambda: orchestrator.remote_url(cfg.publish.remote)
    )
    monitor = asyncio.run(_watch_deploy(resultado, client, cfg))

    rich_console.print(monitor.message)
    if monitor.state is not DeployState.SUCCESS:
        sys.exit(1)


async def _watch_deploy(
    commit_hash: str,
    client: GitHubActionsClient,
    cfg: AppConfig,
) -> DeployMonitor:
    """Corre el DeployMonitor con un spinner de Rich."""
    with rich_console.status(f"Deploying {commit_hash}…") as spinner:
        monitor = DeployMonitor(
            commit_hash,
            client.fetch_status,
            interval=cfg.deploy.poll_interval_seconds,
            timeout=cfg.deploy.timeout_seconds,
            on_update=lambda m: spinner.update(m.message),
        )
        monitor.start()
        await monitor.wait()
    return monitor


@main.command(name="deploy-status")
@click.argument("sha")
def deploy_status(sha: str):
    """Consulta el estado del deploy de un commit."""
    cfg = load_config()
    runner = GitCLI(cfg.repo_path)
    client = GitHubActionsClient.from_config(
        cfg, lambda: runner.run("remote", "get-url", cfg.publish.remote).strip()
    )
    try:
        status = client.fetch_status(sha)
    except (FolioError, requests.RequestException, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)
    rich_console.print(status.value)


@main.command()
@click.option("--show", is_flag=True, help="Muestra la configuración actual")
def config(show: bool):
    """Gestiona la configuración de folio."""
    cfg = load_config()

    if show:
        tabla = Table(title="Configuración de folio")
        tabla.add_column("Parámetro", style="cyan")
        tabla.add_column("Valor", style="green")

        tabla.add_row("Repo", str(cfg.repo_path))
        tabla.add_row("Contenido", cfg.site.content_file)
        tabla.add_row("Blog", cfg.site.blog_dir)
        tabla.add_row("Mensaje de commit", cfg.publish.default_commit_message)
        tabla.add_row("Remote", cfg.publish.remote)
        tabla.add_row("Intervalo de polling", f"{cfg.deploy.poll_interval_seconds:g}s")
        tabla.add_row("Timeout de deploy", f"{cfg.deploy.timeout_seconds:g}s")
        tabla.add_row("GITHUB_TOKEN", "configurado" if cfg.github_token else "no configurado")
        tabla.add_row("Servidor", f"{cfg.server.host}:{cfg.server.port}")

        rich_console.print(tabla)
    else:
        click.echo(click.get_current_context().get_help())
