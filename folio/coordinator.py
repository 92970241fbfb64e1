"""
coordinator.py — Una sesión de edición: Save y Publish.

EditorSession conecta las piezas que el editor local necesita:

    save()    → ContentStore.write + ChangeTracker
    publish() → PublishOrchestrator + DeployMonitor

Y es dueña del estado de la sesión (nada de globals de módulo):

    - snapshot del último contenido guardado (vía ChangeTracker)
    - unpublished: hay un save con cambios que todavía no se publicó
    - publishing: hay un publish en vuelo (incluye esperar el deploy)
    - el DeployMonitor activo, para poder cancelarlo

Reglas:
    - Un save sin cambios reales NO marca unpublished.
    - publish() solo se permite con unpublished=True y sin otro
      publish en vuelo. Una llamada concurrente se rechaza, no se encola.
    - Hash real → unpublished=False y arranca el monitor.
      "no-changes" → "Nothing to publish.", sin monitor.

Uso:
    session = EditorSession.from_config(load_config())
    data = session.load()
    data["home"]["title"] = "Hola"
    await session.save(data)
    await session.publish("Update home")
    await session.wait_for_deploy()
    session.publish_message   # "Published (abc1234)"
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from folio.config import AppConfig
from folio.content.store import ContentStore, clean_content
from folio.errors import ContentStoreError, PublishRejectedError
from folio.publishing.change_tracker import ChangeTracker
from folio.publishing.deploy_monitor import (
    DeployMonitor,
    DeployState,
    DeployStatus,
    GitHubActionsClient,
    POLL_INTERVAL_SECONDS,
    TIMEOUT_SECONDS,
)
from folio.publishing.git_ops import GitCLI, NO_CHANGES, PublishOrchestrator
from folio.utils.logger import get_logger

logger = get_logger("folio.coordinator")

MSG_SAVED = "Saved!"
MSG_NO_CHANGES_TO_SAVE = "No changes to save."
MSG_SAVE_FAILED = "Save failed."
MSG_NOTHING_TO_PUBLISH = "Nothing to publish."
MSG_WATCH_CANCELLED = "Stopped watching the deploy."


@dataclass
class SaveResult:
    """Resultado de save(): si cambió algo y el contenido ya limpio."""
    changed: bool
    message: str
    data: dict[str, Any]


class EditorSession:
    """
    Estado y operaciones de una sesión del editor.

    Args:
        store: Dónde se guarda el contenido.
        orchestrator: Secuencia git de publish.
        fetch_status: sha → DeployStatus (GitHubActionsClient.fetch_status).
        poll_interval: Segundos entre polls del deploy.
        deploy_timeout: Segundos máximos esperando el deploy.
        clock, sleep: Se pasan al DeployMonitor (tests con tiempo virtual).
    """

    def __init__(
        self,
        store: ContentStore,
        orchestrator: PublishOrchestrator,
        fetch_status: Callable[[str], DeployStatus],
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        deploy_timeout: float = TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._store = store
        self._orchestrator = orchestrator
        self._fetch_status = fetch_status
        self._poll_interval = poll_interval
        self._deploy_timeout = deploy_timeout
        self._clock = clock
        self._sleep = sleep

        self._tracker = ChangeTracker()
        self._monitor: DeployMonitor | None = None
        self._closed = False

        self.unpublished = False
        self.publishing = False
        self.message = ""
        self.publish_message = ""
        self.last_commit: str | None = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "EditorSession":
        """Arma la sesión con las piezas reales (git + GitHub API)."""
        orchestrator = PublishOrchestrator(
            GitCLI(config.repo_path),
            default_message=config.publish.default_commit_message,
        )
        client = GitHubActionsClient.from_config(
            config, lambda: orchestrator.remote_url(config.publish.remote)
        )
        return cls(
            ContentStore(config.content_path),
            orchestrator,
            client.fetch_status,
            poll_interval=config.deploy.poll_interval_seconds,
            deploy_timeout=config.deploy.timeout_seconds,
        )

    # ============================================================
    # Contenido
    # ============================================================

    def load(self) -> dict[str, Any]:
        """Lee el contenido y toma el snapshot inicial."""
        data = self._store.read()
        self._tracker.snapshot(data)
        return data

    def is_dirty(self, current: dict[str, Any]) -> bool:
        """¿`current` tiene cambios sin guardar?"""
        return self._tracker.is_dirty(current)

    def reset(self) -> dict[str, Any]:
        """Descarta los cambios: devuelve el último contenido guardado."""
        self.message = ""
        return self._tracker.restore()

    async def save(self, data: dict[str, Any]) -> SaveResult:
        """
        Persiste el contenido y actualiza el snapshot.

        Raises:
            ContentStoreError: Si la escritura falla (el snapshot y
                unpublished no cambian).
        """
        limpio = clean_content(data)
        try:
            await asyncio.to_thread(self._store.write, limpio)
        except ContentStoreError as e:
            self.message = MSG_SAVE_FAILED
            logger.error(f"Save falló: {e}")
            raise

        if self._tracker.is_dirty(limpio):
            self._tracker.commit(limpio)
            self.unpublished = True
            self.publish_message = ""
            self.message = MSG_SAVED
            return SaveResult(changed=True, message=self.message, data=limpio)

        self.message = MSG_NO_CHANGES_TO_SAVE
        return SaveResult(changed=False, message=self.message, data=limpio)

    # ============================================================
    # Publish + deploy
    # ============================================================

    @property
    def fetch_status(self) -> Callable[[str], DeployStatus]:
        return self._fetch_status

    @property
    def can_publish(self) -> bool:
        return self.unpublished and not self.publishing

    @property
    def deploy_state(self) -> DeployState | None:
        return self._monitor.state if self._monitor is not None else None

    async def publish(self, commit_message: str | None = None) -> str:
        """
        Publica los cambios guardados.

        Returns:
            Hash corto del commit, o "no-changes".

        Raises:
            PublishRejectedError: Sin cambios pendientes o con otro
                publish en vuelo.
            GitStepError: Un paso git falló (mensaje verbatim en
                publish_message).
        """
        if self.publishing:
            raise PublishRejectedError("A publish is already in progress")
        if not self.unpublished:
            raise PublishRejectedError("Nothing to publish: save your changes first")

        # Sin await entre el chequeo de arriba y esta asignación
        self.publishing = True
        self.publish_message = ""
        self._stop_monitor()

        try:
            resultado = await asyncio.to_thread(self._orchestrator.publish, commit_message)
        except asyncio.CancelledError:
            # El thread de git sigue hasta terminar; su resultado se pierde
            self.publishing = False
            raise
        except Exception as e:
            self.publish_message = str(e) or "Publish failed."
            self.publishing = False
            raise

        if resultado == NO_CHANGES:
            self.publish_message = MSG_NOTHING_TO_PUBLISH
            self.publishing = False
            return resultado

        self.unpublished = False
        self.last_commit = resultado
        if self._closed:
            self.publishing = False
            return resultado

        self._start_monitor(resultado)
        return resultado

    async def wait_for_deploy(self) -> DeployState | None:
        """Espera al monitor activo. None si no hay ninguno."""
        if self._monitor is None:
            return None
        return await self._monitor.wait()

    def cancel_deploy_watch(self) -> bool:
        """
        Deja de esperar el deploy (el deploy en GitHub sigue su curso).

        Returns:
            True si había un monitor corriendo.
        """
        monitor = self._monitor
        if monitor is None or monitor.state.is_terminal or monitor.stopped:
            return False
        self._stop_monitor()
        self.publishing = False
        self.publish_message = MSG_WATCH_CANCELLED
        return True

    def close(self) -> None:
        """Fin de la sesión: cancela el monitor si sigue corriendo."""
        self._closed = True
        self._stop_monitor()
        self.publishing = False

    def status(self) -> dict[str, Any]:
        """Estado para la UI."""
        estado = self.deploy_state
        return {
            "unpublished": self.unpublished,
            "publishing": self.publishing,
            "can_publish": self.can_publish,
            "message": self.message,
            "publish_message": self.publish_message,
            "last_commit": self.last_commit,
            "deploy_state": estado.value if estado is not None else None,
        }

    # --- internos ---

    def _start_monitor(self, commit_hash: str) -> None:
        monitor = DeployMonitor(
            commit_hash,
            self._fetch_status,
            interval=self._poll_interval,
            timeout=self._deploy_timeout,
            clock=self._clock,
            sleep=self._sleep,
            on_update=self._on_deploy_update,
        )
        self._monitor = monitor
        self.publish_message = monitor.message
        monitor.start()

    def _stop_monitor(self) -> None:
        if self._monitor is not None:
            self._monitor.stop()

    def _on_deploy_update(self, monitor: DeployMonitor) -> None:
        if monitor is not self._monitor:
            return
        self.publish_message = monitor.message
        if monitor.state.is_terminal:
            self.publishing = False
