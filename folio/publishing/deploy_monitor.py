"""
deploy_monitor.py — ¿Ya se deployó el commit que acabamos de pushear?

Después de un push, GitHub Actions construye y publica el sitio.
Este módulo consulta la API de GitHub hasta que el workflow del
commit termina, o hasta que pasan 5 minutos.

Piezas:
    resolve_repo_coordinates() → owner/repo desde el remote de git
    GitHubActionsClient        → GET /repos/{owner}/{repo}/actions/runs
    classify_error()           → ¿reintentar o abortar?
    next_state()               → transición pura de la máquina de estados
    DeployMonitor              → el loop de polling (asyncio, cancelable)

Máquina de estados:

    polling ──success──→ success
       │  ├──failure──→ failure
       │  ├──HTTP no-2xx──→ api_error
       │  └──pending / error de red──→ polling (próximo tick en 6s)
       └──elapsed > 5 min──→ timed_out

El primer poll es inmediato (deploys rápidos se reportan enseguida);
los siguientes esperan el intervalo completo. El monitor solo LEE:
nunca modifica nada en GitHub.

Uso:
    client = GitHubActionsClient(orchestrator.remote_url, token=token)
    monitor = DeployMonitor("abc1234", client.fetch_status)
    monitor.start()
    estado = await monitor.wait()
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Union

import requests

from folio.config import AppConfig
from folio.errors import DeployStatusAPIError, RemoteURLError
from folio.utils.logger import get_logger

logger = get_logger("folio.publishing.deploy")

POLL_INTERVAL_SECONDS = 6.0
TIMEOUT_SECONDS = 5 * 60.0
MAX_RUNS = 5


# ============================================================
# Tipos
# ============================================================

class DeployStatus(str, Enum):
    """Estado de un deploy según GitHub Actions."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class DeployState(str, Enum):
    """Estados del loop de polling."""
    POLLING = "polling"
    SUCCESS = "success"
    FAILURE = "failure"
    TIMED_OUT = "timed_out"
    API_ERROR = "api_error"

    @property
    def is_terminal(self) -> bool:
        return self is not DeployState.POLLING


class ErrorAction(Enum):
    """Qué hacer con un error atrapado durante un poll."""
    RETRY = "retry"
    ABORT = "abort"


@dataclass(frozen=True)
class RepoCoordinates:
    """owner/repo de GitHub."""
    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class WorkflowRun:
    """
    Una ejecución del workflow de CI para un commit.

    Campos:
        status: "queued", "in_progress" o "completed".
        conclusion: "success", "failure", "skipped", ... o None si no terminó.
    """
    status: str
    conclusion: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowRun":
        return cls(status=data["status"], conclusion=data.get("conclusion"))


@dataclass
class PollState:
    """Estado interno del loop. Se descarta al terminar o al cancelar."""
    started_at: float
    last_elapsed: float = 0.0


# ============================================================
# Remote de git → owner/repo
# ============================================================

def resolve_repo_coordinates(remote_url: str, host: str = "github.com") -> RepoCoordinates:
    """
    Extrae owner/repo de la URL del remote.

    Formatos aceptados:
        git@github.com:owner/repo.git
        https://github.com/owner/repo.git
        ssh://git@github.com/owner/repo.git

    Raises:
        RemoteURLError: Si el host no es el del proveedor de CI.
    """
    url = remote_url.strip()
    h = re.escape(host)
    patrones = (
        # scp-like: git@github.com:owner/repo.git
        rf"^(?:[\w.-]+@)?{h}:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$",
        # https://, ssh://, git:// (con credenciales o puerto opcionales)
        rf"^(?:https?|ssh|git)://(?:[^@/]+@)?{h}(?::\d+)?/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$",
    )
    for patron in patrones:
        match = re.match(patron, url, re.IGNORECASE)
        if match:
            return RepoCoordinates(owner=match.group("owner"), repo=match.group("repo"))

    raise RemoteURLError(f"Cannot parse GitHub remote URL: {url}")


# ============================================================
# Selección de run → DeployStatus
# ============================================================

def select_run(runs: list[WorkflowRun]) -> WorkflowRun | None:
    """
    Primer run que no fue "skipped" (los path filters generan runs
    skipped). Si todos fueron skipped, el primero de la lista, para
    llegar a un estado terminal en vez de hacer polling para siempre.
    """
    if not runs:
        return None
    for run in runs:
        if run.conclusion != "skipped":
            return run
    return runs[0]


def status_from_runs(runs: list[WorkflowRun]) -> DeployStatus:
    """Mapea la lista de runs (más reciente primero) a un DeployStatus."""
    run = select_run(runs)
    if run is None:
        return DeployStatus.PENDING
    if run.status != "completed":
        return DeployStatus.PENDING
    if run.conclusion == "success":
        return DeployStatus.SUCCESS
    return DeployStatus.FAILURE


class GitHubActionsClient:
    """
    Consulta el estado de los workflow runs de un commit.

    Args:
        remote_url: Función que devuelve la URL del remote de git.
            Se llama una sola vez, la primera vez que hace falta.
        token: GITHUB_TOKEN. Vacío → requests sin autenticar
            (funciona, con rate limit más estricto).
        host: Dominio esperado en el remote.
        api_base: URL base de la API.
        per_page: Cuántos runs pedir (los más recientes).
        timeout: Timeout de cada request, en segundos.
        user_agent: GitHub exige un User-Agent.
    """

    def __init__(
        self,
        remote_url: Callable[[], str],
        token: str = "",
        host: str = "github.com",
        api_base: str = "https://api.github.com",
        per_page: int = MAX_RUNS,
        timeout: float = 30.0,
        user_agent: str = "folio-admin",
    ):
        self._remote_url = remote_url
        self._token = token
        self._host = host
        self._api_base = api_base.rstrip("/")
        self._per_page = per_page
        self._timeout = timeout
        self._user_agent = user_agent
        self._coordinates: RepoCoordinates | None = None

    @classmethod
    def from_config(cls, config: AppConfig, remote_url: Callable[[], str]) -> "GitHubActionsClient":
        return cls(
            remote_url,
            token=config.github_token,
            host=config.deploy.host,
            api_base=config.deploy.api_base,
            per_page=config.deploy.max_runs,
            timeout=config.deploy.request_timeout,
            user_agent=config.deploy.user_agent,
        )

    def coordinates(self) -> RepoCoordinates:
        if self._coordinates is None:
            self._coordinates = resolve_repo_coordinates(self._remote_url(), self._host)
        return self._coordinates

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self._user_agent,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def fetch_status(self, commit_hash: str) -> DeployStatus:
        """
        Estado del deploy de `commit_hash`.

        Raises:
            RemoteURLError: Remote que no es de GitHub (antes de la red).
            DeployStatusAPIError: GitHub respondió no-2xx.
            requests.RequestException: Error de red (transitorio).
            ValueError: Respuesta que no se puede interpretar (transitorio).
        """
        coords = self.coordinates()
        url = f"{self._api_base}/repos/{coords.owner}/{coords.repo}/actions/runs"
        params = {"head_sha": commit_hash, "per_page": self._per_page}

        response = requests.get(
            url, headers=self._headers(), params=params, timeout=self._timeout
        )
        if not 200 <= response.status_code < 300:
            raise DeployStatusAPIError(response.status_code)

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Respuesta inesperada de GitHub: {type(data).__name__}")

        runs = [WorkflowRun.from_dict(r) for r in data.get("workflow_runs") or []]
        return status_from_runs(runs)


# ============================================================
# Clasificador de errores + transición pura
# ============================================================

def classify_error(exc: BaseException) -> ErrorAction:
    """
    ¿El error atrapado en un poll es transitorio o fatal?

    RETRY: red caída, timeout, JSON roto, respuesta con forma rara.
    ABORT: GitHub respondió no-2xx (estado desconocido), remote que
        no es de GitHub, o cualquier error que no esperamos.
    """
    if isinstance(exc, (DeployStatusAPIError, RemoteURLError)):
        return ErrorAction.ABORT
    if isinstance(exc, requests.RequestException):
        return ErrorAction.RETRY
    if isinstance(exc, (ValueError, KeyError, TypeError)):
        return ErrorAction.RETRY
    return ErrorAction.ABORT


Observation = Union[DeployStatus, ErrorAction, None]


def next_state(
    observation: Observation,
    elapsed: float,
    timeout: float = TIMEOUT_SECONDS,
) -> DeployState:
    """
    Transición del loop después de un tick.

    Pasado el timeout, timed_out sin importar lo último observado.
    """
    if elapsed > timeout:
        return DeployState.TIMED_OUT
    if observation is DeployStatus.SUCCESS:
        return DeployState.SUCCESS
    if observation is DeployStatus.FAILURE:
        return DeployState.FAILURE
    if observation is ErrorAction.ABORT:
        return DeployState.API_ERROR
    return DeployState.POLLING


def format_elapsed(seconds: float) -> str:
    """95.3 → "1:35"."""
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def describe(state: DeployState, commit_hash: str, elapsed: float = 0.0) -> str:
    """Mensaje para el usuario, uno distinto por estado."""
    if state is DeployState.POLLING:
        return f"Deploying {commit_hash}… {format_elapsed(elapsed)}"
    if state is DeployState.SUCCESS:
        return f"Published ({commit_hash})"
    if state is DeployState.FAILURE:
        return "Deploy failed. Check GitHub Actions."
    if state is DeployState.TIMED_OUT:
        return "Deploy timed out. Check GitHub Actions."
    return "Could not reach deploy status API."


# ============================================================
# Loop de polling
# ============================================================

class DeployMonitor:
    """
    Hace polling del deploy de un commit hasta un estado terminal.

    Una instancia por commit. start() lanza una task de asyncio,
    stop() la cancela: después de stop() no hay más transiciones
    ni callbacks.

    El reloj y el sleep se inyectan para que los tests avancen
    tiempo virtual en vez de esperar 5 minutos reales.

    Args:
        commit_hash: Hash corto devuelto por publish.
        fetch_status: Función bloqueante sha → DeployStatus
            (se ejecuta en un thread para no frenar el event loop).
        interval: Segundos entre polls.
        timeout: Segundos máximos antes de timed_out.
        clock: Reloj monotónico.
        sleep: Espera asíncrona entre ticks.
        on_update: Se llama en cada tick y al llegar a un estado terminal.
    """

    def __init__(
        self,
        commit_hash: str,
        fetch_status: Callable[[str], DeployStatus],
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        timeout: float = TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_update: Callable[["DeployMonitor"], None] | None = None,
    ):
        self.commit_hash = commit_hash
        self._fetch_status = fetch_status
        self._interval = interval
        self._timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._on_update = on_update

        self._state = DeployState.POLLING
        self._poll: PollState | None = None
        self._task: asyncio.Task | None = None
        self._stopped = False
        self._elapsed = 0.0
        self.polls = 0
        self.error = ""

    # --- estado público ---

    @property
    def state(self) -> DeployState:
        return self._state

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def message(self) -> str:
        return describe(self._state, self.commit_hash, self._elapsed)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopped(self) -> bool:
        return self._stopped

    # --- ciclo de vida ---

    def start(self) -> asyncio.Task:
        """Lanza el loop. Requiere un event loop corriendo."""
        if self._task is not None:
            raise RuntimeError(f"El monitor de {self.commit_hash} ya fue iniciado")
        self._poll = PollState(started_at=self._clock())
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"deploy-monitor-{self.commit_hash}"
        )
        logger.info(f"Esperando el deploy de {self.commit_hash}...")
        return self._task

    def stop(self) -> None:
        """Cancela el loop y el timer pendiente. Idempotente."""
        if self._stopped:
            return
        self._stopped = True
        self._poll = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info(f"Monitor de {self.commit_hash} cancelado")

    async def wait(self) -> DeployState:
        """Espera a que el loop termine (o sea cancelado)."""
        if self._task is None:
            raise RuntimeError("El monitor no fue iniciado")
        await asyncio.wait({self._task})
        return self._state

    # --- loop ---

    async def _run(self) -> None:
        while True:
            if self._tick_timed_out():
                return
            self._notify()

            observation = await self._observe()
            if self._stopped:
                return

            estado = next_state(observation, self._current_elapsed(), self._timeout)
            if estado.is_terminal:
                self._finish(estado)
                return

            await self._sleep(self._interval)
            if self._stopped:
                return

    def _current_elapsed(self) -> float:
        assert self._poll is not None
        elapsed = self._clock() - self._poll.started_at
        self._poll.last_elapsed = elapsed
        self._elapsed = elapsed
        return elapsed

    def _tick_timed_out(self) -> bool:
        if next_state(None, self._current_elapsed(), self._timeout) is DeployState.TIMED_OUT:
            self._finish(DeployState.TIMED_OUT)
            return True
        return False

    async def _observe(self) -> Observation:
        self.polls += 1
        try:
            return await asyncio.to_thread(self._fetch_status, self.commit_hash)
        except Exception as e:
            accion = classify_error(e)
            if accion is ErrorAction.RETRY:
                logger.warning(
                    f"Error transitorio consultando el deploy: {e} — "
                    f"reintento en {self._interval:g}s"
                )
            else:
                self.error = str(e)
                logger.error(f"No se pudo consultar el deploy: {e}")
            return accion

    def _finish(self, estado: DeployState) -> None:
        if self._stopped:
            return
        self._state = estado
        self._poll = None

        if estado is DeployState.SUCCESS:
            logger.success(f"Deploy de {self.commit_hash} completado")
        elif estado is DeployState.TIMED_OUT:
            logger.warning(f"Deploy de {self.commit_hash}: timeout después de {format_elapsed(self._elapsed)}")
        else:
            logger.error(f"Deploy de {self.commit_hash}: {estado.value}")

        self._notify()

    def _notify(self) -> None:
        if self._on_update is not None and not self._stopped:
            self._on_update(self)
