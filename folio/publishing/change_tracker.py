"""
change_tracker.py — ¿El contenido cambió desde el último save?

Guarda una "foto" serializada del último contenido persistido y
compara contra ella por valor (no por identidad). La serialización
es canónica (keys ordenadas) para que reordenar un dict no cuente
como cambio.

Uso:
    tracker = ChangeTracker()
    tracker.snapshot(data)
    tracker.is_dirty(data)   # False
    data["home"]["title"] = "Nuevo"
    tracker.is_dirty(data)   # True
    tracker.commit(data)     # después de escribir a disco
"""

from __future__ import annotations

import json
from typing import Any


def serialize(data: Any) -> str:
    """Serialización canónica usada para comparar."""
    return json.dumps(data, sort_keys=True, ensure_ascii=False)


class ChangeTracker:
    """Snapshot del último contenido persistido."""

    def __init__(self) -> None:
        self._snapshot: str | None = None

    @property
    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    def snapshot(self, data: Any) -> None:
        """Toma la foto inicial (al cargar el contenido)."""
        self._snapshot = serialize(data)

    def is_dirty(self, current: Any) -> bool:
        """True si `current` difiere de la foto."""
        return serialize(current) != self._snapshot

    def commit(self, data: Any) -> None:
        """
        Reemplaza la foto. Llamar SOLO después de una escritura exitosa,
        si no el editor creería que hay cambios guardados que no existen.
        """
        self._snapshot = serialize(data)

    def restore(self) -> Any:
        """
        Devuelve una copia del último contenido guardado.

        Raises:
            LookupError: Si todavía no hay snapshot.
        """
        if self._snapshot is None:
            raise LookupError("No hay snapshot para restaurar")
        return json.loads(self._snapshot)
