"""
folio — Editor local del sitio personal + publish a GitHub.

Este paquete contiene:
- content/     → content.json y posts markdown
- publishing/  → Snapshot de cambios, secuencia git, monitor de deploy
- coordinator  → Sesión de edición (Save + Publish)
- api          → API local (FastAPI) que usa el editor
- utils/       → Logging

Uso:
    python -m folio serve
    python -m folio publish -m "Update CV"
"""

__version__ = "1.0.0"
