"""utils/ — Utilidades compartidas (logging)."""
