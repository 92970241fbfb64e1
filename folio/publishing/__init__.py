"""
publishing/ — Todo lo relacionado con publicar el contenido.

Módulos:
- change_tracker.py → Snapshot del último save (¿hay cambios?)
- git_ops.py        → pull → add → status → commit → push → rev-parse
- deploy_monitor.py → Polling de GitHub Actions hasta un estado terminal
"""
