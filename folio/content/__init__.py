"""
content/ — Archivos de contenido del sitio.

Módulos:
- store.py → content.json y posts markdown del blog
"""
