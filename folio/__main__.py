"""
__main__.py — Permite ejecutar folio como módulo.

    python -m folio serve
"""

from folio.cli import main

if __name__ == "__main__":
    main()
