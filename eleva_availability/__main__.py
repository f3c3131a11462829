"""
Entry point for ``python -m eleva_availability``.
"""

from .cli.app import app

if __name__ == "__main__":
    app()
