"""Entry point for ``python -m mediabridge``."""

from mediabridge.cli.app import app

if __name__ == "__main__":
    app()
