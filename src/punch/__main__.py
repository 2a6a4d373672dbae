"""Main entry point for ``python -m punch``."""

from punch.cli import app


if __name__ == "__main__":
    app()
