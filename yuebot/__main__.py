"""Entry point for running yuebot as a module."""

from yuebot.cli.commands import app

if __name__ == "__main__":
    app()
