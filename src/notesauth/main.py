"""Application entry point for the notesauth server."""

from notesauth.app import App
from notesauth.config import Config
from notesauth.logging import setup_logging
from notesauth.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
