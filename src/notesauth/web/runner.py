"""Uvicorn server runner with custom configuration."""

import copy

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from notesauth.app import App
from notesauth.config import Config
from notesauth.web.server import create_fastapi_app


def run_server(app: App, config: Config) -> None:
    """Run the Uvicorn server with custom logging configuration.

    On SIGINT/SIGTERM uvicorn stops accepting connections, lets in-flight
    requests finish for up to ``shutdown_grace_seconds``, then runs the
    lifespan shutdown that closes the store connections.
    """
    fastapi_app = create_fastapi_app(app, config)

    log_config = copy.deepcopy(LOGGING_CONFIG)
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"
    # Magic-link GETs carry the raw token in the query string
    log_config["filters"] = {"redact_tokens": {"()": "notesauth.logging.RedactTokenFilter"}}
    for handler in log_config["handlers"].values():
        handler["filters"] = ["redact_tokens"]

    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=log_config,
        access_log=True,
        timeout_graceful_shutdown=config.shutdown_grace_seconds,
    )
