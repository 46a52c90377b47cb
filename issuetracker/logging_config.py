from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the `issuetracker` logger tree.

    Uvicorn installs the handlers; this only controls verbosity of our modules.
    Set `ISSUETRACKER_LOG_LEVEL=DEBUG` to see permission resolution details.
    """

    normalized = level.upper()
    logging.getLogger("issuetracker").setLevel(normalized)
    logging.getLogger("issuetracker").propagate = True
