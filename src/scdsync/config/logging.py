"""Root logger setup for the scdsync command line."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Send run progress (planned ops, batch sends, final stats) to stderr.

    INFO shows one line per reconciliation phase; ``--verbose`` lowers it to
    DEBUG so every planned mutation is listed. ``force`` replaces handlers that
    are already installed.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=force,
    )
