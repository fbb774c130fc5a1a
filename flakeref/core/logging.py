"""Logging setup for the flakeref CLI.

Library modules log under the `flakeref` hierarchy and never configure
handlers themselves; the CLI calls configure_logging() once.
"""
from __future__ import annotations

import logging
import sys


LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    root = logging.getLogger("flakeref")
    level = logging.DEBUG if verbose else logging.WARNING
    root.setLevel(level)

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
