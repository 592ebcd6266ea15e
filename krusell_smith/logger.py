"""
Logging tools for the Krusell-Smith solver.

Every module logs through logging.getLogger(__name__), so the whole package
hangs off the "krusell_smith" logger. Nothing is printed unless the caller
configures logging; verbose() and quiet() are shortcuts for scripts.

The solver logs an informative level by default. Use verbose() to also see
per-iteration detail, or quiet() to keep only warnings (e.g. non-convergence).
"""

import logging

LOGGER_NAME = "krusell_smith"

_FORMAT = "%(message)s"


def _configure(level):
    logging.basicConfig(format=_FORMAT)
    logging.getLogger(LOGGER_NAME).setLevel(level)


def info():
    _configure(logging.INFO)


def verbose():
    _configure(logging.DEBUG)


def quiet():
    _configure(logging.WARNING)
