"""Resolve OSV advisories against declared dependencies into update rules."""

import logging

__version__ = "0.4.0"

# Finer than DEBUG; used for per-datasource and per-package lookup noise.
TRACE = 5
logging.addLevelName(TRACE, "TRACE")
