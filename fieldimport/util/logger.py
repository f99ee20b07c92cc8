"""
Shared logger for the import pipeline.

`get_logger()` hands back the one "fieldimport" logger (or a child of it),
configured once with a stream handler at the level from settings.
"""

import logging
from typing import Optional

from fieldimport.config import settings

_ROOT_NAME = "fieldimport"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure(root: logging.Logger) -> None:
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(settings.LOG_LEVEL.upper())


def get_logger(name: Optional[str] = None) -> logging.Logger:
    root = logging.getLogger(_ROOT_NAME)
    _configure(root)
    if not name:
        return root
    return root.getChild(name)
