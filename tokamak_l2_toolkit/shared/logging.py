"""
Logging helpers for the Tokamak L2 toolkit.

Every module logs through a child of the ``tokamak_l2_toolkit`` logger.
The root of that tree gets a single console handler the first time it is
requested; TOKAMAK_LOG_LEVEL overrides the default INFO level.
"""

import logging
import os
from typing import Optional

from tokamak_l2_toolkit.shared.constants import GlobalConstants

_ROOT_LOGGER_NAME = "tokamak_l2_toolkit"
_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        root.addHandler(handler)

        level_str = os.getenv(GlobalConstants.LOG_LEVEL_ENV, "INFO").upper()
        root.setLevel(getattr(logging, level_str, logging.INFO))
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the toolkit's logger tree.

    Names outside the package (e.g. ``"__main__"``) are nested under the
    toolkit root so they share its handler and level.
    """
    root = _configure_root()
    if not name or name == _ROOT_LOGGER_NAME:
        return root
    if not name.startswith(_ROOT_LOGGER_NAME + "."):
        name = f"{_ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def short_hex(data: bytes, length: int = 10) -> str:
    """Abbreviate bytes for log lines."""
    text = "0x" + bytes(data).hex()
    if len(text) <= length + 4:
        return text
    return f"{text[:length]}...{text[-4:]}"
