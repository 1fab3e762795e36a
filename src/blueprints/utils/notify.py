"""Success notification."""

import logging
import sys
from typing import Optional, TextIO

logger = logging.getLogger(__name__)

BELL = "\a"


def play_chime(stream: Optional[TextIO] = None) -> None:
    """Ring the terminal bell. Failures are logged and otherwise ignored."""
    stream = stream or sys.stdout
    try:
        stream.write(BELL)
        stream.flush()
    except (OSError, ValueError) as e:
        logger.debug(f"Could not play notification chime: {e}")
