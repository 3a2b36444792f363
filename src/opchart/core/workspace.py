"""Ephemeral directory that brackets one acquisition pipeline run."""

from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


@contextmanager
def temporary_workspace(prefix: str = "opchart-helm-chart") -> Iterator[Path]:
    """Create a private temporary directory and remove it on every exit path.

    A failure to remove the directory is logged and never raised, so it
    cannot mask an error coming out of the ``with`` body.
    """
    workspace = Path(tempfile.mkdtemp(prefix=prefix))
    logger.debug("Created workspace %s", workspace)
    try:
        yield workspace
    finally:
        try:
            shutil.rmtree(workspace)
        except OSError as e:
            logger.error("Failed to remove temporary chart directory %s: %s", workspace, e)
        else:
            logger.debug("Removed workspace %s", workspace)
