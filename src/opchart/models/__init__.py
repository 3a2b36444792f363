"""Data models for opchart."""

from __future__ import annotations

import enum


class SourceKind(enum.Enum):
    """How a chart reference is interpreted by the acquisition pipeline."""

    EMPTY = "empty"
    LOCAL_FILE = "local-file"
    LOCAL_DIRECTORY = "local-directory"
    REMOTE = "remote"
