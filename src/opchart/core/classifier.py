"""Decide how a chart reference string should be acquired."""

from __future__ import annotations

import os
import stat

from opchart.models import SourceKind


def classify_reference(ref: str) -> SourceKind:
    """Classify a chart reference without touching the network.

    An existing filesystem path always wins, even when the same string could
    also be read as ``repoName/chartName`` or a bare chart name.
    """
    if not ref:
        return SourceKind.EMPTY
    try:
        st = os.stat(ref)
    except (OSError, ValueError):
        return SourceKind.REMOTE
    if stat.S_ISDIR(st.st_mode):
        return SourceKind.LOCAL_DIRECTORY
    return SourceKind.LOCAL_FILE
