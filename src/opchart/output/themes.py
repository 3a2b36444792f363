"""Source kind color map."""

from opchart.models import SourceKind

SOURCE_COLORS: dict[SourceKind, str] = {
    SourceKind.EMPTY: "yellow",
    SourceKind.LOCAL_FILE: "green",
    SourceKind.LOCAL_DIRECTORY: "green",
    SourceKind.REMOTE: "cyan",
}


def styled_source(source: SourceKind) -> str:
    color = SOURCE_COLORS.get(source, "white")
    return f"[{color}]{source.value}[/{color}]"
