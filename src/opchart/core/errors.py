"""Error kinds raised by the chart acquisition pipeline."""

from __future__ import annotations


class ChartError(RuntimeError):
    """Base class for chart acquisition failures."""


class ScaffoldError(ChartError):
    """Raised when the default chart template cannot be written."""


class LoadError(ChartError):
    """Raised when a chart on disk is malformed or unreadable."""


class FetchError(ChartError):
    """Raised when a repository lookup or chart download fails."""


class DependencyError(ChartError):
    """Raised when declared chart dependencies cannot be resolved.

    ``output`` carries the resolver's diagnostic log for the failed run.
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output

    def __str__(self) -> str:
        message = super().__str__()
        if self.output:
            return f"{message}\n{self.output.rstrip()}"
        return message


def rewrap(err: ChartError, context: str) -> ChartError:
    """Return a new error of the same kind with ``context`` prefixed."""
    if isinstance(err, DependencyError):
        wrapped: ChartError = DependencyError(f"{context}: {err.args[0]}", output=err.output)
    else:
        wrapped = type(err)(f"{context}: {err}")
    return wrapped
