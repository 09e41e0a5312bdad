"""Error taxonomy for corpus loading and querying.

Absence of a collection or record is not an error: lookups return ``None``
and the HTTP boundary turns that into a 404.
"""


class CorpusError(Exception):
    """Base error for the corpus engine."""


class LoadError(CorpusError):
    """Raised when no corpus source can be loaded. The server must not serve."""


class InternalInconsistencyError(LoadError):
    """Raised when source content contradicts its own declared counts."""


class QueryValidationError(CorpusError, ValueError):
    """Raised when query input is malformed."""


class CorpusNotLoadedError(CorpusError):
    """Raised when a query arrives before the corpus finished loading."""
