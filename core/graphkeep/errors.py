"""Exception types raised by the persistence layer."""


class GraphkeepError(Exception):
    """Base class for graphkeep errors."""


class PreconditionError(GraphkeepError, ValueError):
    """A call was made without the state it requires (missing ids, unknown checkpoint)."""


class CompactionError(GraphkeepError):
    """A summary round could not be produced."""


class SummaryModelUnavailableError(CompactionError):
    """No summary override was configured and the registry has no enabled model."""
