"""Round-summary compaction of the conversation log."""

from graphkeep.compaction.compactor import SummaryCompactor
from graphkeep.compaction.sources import (
    DefaultModelLookup,
    ExternalFunction,
    ExternalHandle,
    SummarySource,
    select_source,
)

__all__ = [
    "SummaryCompactor",
    "SummarySource",
    "ExternalFunction",
    "ExternalHandle",
    "DefaultModelLookup",
    "select_source",
]
