"""Transport message models and the registry integration adapter."""

from .adapter import ProgressIntegration
from .messages import (
    IndexCompleteMessage,
    IndexErrorMessage,
    IndexProgressMessage,
    IndexStartMessage,
    ProgressMessage,
    ResearchCompleteMessage,
    ResearchErrorMessage,
    ResearchProgressMessage,
    ResearchStartMessage,
    TransportMessage,
    WikiCompleteMessage,
    WikiErrorMessage,
    WikiProgressMessage,
    parse_message,
)

__all__ = [
    "IndexCompleteMessage",
    "IndexErrorMessage",
    "IndexProgressMessage",
    "IndexStartMessage",
    "ProgressIntegration",
    "ProgressMessage",
    "ResearchCompleteMessage",
    "ResearchErrorMessage",
    "ResearchProgressMessage",
    "ResearchStartMessage",
    "TransportMessage",
    "WikiCompleteMessage",
    "WikiErrorMessage",
    "WikiProgressMessage",
    "parse_message",
]
