"""Typed transport payloads that drive the progress registry.

Wire decoding happens upstream; these models describe the already-parsed
messages. Progress values are fractions between 0 and 1.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class TransportMessage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str
    repository_id: str


class IndexStartMessage(TransportMessage):
    type: Literal["IndexStart"] = "IndexStart"
    total_files: int = 0


class IndexProgressMessage(TransportMessage):
    type: Literal["IndexProgress"] = "IndexProgress"
    progress: float
    current_file: str | None = None
    files_processed: int = 0
    total_files: int = 0
    processing_rate: float | None = None


class IndexCompleteMessage(TransportMessage):
    type: Literal["IndexComplete"] = "IndexComplete"
    total_files: int | None = None
    total_chunks: int | None = None
    duration_ms: float | None = None


class IndexErrorMessage(TransportMessage):
    type: Literal["IndexError"] = "IndexError"
    error: str


class WikiProgressMessage(TransportMessage):
    type: Literal["WikiProgress"] = "WikiProgress"
    progress: float
    current_step: str = ""
    total_steps: int = 0
    completed_steps: int = 0
    step_details: str | None = None


class WikiCompleteMessage(TransportMessage):
    type: Literal["WikiComplete"] = "WikiComplete"
    wiki_id: str
    pages_count: int | None = None
    sections_count: int | None = None


class WikiErrorMessage(TransportMessage):
    type: Literal["WikiError"] = "WikiError"
    error: str


class ResearchStartMessage(TransportMessage):
    type: Literal["ResearchStart"] = "ResearchStart"
    research_id: str
    query: str | None = None
    total_iterations: int = 0


class ResearchProgressMessage(TransportMessage):
    type: Literal["ResearchProgress"] = "ResearchProgress"
    research_id: str
    progress: float
    current_iteration: int = 0
    total_iterations: int = 0
    current_focus: str = ""


class ResearchCompleteMessage(TransportMessage):
    type: Literal["ResearchComplete"] = "ResearchComplete"
    research_id: str
    final_conclusion: str | None = None
    all_findings: list[Any] = Field(default_factory=list)


class ResearchErrorMessage(TransportMessage):
    type: Literal["ResearchError"] = "ResearchError"
    research_id: str
    error: str


ProgressMessage = Annotated[
    Union[
        IndexStartMessage,
        IndexProgressMessage,
        IndexCompleteMessage,
        IndexErrorMessage,
        WikiProgressMessage,
        WikiCompleteMessage,
        WikiErrorMessage,
        ResearchStartMessage,
        ResearchProgressMessage,
        ResearchCompleteMessage,
        ResearchErrorMessage,
    ],
    Field(discriminator="type"),
]

_MESSAGE_ADAPTER: TypeAdapter[ProgressMessage] = TypeAdapter(ProgressMessage)


def parse_message(payload: Mapping[str, Any]) -> TransportMessage:
    """Validate a decoded payload into its message model.

    Raises ``pydantic.ValidationError`` for unknown types or missing fields.
    """

    return _MESSAGE_ADAPTER.validate_python(dict(payload))


__all__ = [
    "IndexCompleteMessage",
    "IndexErrorMessage",
    "IndexProgressMessage",
    "IndexStartMessage",
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
