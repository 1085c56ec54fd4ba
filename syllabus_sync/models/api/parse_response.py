# syllabus_sync/models/api/parse_response.py
"""
Parse API response models.
Used by routes for output formatting. Serialized with camelCase keys.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from syllabus_sync.models.domain.event_domain import EventItem


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LLMDiagnostics(CamelModel):
    """How the LLM path went for this request."""

    model: str = Field(..., description="Model that was (or would have been) called")
    processing_time_ms: float | None = Field(None, description="LLM round-trip time")
    denied: str | None = Field(
        None, description="Why the LLM call was skipped (per_ip_cap, budget_exceeded)"
    )


class ParseDiagnostics(CamelModel):
    processing_time_ms: float = Field(..., description="Total server-side processing time")
    text_length: int = Field(..., description="Length of the submitted text")
    course_code: str = Field(..., description="Course code used for the events")
    course_code_detected: bool = Field(..., description="True when detected from the text")
    warnings: list[str] = Field(default_factory=list, description="Validation warnings and errors")
    validation: dict[str, int] = Field(default_factory=dict, description="Validator statistics")
    llm: LLMDiagnostics | None = Field(None, description="LLM call details")
    heuristic: dict[str, Any] | None = Field(None, description="Heuristic extractor statistics")


class ParseResponse(CamelModel):
    """Validated events plus how they were produced."""

    events: list[EventItem] = Field(default_factory=list)
    source: Literal["llm", "heuristic"] = Field(..., description="Which extractor produced the events")
    confidence: float = Field(..., description="Mean event confidence, 3 decimal places")
    diagnostics: ParseDiagnostics
