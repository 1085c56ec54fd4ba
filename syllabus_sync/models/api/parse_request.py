# syllabus_sync/models/api/parse_request.py
"""
Parse API request models.
Used by routes for input validation.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from syllabus_sync.utils.dates import LocalDateTime, parse_term_bound, resolve_timezone


class ParseRequest(BaseModel):
    """Request for extracting calendar events from syllabus text."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str = Field(..., description="Raw syllabus text")
    course_code: str | None = Field(
        default=None, description="Course code; detected from the text when omitted"
    )
    term_start: str | None = Field(default=None, description="ISO date or date-time")
    term_end: str | None = Field(default=None, description="ISO date or date-time")
    timezone: str = Field(default="UTC", description="IANA timezone for offset-less times")

    @field_validator("course_code")
    @classmethod
    def _strip_course_code(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("term_start", "term_end")
    @classmethod
    def _check_term_bound(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            LocalDateTime.parse(value)
        except ValueError as e:
            raise ValueError("must be an ISO 8601 date or date-time") from e
        return value.strip()

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        value = value.strip() or "UTC"
        resolve_timezone(value)
        return value

    @model_validator(mode="after")
    def _check_term_order(self) -> "ParseRequest":
        if self.term_start and self.term_end:
            tz = resolve_timezone(self.timezone)
            start = parse_term_bound(self.term_start, tz)
            end = parse_term_bound(self.term_end, tz, end_of_day=True)
            if start.to_datetime() > end.to_datetime():
                raise ValueError("termStart must not be after termEnd")
        return self
