"""Result models for the REST client."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from arbor_api.errors import ErrorRecord
from arbor_api.rest.paging import extract_records


class AggregateResult(BaseModel):
    """All pages of one logical collection query.

    ``pages`` is in ascending page order. Pages that failed after page 1 are
    missing from it and listed in ``skipped_pages``; such a result is
    partial and is never cached.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pages: list[dict[str, Any]] = Field(default_factory=list, description="Page bodies")
    total_pages: int = Field(default=1, ge=1, description="Pages reported by the server")
    skipped_pages: list[int] = Field(
        default_factory=list, description="Pages omitted after a failure"
    )
    errors: list[ErrorRecord] = Field(
        default_factory=list, description="Errors of the skipped pages"
    )
    from_cache: bool = Field(default=False, description="Served from the aggregate cache")

    @property
    def is_partial(self) -> bool:
        """Whether any page was skipped."""
        return bool(self.skipped_pages)

    @property
    def is_empty(self) -> bool:
        """Whether the query produced no records."""
        return not self.records

    @property
    def records(self) -> list[Any]:
        """Records of every page in page order."""
        return extract_records(self.pages)
