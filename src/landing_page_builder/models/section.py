from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from .base import CamelModel
from .plan import PagePlan, SectionType


class SectionCode(CamelModel):
    """Section-scoped markup, styles and script returned by the model."""

    html: str
    css: str = ""
    js: str = ""

    @field_validator("html")
    @classmethod
    def _require_html(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("missing HTML")
        return value

    @field_validator("css", "js", mode="before")
    @classmethod
    def _blank_if_missing(cls, value: Any) -> Any:
        return "" if value is None else value


class Section(CamelModel):
    id: str
    type: SectionType
    name: str
    html: str = ""
    css: str | None = None
    js: str | None = None
    is_generated: bool = False
    is_generating: bool = False
    is_in_edit_plan: bool | None = None

    def code(self) -> SectionCode | None:
        if not self.html.strip():
            return None
        return SectionCode(html=self.html, css=self.css or "", js=self.js or "")


class GenerationProgress(CamelModel):
    current: int = 0
    total: int = 0
    current_section: str | None = None


class PageState(CamelModel):
    plan: PagePlan | None = None
    sections: list[Section] = Field(default_factory=list)
    is_planning: bool = False
    is_generating: bool = False
    is_editing: bool = False
    generation_progress: GenerationProgress = Field(default_factory=GenerationProgress)

    @property
    def mode(self) -> str:
        if self.is_planning:
            return "planning"
        if self.is_generating:
            return "generating"
        if self.is_editing:
            return "editing"
        return "idle"

    def section(self, section_id: str) -> Section | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None


class GeneratedFiles(CamelModel):
    html: str
    css: str
    js: str


__all__ = ["SectionCode", "Section", "GenerationProgress", "PageState", "GeneratedFiles"]
