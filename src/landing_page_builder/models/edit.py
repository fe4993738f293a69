from __future__ import annotations

from enum import Enum
from typing import Any, Sequence

from pydantic import Field, field_validator

from .base import CamelModel


class SectionEditStatus(str, Enum):
    editing = "editing"
    updated = "updated"
    failed = "failed"


class EditTarget(CamelModel):
    section_id: str = Field(min_length=1)
    confidence: float = 0.5
    reasoning: str = ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Any:
        if value is None:
            return 0.5
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.5
        return min(1.0, max(0.0, number))

    @field_validator("reasoning", mode="before")
    @classmethod
    def _blank_reasoning(cls, value: Any) -> Any:
        return "" if value is None else value


class EditPlan(CamelModel):
    sections: list[EditTarget] = Field(default_factory=list)
    summary: str = ""

    @field_validator("summary", mode="before")
    @classmethod
    def _blank_summary(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def section_ids(self) -> list[str]:
        return [target.section_id for target in self.sections]


class EditedSection(CamelModel):
    section_id: str
    section_name: str
    status: SectionEditStatus


class EditResult(CamelModel):
    # section_id/section_name name the first target only; `sections` lists all of them.
    section_id: str
    section_name: str
    change_description: str
    sections: Sequence[EditedSection] = Field(default_factory=list)

    @property
    def failed_sections(self) -> list[EditedSection]:
        return [item for item in self.sections if item.status == SectionEditStatus.failed]


__all__ = ["SectionEditStatus", "EditTarget", "EditPlan", "EditedSection", "EditResult"]
