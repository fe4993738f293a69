from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Sequence

from pydantic import ConfigDict, Field, field_validator

from .base import CamelModel


class SectionType(str, Enum):
    header = "header"
    hero = "hero"
    features = "features"
    about = "about"
    services = "services"
    pricing = "pricing"
    testimonials = "testimonials"
    cta = "cta"
    contact = "contact"
    footer = "footer"


UNPLANNED_ORDER = 999


def new_section_id() -> str:
    return f"section-{uuid.uuid4().hex}"


def new_plan_id() -> str:
    return f"plan-{uuid.uuid4().hex}"


class SectionPlan(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: SectionType
    name: str
    description: str = ""
    order: int
    requirements: Sequence[str] = Field(default_factory=tuple)


class PagePlan(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    sections: Sequence[SectionPlan] = Field(default_factory=tuple)
    global_styles: str | None = None
    global_scripts: str | None = None

    def section(self, section_id: str) -> SectionPlan | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def order_of(self, section_id: str) -> int:
        section = self.section(section_id)
        return section.order if section is not None else UNPLANNED_ORDER


class SectionDraft(CamelModel):
    """One section as returned by the planning model, before ids are assigned."""

    type: SectionType
    name: str = Field(min_length=1)
    description: str = ""
    requirements: list[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("requirements", mode="before")
    @classmethod
    def _listify_requirements(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class PlanDraft(CamelModel):
    title: str
    description: str = ""
    sections: list[SectionDraft] = Field(min_length=1)

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value: Any) -> Any:
        return "" if value is None else value

    def to_plan(self) -> PagePlan:
        """Assign fresh ids, and an order equal to each section's position."""
        return PagePlan(
            id=new_plan_id(),
            title=self.title,
            description=self.description,
            sections=tuple(
                SectionPlan(
                    id=new_section_id(),
                    type=draft.type,
                    name=draft.name,
                    description=draft.description,
                    order=index,
                    requirements=tuple(draft.requirements),
                )
                for index, draft in enumerate(self.sections)
            ),
        )


__all__ = [
    "SectionType",
    "SectionPlan",
    "PagePlan",
    "SectionDraft",
    "PlanDraft",
    "UNPLANNED_ORDER",
    "new_section_id",
    "new_plan_id",
]
