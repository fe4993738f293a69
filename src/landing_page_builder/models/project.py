from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Sequence

from pydantic import BaseModel, Field

from .plan import PagePlan
from .section import GeneratedFiles, SectionCode


class ProjectStatus(str, Enum):
    queued = "QUEUED"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    failed = "FAILED"


def _empty_files() -> GeneratedFiles:
    return GeneratedFiles(html="", css="", js="")


class ProjectRecord(BaseModel):
    id: str
    prompt: str
    status: ProjectStatus = ProjectStatus.queued
    files: GeneratedFiles = Field(default_factory=_empty_files)
    plan: PagePlan | None = None
    section_code: Dict[str, SectionCode] = Field(default_factory=dict)
    summary: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    errors: Sequence[str] = Field(default_factory=list)


__all__ = ["ProjectRecord", "ProjectStatus"]
