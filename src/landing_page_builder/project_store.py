from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Dict, Mapping, Protocol

from .models.plan import PagePlan
from .models.project import ProjectRecord, ProjectStatus
from .models.section import GeneratedFiles, SectionCode


class ProjectRepository(Protocol):
    def create_project(self, *, prompt: str) -> ProjectRecord:
        ...

    def get_project(self, project_id: str) -> ProjectRecord | None:
        ...

    def update_project(
        self,
        project_id: str,
        *,
        status: ProjectStatus | None = None,
        files: GeneratedFiles | None = None,
        plan: PagePlan | None = None,
        section_code: Mapping[str, SectionCode] | None = None,
        summary: str | None = None,
        errors: list[str] | None = None,
    ) -> ProjectRecord:
        ...

    def list_projects(self, *, status: ProjectStatus | None = None, limit: int = 100) -> list[ProjectRecord]:
        ...

    def delete_project(self, project_id: str) -> bool:
        ...


class ProjectStore:
    """In-memory project store for local development and tests."""

    def __init__(self) -> None:
        self._projects: Dict[str, ProjectRecord] = {}
        self._lock = threading.Lock()

    def create_project(self, *, prompt: str) -> ProjectRecord:
        with self._lock:
            project_id = self._generate_id()
            project = ProjectRecord(id=project_id, prompt=prompt, status=ProjectStatus.queued)
            self._projects[project_id] = project
            return project

    def get_project(self, project_id: str) -> ProjectRecord | None:
        with self._lock:
            return self._projects.get(project_id)

    def update_project(
        self,
        project_id: str,
        *,
        status: ProjectStatus | None = None,
        files: GeneratedFiles | None = None,
        plan: PagePlan | None = None,
        section_code: Mapping[str, SectionCode] | None = None,
        summary: str | None = None,
        errors: list[str] | None = None,
    ) -> ProjectRecord:
        with self._lock:
            project = self._projects[project_id]
            if status is not None:
                project.status = status
            if files is not None:
                project.files = files
            if plan is not None:
                project.plan = plan
            if section_code is not None:
                project.section_code = dict(section_code)
            if summary is not None:
                project.summary = summary
            if errors is not None:
                project.errors = list(errors)
            project.updated_at = datetime.utcnow()
            self._projects[project_id] = project
            return project

    def list_projects(self, *, status: ProjectStatus | None = None, limit: int = 100) -> list[ProjectRecord]:
        with self._lock:
            projects = [
                project
                for project in self._projects.values()
                if status is None or project.status == status
            ]
        projects.sort(key=lambda project: project.created_at, reverse=True)
        return projects[:limit]

    def delete_project(self, project_id: str) -> bool:
        with self._lock:
            return self._projects.pop(project_id, None) is not None

    def _generate_id(self) -> str:
        ts = datetime.utcnow().strftime("%Y%m%d%H%M%S")
        suffix = uuid.uuid4().hex[:6]
        return f"proj_{ts}_{suffix}"


__all__ = ["ProjectRepository", "ProjectStore"]
