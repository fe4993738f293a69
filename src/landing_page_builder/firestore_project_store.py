from __future__ import annotations

import logging
from datetime import datetime
from typing import Mapping

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .models.plan import PagePlan
from .models.project import ProjectRecord, ProjectStatus
from .models.section import GeneratedFiles, SectionCode

logger = logging.getLogger(__name__)


class FirestoreProjectStore:
    """Firestore-backed project store for production use.

    A document holds the composed files and the page plan, the unit that is
    saved and restored.
    """

    COLLECTION_NAME = "projects"

    def __init__(self, project_id: str | None = None, *, client: firestore.Client | None = None) -> None:
        self._db = client or firestore.Client(project=project_id)
        self._collection = self._db.collection(self.COLLECTION_NAME)

    def create_project(self, *, prompt: str) -> ProjectRecord:
        """Create a new project document in Firestore."""
        doc_ref = self._collection.document()
        now = datetime.utcnow()

        project = ProjectRecord(
            id=doc_ref.id,
            prompt=prompt,
            status=ProjectStatus.queued,
            created_at=now,
            updated_at=now,
        )
        doc_ref.set(self._to_firestore_dict(project))

        logger.info("Created project", extra={"project_id": project.id})
        return project

    def get_project(self, project_id: str) -> ProjectRecord | None:
        """Retrieve a project by ID from Firestore."""
        doc = self._collection.document(project_id).get()
        if not doc.exists:
            return None
        return self._from_firestore_dict(doc.id, doc.to_dict())

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
        """Update project fields in Firestore."""
        doc_ref = self._collection.document(project_id)

        update_data: dict = {"updated_at": datetime.utcnow()}
        if status is not None:
            update_data["status"] = status.value
        if files is not None:
            update_data["files"] = files.model_dump()
        if plan is not None:
            update_data["plan"] = plan.model_dump(mode="json", by_alias=True)
        if section_code is not None:
            update_data["section_code"] = {
                section_id: code.model_dump() for section_id, code in section_code.items()
            }
        if summary is not None:
            update_data["summary"] = summary
        if errors is not None:
            update_data["errors"] = errors

        doc_ref.update(update_data)

        logger.info(
            "Updated project",
            extra={"project_id": project_id, "status": status.value if status else None},
        )

        updated_doc = doc_ref.get()
        return self._from_firestore_dict(updated_doc.id, updated_doc.to_dict())

    def list_projects(self, *, status: ProjectStatus | None = None, limit: int = 100) -> list[ProjectRecord]:
        """List projects, newest first, with optional status filtering."""
        query = self._collection
        if status is not None:
            query = query.where(filter=FieldFilter("status", "==", status.value))
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING).limit(limit)
        return [self._from_firestore_dict(doc.id, doc.to_dict()) for doc in query.stream()]

    def delete_project(self, project_id: str) -> bool:
        """Delete a project document. Returns False when it does not exist."""
        doc_ref = self._collection.document(project_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()

        logger.info("Deleted project", extra={"project_id": project_id})
        return True

    def _to_firestore_dict(self, project: ProjectRecord) -> dict:
        data = {
            "prompt": project.prompt,
            "status": project.status.value,
            "files": project.files.model_dump(),
            "created_at": project.created_at,
            "updated_at": project.updated_at,
            "section_code": {
                section_id: code.model_dump() for section_id, code in project.section_code.items()
            },
            "summary": project.summary,
            "errors": list(project.errors),
        }
        if project.plan is not None:
            data["plan"] = project.plan.model_dump(mode="json", by_alias=True)
        return data

    def _from_firestore_dict(self, project_id: str, data: dict) -> ProjectRecord:
        plan = None
        if data.get("plan"):
            plan = PagePlan.model_validate(data["plan"])

        return ProjectRecord(
            id=project_id,
            prompt=data.get("prompt", ""),
            status=ProjectStatus(data["status"]),
            files=GeneratedFiles.model_validate(data.get("files") or {"html": "", "css": "", "js": ""}),
            plan=plan,
            section_code={
                section_id: SectionCode.model_validate(code)
                for section_id, code in (data.get("section_code") or {}).items()
            },
            summary=data.get("summary"),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            errors=data.get("errors", []),
        )


__all__ = ["FirestoreProjectStore"]
